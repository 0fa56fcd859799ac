"""
Exception hierarchy for htmlcpr.

Fatal errors propagate out of the copier and halt the run; malformed
reference syntax is recovered inside the extractor.
"""

from typing import Optional


class HtmlcprError(Exception):
    """Base class for all errors raised by htmlcpr."""


class ConfigurationError(HtmlcprError):
    """Invalid combination of options, raised before any file is processed."""


class MissingResourceError(HtmlcprError):
    """A local reference points at a file that cannot be read."""

    def __init__(self, canonical_path: str, referenced_from: Optional[str] = None, reason: Optional[str] = None):
        self.canonical_path = canonical_path
        self.referenced_from = referenced_from
        message = f"Missing resource: {canonical_path}"
        if referenced_from:
            message += f" (referenced from {referenced_from})"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class MalformedReferenceError(HtmlcprError):
    """Reference syntax that cannot be parsed into a URL."""

    def __init__(self, message: str, offset: int):
        self.offset = offset
        super().__init__(f"{message} at offset {offset}")


class OutputCollisionError(HtmlcprError):
    """Two distinct source files were mapped to the same output path."""

    def __init__(self, output_path: str, existing: str, incoming: str):
        self.output_path = output_path
        self.existing = existing
        self.incoming = incoming
        super().__init__(
            f"Output path '{output_path}' is already taken by {existing}; cannot also write {incoming}"
        )

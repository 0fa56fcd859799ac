"""
Per-reference copy/rewrite policy.

Decides, for every reference found in a document, whether it is left alone,
rewritten without copying (schema-less URLs), or resolved, copied and
rewritten. User hooks are wrapped in small strategy objects with a fixed
(url, referencing path) signature.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .assets import Reference
from .config import CopyConfig, DEFAULT_SCHEME
from .errors import ConfigurationError
from ..utils.validators import UrlKind, classify_url, get_validator


class Action(Enum):
    KEEP = "keep"          # leave the reference text untouched
    REWRITE = "rewrite"    # replace the text, copy nothing
    COPY = "copy"          # resolve, copy the target and rewrite


@dataclass(frozen=True)
class Decision:
    action: Action
    kind: UrlKind
    replacement: Optional[str] = None
    reason: str = ""


class SchemelessFix(ABC):
    """Strategy turning a protocol-relative URL into its replacement text."""

    @abstractmethod
    def apply(self, url: str, src: str) -> str:
        pass


class LiteralSchemeFix(SchemelessFix):
    def __init__(self, scheme: str):
        normalized = get_validator().normalize_scheme(scheme)
        if normalized is None:
            raise ConfigurationError(f"Invalid scheme: {scheme!r}")
        self.scheme = normalized

    def apply(self, url: str, src: str) -> str:
        return f"{self.scheme}:{url}"


class DefaultSchemeFix(LiteralSchemeFix):
    def __init__(self, scheme: str = DEFAULT_SCHEME):
        super().__init__(scheme)


class CallableSchemeFix(SchemelessFix):
    def __init__(self, fn: Callable[[str, str], str]):
        self.fn = fn

    def apply(self, url: str, src: str) -> str:
        result = self.fn(url, src)
        if not isinstance(result, str):
            raise ConfigurationError(
                f"schemeless_url_fix returned {type(result).__name__} for {url!r}, expected a string"
            )
        return result


def make_schemeless_fix(value, default_scheme: str = DEFAULT_SCHEME) -> SchemelessFix:
    if value is None:
        return DefaultSchemeFix(default_scheme)
    if isinstance(value, str):
        return LiteralSchemeFix(value)
    if callable(value):
        return CallableSchemeFix(value)
    raise ConfigurationError(
        f"schemeless_url_fix must be None, a scheme string or a function, got {type(value).__name__}"
    )


class ReferencePredicate:
    """A (url, src) -> bool hook; an unset hook never matches."""

    def __init__(self, fn: Optional[Callable[[str, str], bool]] = None, name: str = "predicate"):
        self.fn = fn
        self.name = name

    def __call__(self, url: str, src: str) -> bool:
        return bool(self.fn(url, src)) if self.fn is not None else False


class PolicyEngine:
    def __init__(self, config: CopyConfig):
        self.logger = logging.getLogger(__name__)
        self.schemeless_fix = make_schemeless_fix(config.schemeless_url_fix, config.default_scheme)
        self.skip = ReferencePredicate(config.skip_fn, "skip")
        self.blacklist = ReferencePredicate(config.blacklist_fn, "blacklist")

    def decide(self, ref: Reference, src: str) -> Decision:
        """
        Evaluate the policy for one reference.

        Args:
            ref: Reference found in the referencing document
            src: Output-relative path of the referencing document

        Returns:
            Decision with the action and, for REWRITE, the replacement text
        """
        kind = classify_url(ref.url)
        if kind is UrlKind.REMOTE:
            return Decision(Action.KEEP, kind, reason="remote")
        if kind is UrlKind.SCHEMELESS:
            replacement = self.schemeless_fix.apply(ref.url, src)
            return Decision(Action.REWRITE, kind, replacement=replacement, reason="schemeless")

        for predicate in (self.skip, self.blacklist):
            if predicate(ref.url, src):
                self.logger.debug(f"{predicate.name} matched {ref.url} in {src}")
                return Decision(Action.KEEP, kind, reason=predicate.name)
        if get_validator().filesystem_path(ref.url) is None:
            return Decision(Action.KEEP, kind, reason="no path")
        return Decision(Action.COPY, kind)

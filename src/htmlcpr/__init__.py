"""
htmlcpr: HTML Dependency Copier

Copies HTML documents together with every local image, font, stylesheet and
script they reference, directly or through CSS, and rewrites the references
so the copied tree is self-contained and relocatable.
"""

__version__ = "1.0"
__author__ = "htmlcpr Project"
__description__ = "HTML Dependency Copier"

from .core.config import CopyConfig
from .core.controller import HtmlCopier, htmlcpr
from .core.errors import (
    ConfigurationError,
    HtmlcprError,
    MalformedReferenceError,
    MissingResourceError,
    OutputCollisionError,
)
from .core.files import SourceFile

__all__ = [
    "CopyConfig",
    "HtmlCopier",
    "htmlcpr",
    "SourceFile",
    "HtmlcprError",
    "ConfigurationError",
    "MalformedReferenceError",
    "MissingResourceError",
    "OutputCollisionError",
]

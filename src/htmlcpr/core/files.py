"""File objects flowing through the copier."""

from __future__ import annotations

import os
import posixpath
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


HTML_SUFFIXES = {".html", ".htm", ".xhtml"}
CSS_SUFFIXES = {".css"}


class FileFormat(Enum):
    HTML = "html"
    CSS = "css"
    OPAQUE = "opaque"


def detect_format(path: str) -> FileFormat:
    """Classify a file by extension; anything unknown is an inert payload."""
    suffix = os.path.splitext(path)[1].lower()
    if suffix in HTML_SUFFIXES:
        return FileFormat.HTML
    if suffix in CSS_SUFFIXES:
        return FileFormat.CSS
    return FileFormat.OPAQUE


def to_posix(path: str) -> str:
    return path.replace(os.sep, "/") if os.sep != "/" else path


@dataclass
class SourceFile:
    """An input or output file: absolute path, base directory and contents."""

    path: str
    base: str
    contents: Optional[bytes] = None
    cwd: Optional[str] = None
    is_directory: bool = False
    relative_path: Optional[str] = None  # explicit output path, set once by the copier

    @classmethod
    def from_path(cls, path: str, cwd: Optional[str] = None, base: Optional[str] = None) -> "SourceFile":
        cwd = os.path.abspath(cwd or os.getcwd())
        abs_path = os.path.normpath(os.path.join(cwd, path))
        abs_base = os.path.normpath(os.path.join(cwd, base)) if base else cwd
        if os.path.isdir(abs_path):
            return cls(path=abs_path, base=abs_base, cwd=cwd, is_directory=True)
        with open(abs_path, "rb") as f:
            contents = f.read()
        return cls(path=abs_path, base=abs_base, contents=contents, cwd=cwd)

    @property
    def relative(self) -> str:
        if self.relative_path is not None:
            return self.relative_path
        return to_posix(os.path.relpath(self.path, self.base))

    @property
    def size(self) -> int:
        return len(self.contents) if self.contents is not None else 0

    @property
    def format(self) -> FileFormat:
        return detect_format(self.path)

    def with_contents(self, contents: bytes, relative_path: Optional[str] = None) -> "SourceFile":
        return replace(
            self,
            contents=contents,
            relative_path=relative_path if relative_path is not None else self.relative,
        )

    def output_dir(self) -> str:
        """Directory of the output path, '' for files at the output root."""
        return posixpath.dirname(self.relative)

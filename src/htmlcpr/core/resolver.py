"""Local path resolution and the visited set of scheduled copies."""

from __future__ import annotations

import os
import posixpath
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Tuple
from urllib.parse import quote

from .assets import Reference
from .config import CopyConfig
from .errors import MissingResourceError, OutputCollisionError
from .files import SourceFile, to_posix
from ..utils.validators import get_validator

# Characters left as-is when a resolved path is written back into a URL
URL_PATH_SAFE = "/!$&*+,;=:@~"


@dataclass
class ResolvedTarget:
    canonical_path: str
    output_path: str
    replacement: str
    is_new: bool


def canonical_path(path: str) -> str:
    """Normalized absolute path; symlinks are not followed."""
    return os.path.normpath(os.path.abspath(path))


def normalize_output_path(path: str) -> str:
    path = posixpath.normpath(to_posix(os.fspath(path)))
    return "" if path == "." else path


class VisitedSet:
    """
    Canonical filesystem path -> output-relative path for every file
    scheduled for output. A path is inserted at most once.
    """

    def __init__(self):
        self._outputs: Dict[str, str] = {}
        self._owners: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __contains__(self, canonical: str) -> bool:
        return canonical in self._outputs

    def __len__(self) -> int:
        return len(self._outputs)

    def claim(self, canonical: str, make_output: Callable[[], str]) -> Tuple[str, bool]:
        """
        Atomically look up canonical or insert it with the output path from make_output.

        Returns:
            Tuple of (output path, True if this call inserted it)
        """
        with self._lock:
            existing = self._outputs.get(canonical)
            if existing is not None:
                return existing, False
            output = make_output()
            owner = self._owners.get(output)
            if owner is not None:
                raise OutputCollisionError(output, owner, canonical)
            self._outputs[canonical] = output
            self._owners[output] = canonical
            return output, True


class PathResolver:
    def __init__(self, config: CopyConfig, visited: VisitedSet):
        self.logger = logging.getLogger(__name__)
        self.config = config
        self.visited = visited
        self.validator = get_validator()

    def base_for(self, owner: SourceFile) -> str:
        return self.config.base or owner.base

    def locate(self, ref: Reference, owner: SourceFile) -> str:
        """Canonical filesystem path a local reference points at."""
        path = self.validator.filesystem_path(ref.url)
        if path is None:
            raise ValueError(f"Reference has no path component: {ref.url!r}")
        if path.startswith('/'):
            target = os.path.join(self.base_for(owner), path.lstrip('/'))
        else:
            target = os.path.join(os.path.dirname(owner.path), path)
        return canonical_path(target)

    def resolve(self, ref: Reference, owner: SourceFile) -> ResolvedTarget:
        """
        Resolve a local reference and claim its output path.

        Args:
            ref: Local reference from owner's text
            owner: The referencing file, with its output path already fixed

        Returns:
            ResolvedTarget; is_new is True only the first time a canonical path is seen

        Raises:
            MissingResourceError: if the target is not an existing regular file
        """
        canonical = self.locate(ref, owner)
        if canonical not in self.visited and not os.path.isfile(canonical):
            raise MissingResourceError(canonical, owner.relative, f"'{ref.url}' in {ref.context}")

        def propose() -> str:
            proposed = to_posix(os.path.relpath(canonical, self.base_for(owner)))
            if self.config.overwrite_path is not None:
                proposed = self.config.overwrite_path(proposed, owner.relative)
            return normalize_output_path(proposed)

        output, is_new = self.visited.claim(canonical, propose)
        if is_new:
            self.logger.debug(f"Resolved {ref.url} from {owner.relative} -> {output}")
        return ResolvedTarget(
            canonical_path=canonical,
            output_path=output,
            replacement=self.replacement_for(ref, owner, output),
            is_new=is_new,
        )

    def replacement_for(self, ref: Reference, owner: SourceFile, output: str) -> str:
        """URL pointing from owner's output location to output, keeping ref's query/fragment."""
        _, suffix = self.validator.split(ref.url)
        rel = posixpath.relpath(output, owner.output_dir() or ".")
        return quote(rel, safe=URL_PATH_SAFE) + suffix

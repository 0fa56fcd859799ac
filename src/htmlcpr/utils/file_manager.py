"""
File Management Utilities

This module reads input files from disk into SourceFile objects and writes
the copier's output files beneath a destination directory.
"""

import os
import glob
import logging
from pathlib import Path
from typing import Iterable, Iterator, Dict, Any, Optional

from ..core.errors import HtmlcprError
from ..core.files import SourceFile


def read_bytes(path: str) -> bytes:
    """Read a whole file; OSError propagates to the caller."""
    with open(path, 'rb') as f:
        return f.read()


class FileManager:
    """
    Bridges the filesystem and the copier.

    Expands input patterns into SourceFile objects and writes output files
    under a destination directory at their output-relative paths.
    """

    def __init__(self, dest_dir: Optional[str] = None, cwd: Optional[str] = None, base: Optional[str] = None):
        """
        Initialize the file manager.

        Args:
            dest_dir: Directory receiving output files (required for writing)
            cwd: Directory that relative input patterns are resolved against
            base: Base directory assigned to input files (defaults to cwd)
        """
        self.cwd = os.path.abspath(cwd or os.getcwd())
        self.base = os.path.normpath(os.path.join(self.cwd, base)) if base else self.cwd
        self.dest_dir = Path(dest_dir) if dest_dir else None
        self.logger = logging.getLogger(__name__)

    def read_inputs(self, patterns: Iterable[str]) -> Iterator[SourceFile]:
        """
        Expand input patterns and load the matching files.

        Args:
            patterns: Paths or glob patterns; '**' matches recursively

        Returns:
            Iterator of SourceFile objects, directories included
        """
        for pattern in patterns:
            full = os.path.join(self.cwd, pattern)
            matches = sorted(glob.glob(full, recursive=True)) if glob.has_magic(pattern) else [full]
            if not matches:
                self.logger.warning(f"No files match input pattern: {pattern}")
            for path in matches:
                yield SourceFile.from_path(path, cwd=self.cwd, base=self.base)

    def write_outputs(self, files: Iterable[SourceFile]) -> Dict[str, Any]:
        """
        Write output files under the destination directory.

        Args:
            files: Output files from the copier

        Returns:
            Dictionary with the number of files and bytes written

        Raises:
            HtmlcprError: if an output path would land outside the destination
        """
        if self.dest_dir is None:
            raise ValueError("FileManager has no destination directory")
        stats = {'files': 0, 'bytes': 0, 'dest_dir': str(self.dest_dir)}
        root = self.dest_dir.resolve()
        for file in files:
            target = (root / file.relative).resolve()
            if target == root or root not in target.parents:
                raise HtmlcprError(
                    f"Refusing to write {file.relative}: output path is outside {self.dest_dir}"
                )
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(file.contents or b'')
            stats['files'] += 1
            stats['bytes'] += file.size
            self.logger.debug(f"Wrote {file.relative} ({file.size} bytes)")
        self.logger.info(f"Wrote {stats['files']} files ({stats['bytes']} bytes) to {self.dest_dir}")
        return stats

    def get_output_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the destination directory.

        Returns:
            Dictionary with file count and total size
        """
        stats = {'files': 0, 'total_size': 0, 'dest_dir': str(self.dest_dir)}
        if self.dest_dir is None or not self.dest_dir.exists():
            return stats
        for path in self.dest_dir.rglob('*'):
            if path.is_file():
                stats['files'] += 1
                stats['total_size'] += path.stat().st_size
        return stats

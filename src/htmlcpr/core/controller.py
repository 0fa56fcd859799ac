"""
htmlcpr orchestrator: walks the reference graph of the input documents.

Every input file is emitted; HTML and CSS files are scanned for local
references, which are resolved, copied once and rewritten. Copied HTML/CSS
files are scanned in turn until no new local files are discovered.
"""

from __future__ import annotations

import os
import logging
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .assets import Reference, ReferenceCollector, ReferenceRewriter
from .config import CopyConfig
from .errors import MissingResourceError
from .files import FileFormat, SourceFile, to_posix
from .policy import Action, PolicyEngine
from .resolver import PathResolver, VisitedSet, canonical_path
from ..utils.file_manager import read_bytes

TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "surrogateescape"


class HtmlCopier:
    def __init__(self, config: Optional[CopyConfig] = None,
                 reader: Optional[Callable[[str], bytes]] = None,
                 logger: Optional[logging.Logger] = None, **options):
        if config is None:
            config = CopyConfig.from_options(**options)
        elif options:
            raise TypeError("Pass either a CopyConfig or keyword options, not both")
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.reader = reader or read_bytes
        self.visited = VisitedSet()
        self.collector = ReferenceCollector()
        self.rewriter = ReferenceRewriter()
        self.policy = PolicyEngine(config)
        self.resolver = PathResolver(config, self.visited)
        self.stats = {"inputs": 0, "directories": 0, "emitted": 0, "copied": 0, "rewritten": 0}

    def process(self, files: Iterable[SourceFile]) -> Iterator[SourceFile]:
        """
        Yield every input file and every local file they transitively reference.

        Output order is not meaningful. Stopping iteration early leaves the
        files already yielded valid.
        """
        for file in files:
            if file.is_directory:
                self.stats["directories"] += 1
                self.logger.debug(f"Ignoring directory input: {file.path}")
                continue
            self.stats["inputs"] += 1
            yield from self._process_input(file)
        self.logger.info(
            f"Done: {self.stats['emitted']} files emitted "
            f"({self.stats['inputs']} inputs, {self.stats['copied']} copied dependencies, "
            f"{self.stats['rewritten']} rewritten)"
        )

    def _process_input(self, file: SourceFile) -> Iterator[SourceFile]:
        base = self.config.base or file.base
        canonical = canonical_path(file.path)
        relative = to_posix(os.path.relpath(canonical, base))
        output, is_new = self.visited.claim(canonical, lambda: relative)
        if not is_new:
            self.logger.debug(f"Input already emitted as {output}: {file.path}")
            return
        contents = file.contents if file.contents is not None else self._read(canonical, None)
        root = SourceFile(path=canonical, base=base, contents=contents, cwd=file.cwd,
                          relative_path=output)

        # Depth-first over newly discovered files; the visited set bounds the walk
        pending: List[SourceFile] = [root]
        while pending:
            current = pending.pop()
            emitted, discovered = self._process_file(current)
            self.stats["emitted"] += 1
            yield emitted
            pending.extend(reversed(discovered))

    def _process_file(self, file: SourceFile) -> Tuple[SourceFile, List[SourceFile]]:
        fmt = file.format
        if fmt is FileFormat.OPAQUE or not file.contents:
            return file, []
        if self._is_norec(file):
            self.logger.debug(f"Not scanning {file.relative}: inside a no-recursion directory")
            return file, []

        text = file.contents.decode(TEXT_ENCODING, TEXT_ERRORS)
        refs = self.collector.collect(text, fmt)
        replacements: List[Tuple[Reference, str]] = []
        discovered: List[SourceFile] = []

        for ref in refs:
            decision = self.policy.decide(ref, file.relative)
            if decision.action is Action.KEEP:
                continue
            if decision.action is Action.REWRITE:
                replacements.append((ref, decision.replacement))
                continue
            target = self.resolver.resolve(ref, file)
            replacements.append((ref, target.replacement))
            if target.is_new:
                self.stats["copied"] += 1
                self.logger.info(f"Copying {target.output_path} (referenced from {file.relative})")
                discovered.append(SourceFile(
                    path=target.canonical_path,
                    base=file.base,
                    contents=self._read(target.canonical_path, file),
                    cwd=file.cwd,
                    relative_path=target.output_path,
                ))

        new_text = self.rewriter.rewrite(text, replacements)
        if new_text == text:
            return file, discovered
        self.stats["rewritten"] += 1
        return file.with_contents(new_text.encode(TEXT_ENCODING, TEXT_ERRORS)), discovered

    def _is_norec(self, file: SourceFile) -> bool:
        if not self.config.norec_dirs:
            return False
        rel = to_posix(os.path.relpath(file.path, self.config.base or file.base))
        return any(part in self.config.norec_dirs for part in rel.split("/")[:-1])

    def _read(self, path: str, referenced_from: Optional[SourceFile]) -> bytes:
        try:
            return self.reader(path)
        except OSError as e:
            raise MissingResourceError(
                path, referenced_from.relative if referenced_from else None, str(e)
            ) from e


def htmlcpr(files: Iterable[SourceFile], config: Optional[CopyConfig] = None, **options) -> Iterator[SourceFile]:
    """Copy files and their local dependencies; options as accepted by CopyConfig."""
    copier = HtmlCopier(config, **options)
    return copier.process(files)


def summarize(files: Iterable[SourceFile]) -> List[Dict[str, object]]:
    """Sorted (path, size) summary of output files, for comparing runs as sets."""
    return sorted(({"filepath": f.relative, "size": f.size} for f in files), key=lambda d: d["filepath"])

"""Command-line entry point for htmlcpr."""

from __future__ import annotations

import argparse
import fnmatch
import logging
import posixpath
import sys
import time
from typing import Callable, List, Optional, Sequence

from .core.config import CopyConfig
from .core.controller import HtmlCopier
from .core.errors import HtmlcprError
from .core.logger import initialize_logging
from .utils.file_manager import FileManager

logger = logging.getLogger("htmlcpr.cli")


def _pattern_predicate(patterns: List[str]) -> Optional[Callable[[str, str], bool]]:
    if not patterns:
        return None

    def predicate(url: str, src: str) -> bool:
        return any(fnmatch.fnmatchcase(url, pattern) for pattern in patterns)

    return predicate


def _prefix_remap(prefix: Optional[str]) -> Optional[Callable[[str, str], str]]:
    if not prefix:
        return None

    def remap(path: str, src: str) -> str:
        return posixpath.join(prefix, path)

    return remap


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="htmlcpr",
        description="Copy HTML documents together with the local files they reference",
    )
    parser.add_argument("inputs", nargs="+", help="Input files or glob patterns ('**' is recursive)")
    parser.add_argument("--dest", required=True, help="Directory where output files are written")
    parser.add_argument("--cwd", help="Directory that input patterns are resolved against")
    parser.add_argument("--base", help="Root for output paths and '/'-prefixed URLs (default: cwd)")
    parser.add_argument(
        "--schemeless-fix",
        metavar="SCHEME",
        help="Scheme prepended to protocol-relative URLs (default: http)",
    )
    parser.add_argument(
        "--norec-dir",
        action="append",
        default=[],
        metavar="NAME",
        help="Copy files under this directory name without scanning them (repeatable)",
    )
    parser.add_argument(
        "--skip",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Leave URLs matching this fnmatch pattern untouched (repeatable)",
    )
    parser.add_argument(
        "--blacklist",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Do not copy or rewrite URLs matching this fnmatch pattern (repeatable)",
    )
    parser.add_argument("--prefix", help="Place copied dependencies under this subdirectory")
    parser.add_argument("--log-dir", help="Also write rotating log files to this directory")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> int:
    initialize_logging(args.log_dir, logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = CopyConfig(
            cwd=args.cwd,
            base=args.base,
            schemeless_url_fix=args.schemeless_fix,
            norec_dir=args.norec_dir or None,
            skip_fn=_pattern_predicate(args.skip),
            blacklist_fn=_pattern_predicate(args.blacklist),
            overwrite_path=_prefix_remap(args.prefix),
        )
        files = FileManager(args.dest, cwd=config.cwd, base=config.base)
        copier = HtmlCopier(config)
        start = time.perf_counter()
        stats = files.write_outputs(copier.process(files.read_inputs(args.inputs)))
    except HtmlcprError as e:
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.error(f"File error: {e}")
        return 1

    logger.info(f"Finished in {time.perf_counter() - start:.2f}s ({stats['files']} files)")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    sys.exit(run(parse_args(argv)))


if __name__ == "__main__":
    main()

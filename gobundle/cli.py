"""Command line interface for gobundle."""

import argparse
import logging
import os
import sys

from gobundle.bundler import bundle
from gobundle.context import BuildContext, ContextResolutionError, resolve_build_context
from gobundle.errors import GobundleError
from gobundle.materializer import DEFAULT_SKIP_NAMES, MaterializeConfig
from gobundle.metadata import GoListProvider


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Configure the gobundle logger.

    Info level reports the dependency count and workspace size. ``-v`` adds every
    ``go list`` call, each located package, and each copied directory. ``-q``
    leaves only ambiguous-vendoring warnings and errors.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Configured logger.
    """

    level: int = logging.INFO
    if quiet >= 2:
        level = logging.ERROR
    elif quiet >= 1:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger: logging.Logger = logging.getLogger("gobundle")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def _build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="gobundle",
        description=(
            "Copy a Go program and its non-standard dependencies (as vendor/<import path>) "
            "into a temporary directory and run a command from there."
        ),
        epilog="For example:\n\tgobundle tar zcvf $PWD/app.tar.gz .",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--root",
        type=str,
        default=".",
        help="Program directory (must hold package main). Defaults to the current directory.",
    )
    parser.add_argument(
        "--goos",
        type=str,
        default=None,
        help="GOOS used when locating dependencies (default: linux).",
    )
    parser.add_argument(
        "--goarch",
        type=str,
        default=None,
        help="GOARCH used when locating dependencies (default: amd64).",
    )
    parser.add_argument(
        "--tags",
        type=str,
        default=None,
        help="Comma-separated build tags used when locating dependencies.",
    )
    parser.add_argument(
        "--no-cgo",
        action="store_true",
        help="Ignore cgo files when locating dependencies.",
    )
    parser.add_argument(
        "--go",
        dest="go_binary",
        type=str,
        default=None,
        help="Go toolchain executable (default: go).",
    )
    parser.add_argument(
        "--skip",
        action="append",
        default=[],
        metavar="NAME",
        help=f"Extra file or directory name to leave out (always skipped: {', '.join(sorted(DEFAULT_SKIP_NAMES))}).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass twice to only show errors.",
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Deploy command, run with the bundle as its working directory.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the gobundle CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    parser: argparse.ArgumentParser = _build_parser()
    ns = parser.parse_args(argv)
    if len(ns.command) == 0:
        parser.print_help(file=sys.stderr)
        return 1

    logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)
    try:
        context: BuildContext = resolve_build_context(
            goos=ns.goos,
            goarch=ns.goarch,
            tags=ns.tags,
            go_binary=ns.go_binary,
            cgo_enabled=not ns.no_cgo,
        )
        logger.debug(f"gobundle: using build context {context}")
        if os.path.isdir(ns.root) is False:
            raise GobundleError(f"program directory does not exist: {ns.root}")

        bundle(
            root_dir=ns.root,
            command=list(ns.command),
            provider=GoListProvider(context=context, logger=logger),
            config=MaterializeConfig(skip_names=DEFAULT_SKIP_NAMES | frozenset(ns.skip)),
            logger=logger,
        )
    except (GobundleError, ContextResolutionError) as e:
        print(f"gobundle: Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Main CLI entry point for repofetch.

Provides commands: fetch
"""

import argparse
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from repofetch import __version__
from repofetch.cli.fetch import fetch_command

logger = logging.getLogger("repofetch.cli")


def setup_logging(verbose: bool = False, console: Optional[Console] = None) -> None:
    """Setup logging configuration with Rich integration.

    Args:
        verbose: Enable verbose logging.
        console: Rich Console instance for coordinated output (optional).
    """
    level = logging.DEBUG if verbose else logging.INFO

    # Create RichHandler for coordinated output with progress display
    handler = RichHandler(
        console=console,
        show_time=verbose,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=verbose,
        log_time_format="[%H:%M:%S]",
    )

    # Configure root logger
    logging.basicConfig(
        level=level,
        format="%(message)s" if not verbose else "[%(name)s] %(message)s",
        handlers=[handler],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repofetch",
        description="repofetch - fetch a git repository or one of its subdirectories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show raw git output and debug logging instead of progress bars",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    fetch_parser = subparsers.add_parser(
        "fetch",
        help="Clone a repository, or extract one subdirectory of it",
    )
    fetch_parser.add_argument("url", help="Repository URL or local path")
    fetch_parser.add_argument("dest", help="Target directory")
    fetch_parser.add_argument(
        "-r",
        "--ref",
        default="",
        help="Branch, tag or commit to check out (default: remote HEAD)",
    )
    fetch_parser.add_argument(
        "-s",
        "--subdir",
        help=(
            "Fetch only this repository-relative directory using a sparse "
            "checkout; its contents are copied into DEST"
        ),
    )
    fetch_parser.add_argument(
        "--timeout",
        type=float,
        help="Abort the fetch after this many seconds (env: REPOFETCH_TIMEOUT)",
    )
    fetch_parser.add_argument(
        "--git",
        help="git executable to run (env: REPOFETCH_GIT, default: git)",
    )
    return parser


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point.

    Returns:
        int: Exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    console = Console(stderr=True)
    setup_logging(args.verbose, console)

    if args.command == "fetch":
        return fetch_command(args, console=console)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())

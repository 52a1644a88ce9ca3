"""Fetch command implementation."""

import logging
import signal
import threading
from pathlib import Path
from typing import Optional

from rich.console import Console

from repofetch.config import FetcherConfig
from repofetch.errors import CancellationError, FetchError
from repofetch.fetch.git_client import GitClient
from repofetch.fetch.git_fetcher import FetchRequest, GitFetcher
from repofetch.runtime.cancel import CancelToken
from repofetch.runtime.progress import create_tracker
from repofetch.utils.fs import remove_tree
from repofetch.utils.metrics import get_metrics

logger = logging.getLogger("repofetch.cli.fetch")

EXIT_INTERRUPTED = 130


def fetch_command(args, console: Optional[Console] = None) -> int:
    """Execute fetch command.

    Args:
        args: Parsed command-line arguments containing:
            - url: Repository URL or path
            - dest: Target directory
            - ref: Branch, tag or commit (optional)
            - subdir: Fetch only this subdirectory (optional)
            - timeout: Overall deadline in seconds (optional)
            - git: git executable (optional)
            - verbose: Log raw git output

    Returns:
        int: Exit code (0 for success, 1 for failure, 130 when interrupted).
    """
    try:
        config = FetcherConfig.from_env(
            verbose=True if getattr(args, "verbose", False) else None,
            timeout=getattr(args, "timeout", None),
            git_binary=getattr(args, "git", None),
        )
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    target = Path(args.dest).expanduser()
    created_target = not target.exists()
    request = FetchRequest(
        repo_url=args.url,
        ref=getattr(args, "ref", None) or "",
        target_dir=target,
        sub_path=getattr(args, "subdir", None),
    )

    tracker = create_tracker(config.verbose, console)
    metrics = get_metrics()
    fetcher = GitFetcher(GitClient(), tracker=tracker, metrics=metrics, config=config)
    token = CancelToken(timeout=config.timeout)

    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        previous_handler = signal.signal(
            signal.SIGINT, lambda *_: token.cancel("interrupted")
        )

    try:
        fetcher.run(request, token)
        return 0
    except CancellationError as exc:
        logger.error("Fetch cancelled: %s", exc)
        _cleanup(target, created_target)
        return EXIT_INTERRUPTED if token.reason == "interrupted" else 1
    except FetchError as exc:
        logger.error("Fetch failed: %s", exc)
        _cleanup(target, created_target)
        return 1
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)
        tracker.clear()
        if config.verbose:
            metrics.log_summary()


def _cleanup(target: Path, created: bool) -> None:
    """Remove a target directory this run created."""
    if not created:
        return
    try:
        remove_tree(target)
    except OSError as exc:
        logger.warning("Could not remove %s: %s", target, exc)

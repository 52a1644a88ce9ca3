"""Git invocations for full and sparse clones.

Every git command runs through a `CommandRunner`. Its stderr is drained on
a dedicated thread while the calling thread waits for the exit status, so
git can never block on a full pipe while we block on its exit.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from pathlib import Path
from typing import IO, Deque, List, Optional, Union

from repofetch.config import FetcherConfig
from repofetch.errors import CancellationError, ProcessExitError, ValidationError
from repofetch.fetch.reporter import Reporter, parse_progress_line
from repofetch.runtime.cancel import CancelToken
from repofetch.runtime.runner import CommandRunner, SubprocessRunner
from repofetch.utils.validation import validate_repo_url, validate_sub_path

logger = logging.getLogger("repofetch.fetch.git_client")

DIAGNOSTIC_LINES = 20
READER_POLL = 0.1

GIT_ENV = {
    # Never wait for credentials on a terminal nobody is looking at
    "GIT_TERMINAL_PROMPT": "0",
}

PathArg = Union[str, Path]


class GitClient:
    """Runs git clone/checkout commands.

    Args:
        runner: Process factory (defaults to real subprocesses).
    """

    def __init__(self, runner: Optional[CommandRunner] = None) -> None:
        self.runner = runner or SubprocessRunner(env=GIT_ENV)

    def clone(
        self,
        token: CancelToken,
        repo_url: str,
        ref: str,
        target_dir: PathArg,
        config: Optional[FetcherConfig] = None,
        reporter: Optional[Reporter] = None,
    ) -> None:
        """Clone ``repo_url`` and check out ``ref`` (HEAD if empty) into ``target_dir``.

        Raises:
            ValidationError: Unsafe URL or ref.
            SpawnError: git could not be started.
            ProcessExitError: git exited non-zero.
            CancellationError: ``token`` fired while git was running.
        """
        config = config or FetcherConfig()
        self._check_args(repo_url, ref)
        target = Path(target_dir)
        target.parent.mkdir(parents=True, exist_ok=True)

        self._run(
            token,
            ["clone", "--no-checkout", "--progress", "--", repo_url, str(target)],
            config,
            reporter,
        )
        self._checkout(token, target, ref, config, reporter)

    def clone_sparse(
        self,
        token: CancelToken,
        repo_url: str,
        ref: str,
        sub_path: str,
        target_dir: PathArg,
        config: Optional[FetcherConfig] = None,
        reporter: Optional[Reporter] = None,
    ) -> None:
        """Fetch only the tree under ``sub_path`` into an empty ``target_dir``.

        Blobs are fetched lazily (``--filter=blob:none``) and the worktree
        is restricted to ``sub_path`` before anything is checked out.
        """
        config = config or FetcherConfig()
        self._check_args(repo_url, ref)
        if not validate_sub_path(sub_path):
            raise ValidationError(f"invalid subdirectory: {sub_path!r}")

        target = Path(target_dir)
        if target.exists() and any(target.iterdir()):
            raise ValidationError(f"sparse clone target is not empty: {target}")
        target.parent.mkdir(parents=True, exist_ok=True)

        # Phase 1: a checkout restricted to the subtree
        self._run(
            token,
            [
                "clone",
                "--no-checkout",
                "--filter=blob:none",
                "--sparse",
                "--progress",
                "--",
                repo_url,
                str(target),
            ],
            config,
            reporter,
        )
        self._run(
            token,
            ["-C", str(target), "sparse-checkout", "set", "--", sub_path.strip("/")],
            config,
            reporter,
        )
        # Phase 2: materialize it
        self._checkout(token, target, ref, config, reporter)

    def _checkout(
        self,
        token: CancelToken,
        target: Path,
        ref: str,
        config: FetcherConfig,
        reporter: Optional[Reporter],
    ) -> None:
        self._run(
            token,
            ["-C", str(target), "checkout", "--force", "--progress", ref or "HEAD", "--"],
            config,
            reporter,
        )

    @staticmethod
    def _check_args(repo_url: str, ref: str) -> None:
        if not validate_repo_url(repo_url):
            raise ValidationError(f"invalid repository URL: {repo_url!r}")
        if ref and (ref.startswith("-") or ref != ref.strip()):
            raise ValidationError(f"invalid ref: {ref!r}")

    def _run(
        self,
        token: CancelToken,
        args: List[str],
        config: FetcherConfig,
        reporter: Optional[Reporter],
    ) -> None:
        handle = self.runner.command(token, config.git_binary, *args)
        handle.start()

        diagnostics: Deque[str] = deque(maxlen=DIAGNOSTIC_LINES)
        reader = threading.Thread(
            target=self._drain,
            args=(handle.stderr, reporter, config.verbose, diagnostics),
            name="git-stderr",
            daemon=True,
        )
        reader.start()

        try:
            returncode = handle.wait()
        finally:
            self._join_reader(reader, token)

        if reporter is not None:
            reporter.finish()

        if returncode != 0:
            raise ProcessExitError([config.git_binary, *args], returncode, "\n".join(diagnostics))

    @staticmethod
    def _join_reader(reader: threading.Thread, token: CancelToken) -> None:
        """Wait for the stderr reader to hit EOF.

        Forked git helpers may keep the pipe open after git itself exited;
        cancellation stops the wait.
        """
        while reader.is_alive():
            reader.join(READER_POLL)
            if reader.is_alive() and token.cancelled:
                raise CancellationError(f"git output not drained: {token.reason}")

    @staticmethod
    def _drain(
        stream: IO[str],
        reporter: Optional[Reporter],
        verbose: bool,
        diagnostics: Deque[str],
    ) -> None:
        try:
            for raw in stream:
                line = raw.rstrip()
                if not line:
                    continue

                if parse_progress_line(line) is None:
                    diagnostics.append(line.strip())

                if reporter is not None:
                    try:
                        reporter.report_line(line)
                    except Exception as e:  # noqa: BLE001
                        logger.debug("Ignoring unparseable git output %r: %s", line, e)
                elif verbose:
                    logger.info("%s", line)
                else:
                    logger.debug("%s", line)
        except (OSError, ValueError) as e:
            logger.debug("git stderr closed early: %s", e)
        finally:
            try:
                stream.close()
            except OSError:
                pass

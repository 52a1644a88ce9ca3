"""Repository fetch orchestration.

`GitFetcher` wraps `GitClient` with input validation, user-facing
messages, progress reporting, metrics and, for subdirectory fetches, a
temporary sparse checkout that is copied into place and then removed.

A fetch moves through these states::

    IDLE -> VALIDATING -> CLONING -> (EXTRACTING) -> DONE
                 |            |            |
                 +------------+------------+--> FAILED
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import NoReturn, Optional, Union

from repofetch.config import FetcherConfig
from repofetch.errors import (
    ExtractionError,
    FetchError,
    SubdirectoryNotFoundError,
    ValidationError,
)
from repofetch.fetch.git_client import GitClient
from repofetch.fetch.reporter import CloneReporter, Reporter
from repofetch.runtime.cancel import CancelToken
from repofetch.runtime.progress import NoopProgressTracker, ProgressTracker
from repofetch.utils.fs import TreeCopier, copy_tree, create_temp_dir, remove_tree
from repofetch.utils.metrics import MetricsSink
from repofetch.utils.validation import validate_safe_path, validate_sub_path

logger = logging.getLogger("repofetch.fetch.git_fetcher")

PathArg = Union[str, Path]


class FetchState(Enum):
    """Lifecycle of a single fetch."""

    IDLE = "idle"
    VALIDATING = "validating"
    CLONING = "cloning"
    EXTRACTING = "extracting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class FetchRequest:
    """What to fetch and where to put it."""

    repo_url: str
    ref: str
    target_dir: Path
    sub_path: Optional[str] = None

    @property
    def is_sparse(self) -> bool:
        return self.sub_path is not None


@dataclass
class CloneOutcome:
    """Result of one fetch attempt."""

    success: bool
    error: Optional[BaseException] = None
    state: FetchState = FetchState.DONE


@dataclass
class _Attempt:
    """Per-call state; fetchers are shared across threads."""

    request: FetchRequest
    state: FetchState = FetchState.IDLE
    started: bool = False
    reported: bool = False

    def transition(self, state: FetchState) -> None:
        logger.debug(
            "Fetch %s: %s -> %s", self.request.repo_url, self.state.value, state.value
        )
        self.state = state


class GitFetcher:
    """Fetches repositories, or one subdirectory of them, with progress.

    Args:
        client: Git client used for the clone itself.
        tracker: Progress display; rows are set while git runs.
        metrics: Receives clone_started/clone_finished once per attempt.
        config: Fetch options; ``verbose`` logs raw git output instead of
            rendering progress rows.
        copier: Copies the extracted subdirectory into the target.
    """

    def __init__(
        self,
        client: Optional[GitClient] = None,
        tracker: Optional[ProgressTracker] = None,
        metrics: Optional[MetricsSink] = None,
        config: Optional[FetcherConfig] = None,
        copier: TreeCopier = copy_tree,
    ) -> None:
        self.client = client or GitClient()
        self.tracker = tracker or NoopProgressTracker()
        self.metrics = metrics
        self.config = config or FetcherConfig()
        self.copier = copier

    def run(self, request: FetchRequest, token: Optional[CancelToken] = None) -> None:
        """Dispatch a request to `fetch` or `fetch_subdirectory`."""
        if request.is_sparse:
            self.fetch_subdirectory(
                request.repo_url,
                request.ref,
                request.sub_path or "",
                request.target_dir,
                token=token,
            )
        else:
            self.fetch(request.repo_url, request.ref, request.target_dir, token=token)

    def fetch(
        self,
        repo_url: str,
        ref: str,
        target_dir: PathArg,
        token: Optional[CancelToken] = None,
    ) -> None:
        """Clone the whole repository into ``target_dir``.

        On failure the target keeps whatever git left behind.

        Raises:
            FetchError: Any validation, clone or cancellation failure.
        """
        attempt = _Attempt(FetchRequest(repo_url, ref, Path(target_dir)))
        attempt.transition(FetchState.VALIDATING)
        if not repo_url:
            self._fail(attempt, ValidationError("repoURL is required"))

        token = self._token(token)
        logger.info("Cloning repo: %s → %s", repo_url, target_dir)
        self._begin(attempt)

        try:
            self.client.clone(
                token,
                repo_url,
                ref,
                attempt.request.target_dir,
                self.config,
                self._reporter(repo_url),
            )
        except FetchError as e:
            e.phase = "clone"
            self._fail(attempt, e)
        except OSError as e:
            self._fail(attempt, _wrap_os_error(e, "clone"))
        except BaseException as e:
            self._abort(attempt, e)
            raise

        self._finish(attempt)
        logger.info("Clone repo complete: %s", repo_url)

    def fetch_subdirectory(
        self,
        repo_url: str,
        ref: str,
        sub_path: str,
        target_dir: PathArg,
        token: Optional[CancelToken] = None,
    ) -> None:
        """Fetch only ``sub_path`` of the repository into ``target_dir``.

        The sparse checkout lives in a temporary workspace that is removed
        before this returns, whatever the outcome.

        Raises:
            FetchError: Any validation, clone, extraction or cancellation failure.
        """
        attempt = _Attempt(FetchRequest(repo_url, ref, Path(target_dir), sub_path))
        attempt.transition(FetchState.VALIDATING)
        if not repo_url:
            self._fail(attempt, ValidationError("repoURL is required"))
        if not sub_path:
            self._fail(attempt, ValidationError("subPath is required"))
        if not validate_sub_path(sub_path):
            self._fail(attempt, ValidationError(f"invalid subPath: {sub_path!r}"))

        token = self._token(token)
        try:
            workspace = create_temp_dir(self.config.temp_prefix)
        except OSError as e:
            self._fail(attempt, FetchError(f"failed to create temp directory: {e}"))

        try:
            logger.info("Cloning template: %s → extracting %s", repo_url, sub_path)
            self._begin(attempt)

            try:
                self.client.clone_sparse(
                    token,
                    repo_url,
                    ref,
                    sub_path,
                    workspace,
                    self.config,
                    self._reporter(repo_url),
                )
            except FetchError as e:
                e.phase = "clone"
                self._fail(attempt, e)
            except OSError as e:
                self._fail(attempt, _wrap_os_error(e, "clone"))

            attempt.transition(FetchState.EXTRACTING)
            try:
                self._extract(workspace, sub_path, repo_url, attempt.request.target_dir)
            except FetchError as e:
                e.phase = "extraction"
                self._fail(attempt, e)
        except BaseException as e:
            # FetchErrors were already reported by _fail
            self._abort(attempt, e)
            raise
        finally:
            try:
                remove_tree(workspace)
            except OSError as e:
                logger.warning("Failed to remove temp workspace %s: %s", workspace, e)

        self._finish(attempt)
        logger.info("Template extraction complete: %s", sub_path)

    def _extract(self, workspace: Path, sub_path: str, repo_url: str, target_dir: Path) -> None:
        src = workspace / sub_path.strip("/")
        if not src.is_dir() or not validate_safe_path(sub_path.strip("/"), workspace):
            raise SubdirectoryNotFoundError(
                f"template subdirectory {sub_path} not found in {repo_url}"
            )
        try:
            self.copier(src, target_dir)
        except OSError as e:
            raise ExtractionError(f"failed to copy template: {e}") from e

    def _token(self, token: Optional[CancelToken]) -> CancelToken:
        if token is not None:
            return token
        return CancelToken(timeout=self.config.timeout)

    def _reporter(self, repo_url: str) -> Optional[Reporter]:
        # Verbose runs log raw git output instead of progress rows
        if self.config.verbose:
            return None
        return CloneReporter(repo_url, self.tracker, min_step=self.config.progress_step)

    def _begin(self, attempt: _Attempt) -> None:
        attempt.transition(FetchState.CLONING)
        attempt.started = True
        if self.metrics is None:
            return
        try:
            self.metrics.clone_started(attempt.request.repo_url)
        except Exception as e:  # noqa: BLE001
            logger.warning("Metrics clone_started failed: %s", e)

    def _finish(self, attempt: _Attempt) -> None:
        try:
            self.tracker.render()
        except Exception as e:  # noqa: BLE001
            logger.debug("Progress render failed: %s", e)
        attempt.transition(FetchState.DONE)
        self._report(attempt, CloneOutcome(success=True, state=FetchState.DONE))

    def _fail(self, attempt: _Attempt, error: FetchError) -> NoReturn:
        attempt.transition(FetchState.FAILED)
        self._report(attempt, CloneOutcome(success=False, error=error, state=FetchState.FAILED))
        raise error

    def _abort(self, attempt: _Attempt, error: BaseException) -> None:
        """Record an unexpected exception (interrupts included) as a failure."""
        if attempt.state is not FetchState.FAILED:
            attempt.transition(FetchState.FAILED)
        self._report(attempt, CloneOutcome(success=False, error=error, state=FetchState.FAILED))

    def _report(self, attempt: _Attempt, outcome: CloneOutcome) -> None:
        # Validation failures happen before the attempt starts: nothing to report
        if self.metrics is None or not attempt.started or attempt.reported:
            return
        attempt.reported = True
        try:
            self.metrics.clone_finished(attempt.request.repo_url, outcome.error)
        except Exception as e:  # noqa: BLE001
            logger.warning("Metrics clone_finished failed: %s", e)


def _wrap_os_error(error: OSError, phase: str) -> FetchError:
    wrapped = FetchError(str(error), phase=phase)
    wrapped.__cause__ = error
    return wrapped

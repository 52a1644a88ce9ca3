"""Progress display surfaces.

A `ProgressTracker` keeps one row per progress module (for example
"receiving-objects") and renders the current row set. Implementations:

- `RichProgressTracker`: live bars on a terminal via rich.progress
- `LogProgressTracker`: logs changed rows when rendered (CI, pipes)
- `NoopProgressTracker`: discards everything

All implementations are safe to call from the git stderr reader thread
and the calling thread at the same time.
"""

# Display errors are shielded so a broken terminal never aborts a fetch.

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

logger = logging.getLogger("repofetch.runtime.progress")

DEFAULT_MAX_ROWS = 10


@dataclass(frozen=True)
class ProgressRow:
    """Snapshot of one tracked progress module."""

    module_id: str
    percent: int
    label: str


class ProgressTracker(Protocol):
    """Set-by-key progress display."""

    def set(self, module_id: str, percent: int, label: str) -> None:
        ...

    def render(self) -> None:
        ...

    def clear(self) -> None:
        ...

    def progress_rows(self) -> List[ProgressRow]:
        ...


class _RowStore:
    """Ordered, size-bounded row set guarded by a lock."""

    def __init__(self, max_rows: int = DEFAULT_MAX_ROWS) -> None:
        self.max_rows = max_rows
        self._rows: "OrderedDict[str, ProgressRow]" = OrderedDict()
        self._lock = threading.Lock()

    def put(self, row: ProgressRow) -> Optional[str]:
        """Insert or replace a row.

        Returns:
            Optional[str]: ID of the row evicted to respect max_rows.
        """
        evicted = None
        with self._lock:
            if row.module_id not in self._rows and len(self._rows) >= self.max_rows:
                evicted, _ = self._rows.popitem(last=False)
            self._rows[row.module_id] = row
        return evicted

    def snapshot(self) -> List[ProgressRow]:
        with self._lock:
            return list(self._rows.values())

    def clear(self) -> None:
        with self._lock:
            self._rows.clear()


class NoopProgressTracker:
    """Tracker that records nothing."""

    def set(self, module_id: str, percent: int, label: str) -> None:
        return None

    def render(self) -> None:
        return None

    def clear(self) -> None:
        return None

    def progress_rows(self) -> List[ProgressRow]:
        return []


class LogProgressTracker:
    """Tracker for non-interactive output.

    Rows are kept in memory and written to the logger on `render`, each row
    at most once per distinct percentage.
    """

    def __init__(
        self,
        max_rows: int = DEFAULT_MAX_ROWS,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._store = _RowStore(max_rows)
        self._log = log or logger
        self._rendered: Dict[str, int] = {}
        self._render_lock = threading.Lock()

    def set(self, module_id: str, percent: int, label: str) -> None:
        self._store.put(ProgressRow(module_id, percent, label))

    def render(self) -> None:
        rows = self._store.snapshot()
        with self._render_lock:
            for row in rows:
                if self._rendered.get(row.module_id) == row.percent:
                    continue
                self._rendered[row.module_id] = row.percent
                self._log.info("%s: %d%%", row.label, row.percent)

    def clear(self) -> None:
        self._store.clear()
        with self._render_lock:
            self._rendered.clear()

    def progress_rows(self) -> List[ProgressRow]:
        return self._store.snapshot()


class RichProgressTracker:
    """Live progress bars on a terminal.

    The underlying `rich.progress.Progress` starts on the first `set` and
    refreshes itself in the background; `render` forces a refresh and
    `clear` stops the live display and forgets every row.
    """

    def __init__(
        self,
        max_rows: int = DEFAULT_MAX_ROWS,
        console: Optional[Console] = None,
    ) -> None:
        # Use stderr for Console to align with logging conventions
        self.console = console or Console(stderr=True)
        self._store = _RowStore(max_rows)
        self._lock = threading.Lock()
        self._task_ids: Dict[str, TaskID] = {}
        self._started = False
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            TaskProgressColumn(),
            TextColumn("•"),
            TimeElapsedColumn(),
            console=self.console,
            expand=False,
        )

    def set(self, module_id: str, percent: int, label: str) -> None:
        evicted = self._store.put(ProgressRow(module_id, percent, label))
        with self._lock:
            try:
                if not self._started:
                    self._progress.start()
                    self._started = True
                if evicted is not None and evicted in self._task_ids:
                    self._progress.remove_task(self._task_ids.pop(evicted))
                task_id = self._task_ids.get(module_id)
                if task_id is None:
                    self._task_ids[module_id] = self._progress.add_task(
                        label, total=100, completed=percent
                    )
                else:
                    self._progress.update(task_id, completed=percent, description=label)
            except Exception as e:  # noqa: BLE001
                logger.debug("Progress display update error: %s", e)

    def render(self) -> None:
        with self._lock:
            if not self._started:
                return
            try:
                self._progress.refresh()
            except Exception as e:  # noqa: BLE001
                logger.debug("Progress display refresh error: %s", e)

    def clear(self) -> None:
        with self._lock:
            try:
                # Stop first so the final frame stays on screen
                if self._started:
                    self._progress.stop()
                for task_id in self._task_ids.values():
                    self._progress.remove_task(task_id)
            except Exception as e:  # noqa: BLE001
                logger.debug("Progress display stop error: %s", e)
            self._task_ids.clear()
            self._started = False
        self._store.clear()

    def progress_rows(self) -> List[ProgressRow]:
        return self._store.snapshot()


def create_tracker(
    verbose: bool = False,
    console: Optional[Console] = None,
    max_rows: int = DEFAULT_MAX_ROWS,
) -> ProgressTracker:
    """Pick the tracker for the current output.

    Verbose runs log raw git output, so they get no bars. Otherwise a
    terminal gets live bars and anything else gets log lines.
    """
    console = console or Console(stderr=True)
    if verbose:
        return NoopProgressTracker()
    if console.is_terminal:
        return RichProgressTracker(max_rows=max_rows, console=console)
    return LogProgressTracker(max_rows=max_rows)

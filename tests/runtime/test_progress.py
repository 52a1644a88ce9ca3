"""Tests for progress tracker implementations."""

from __future__ import annotations

import io
import logging
import threading

import pytest
from rich.console import Console

from repofetch.runtime.progress import (
    LogProgressTracker,
    NoopProgressTracker,
    ProgressRow,
    RichProgressTracker,
    create_tracker,
)


def test_log_tracker_renders_each_percentage_once(caplog: pytest.LogCaptureFixture) -> None:
    """Log tracker writes a row only when its percentage changes."""
    tracker = LogProgressTracker()
    tracker.set("receiving-objects", 50, "Receiving objects")

    with caplog.at_level(logging.INFO, logger="repofetch.runtime.progress"):
        tracker.render()
        tracker.render()
        tracker.set("receiving-objects", 100, "Receiving objects")
        tracker.render()

    messages = [r.getMessage() for r in caplog.records]
    assert messages == ["Receiving objects: 50%", "Receiving objects: 100%"]


def test_rows_replace_by_key_and_keep_order() -> None:
    """Setting an existing key replaces its row in place."""
    tracker = LogProgressTracker()
    tracker.set("a", 10, "A")
    tracker.set("b", 20, "B")
    tracker.set("a", 30, "A")

    assert tracker.progress_rows() == [ProgressRow("a", 30, "A"), ProgressRow("b", 20, "B")]


def test_oldest_row_is_evicted_beyond_max_rows() -> None:
    """The oldest row is dropped once max_rows is exceeded."""
    tracker = LogProgressTracker(max_rows=2)
    for module_id in ("a", "b", "c"):
        tracker.set(module_id, 100, module_id)

    assert [row.module_id for row in tracker.progress_rows()] == ["b", "c"]


def test_clear_forgets_rows() -> None:
    """Clear empties the row set."""
    tracker = LogProgressTracker()
    tracker.set("a", 10, "A")
    tracker.clear()

    assert tracker.progress_rows() == []


def test_concurrent_sets_are_serialized() -> None:
    """Concurrent set calls never lose rows."""
    tracker = LogProgressTracker(max_rows=100)

    def worker(n: int) -> None:
        for pct in range(101):
            tracker.set(f"module-{n}", pct, f"Module {n}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    rows = tracker.progress_rows()
    assert len(rows) == 8
    assert all(row.percent == 100 for row in rows)


def test_rich_tracker_lifecycle() -> None:
    """Rich tracker starts on first set and stops on clear."""
    console = Console(file=io.StringIO(), force_terminal=True, width=100)
    tracker = RichProgressTracker(console=console)

    tracker.set("receiving-objects", 40, "Receiving objects")
    tracker.set("receiving-objects", 100, "Receiving objects")
    tracker.render()

    assert tracker.progress_rows() == [ProgressRow("receiving-objects", 100, "Receiving objects")]

    tracker.clear()
    assert tracker.progress_rows() == []
    assert "Receiving objects" in console.file.getvalue()


def test_rich_tracker_render_before_set_is_noop() -> None:
    """Rendering before any set does not start the display."""
    tracker = RichProgressTracker(console=Console(file=io.StringIO()))

    tracker.render()
    tracker.clear()


def test_noop_tracker() -> None:
    """Noop tracker keeps no rows."""
    tracker = NoopProgressTracker()
    tracker.set("a", 1, "A")
    tracker.render()

    assert tracker.progress_rows() == []


def test_create_tracker_selection() -> None:
    """Tracker choice follows verbosity and terminal detection."""
    plain = Console(file=io.StringIO(), force_terminal=False)
    tty = Console(file=io.StringIO(), force_terminal=True)

    assert isinstance(create_tracker(verbose=True, console=tty), NoopProgressTracker)
    assert isinstance(create_tracker(console=tty), RichProgressTracker)
    assert isinstance(create_tracker(console=plain), LogProgressTracker)

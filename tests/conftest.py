"""Shared test doubles for repofetch tests."""

from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from repofetch.runtime.progress import ProgressRow
from repofetch.runtime.runner import SubprocessHandle

SUCCESS_SCRIPT = "import sys; sys.exit(0)"

FAIL_SCRIPT = (
    "import sys\n"
    "sys.stderr.write(\"Cloning into 'dest'...\\n\")\n"
    "sys.stderr.write('fatal: repository not found\\n')\n"
    "sys.exit(128)\n"
)

# Mimics `git clone --progress`: carriage-return frames, then a final line
PROGRESS_SCRIPT = (
    "import sys, time\n"
    "err = sys.stderr\n"
    "err.write(\"Cloning into 'dest'...\\n\")\n"
    "err.write('Receiving objects:  50% (5/10)\\r'); err.flush()\n"
    "time.sleep(0.01)\n"
    "err.write('Receiving objects: 100% (10/10), done.\\n')\n"
    "err.write('Resolving deltas: 100% (2/2), done.\\n')\n"
    "err.flush()\n"
)

SLEEP_SCRIPT = "import time; time.sleep(30)"


class ScriptRunner:
    """CommandRunner that runs a Python snippet in place of every git call.

    ``on_command`` sees the git argv before the snippet starts, so tests can
    fake what git would have written to disk.
    """

    def __init__(
        self,
        script: str = SUCCESS_SCRIPT,
        on_command: Optional[Callable[[List[str]], None]] = None,
    ) -> None:
        self.script = script
        self.on_command = on_command
        self.calls: List[List[str]] = []

    def command(self, token, program, *args, cwd=None):
        argv = [program, *args]
        self.calls.append(argv)
        if self.on_command is not None:
            self.on_command(argv)
        return SubprocessHandle([sys.executable, "-c", self.script], token, cwd=cwd)


class SpyTracker:
    """Records every Set and keeps the latest value per module."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.order: List[str] = []
        self.by_id: Dict[str, Tuple[int, str]] = {}
        self.history: List[Tuple[str, int]] = []
        self.renders = 0
        self.clears = 0

    def set(self, module_id: str, percent: int, label: str) -> None:
        with self._lock:
            if module_id not in self.by_id:
                self.order.append(module_id)
            self.by_id[module_id] = (percent, label)
            self.history.append((module_id, percent))

    def render(self) -> None:
        self.renders += 1

    def clear(self) -> None:
        self.clears += 1

    def progress_rows(self) -> List[ProgressRow]:
        with self._lock:
            return [ProgressRow(i, *self.by_id[i]) for i in self.order]


class RecordingMetrics:
    """MetricsSink that records calls in order."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, str, Optional[BaseException]]] = []

    def clone_started(self, repo_url: str) -> None:
        self.events.append(("started", repo_url, None))

    def clone_finished(self, repo_url: str, error) -> None:
        self.events.append(("finished", repo_url, error))


def clone_target(argv: List[str]) -> Optional[Path]:
    """Target directory of a faked `git clone` invocation."""
    if "clone" not in argv:
        return None
    return Path(argv[-1])


@pytest.fixture
def spy_tracker() -> SpyTracker:
    return SpyTracker()


@pytest.fixture
def recording_metrics() -> RecordingMetrics:
    return RecordingMetrics()

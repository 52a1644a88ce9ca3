"""Parsing of git progress output into tracker updates.

git writes progress to stderr as ``<label>: NN% (done/total)`` frames,
separated by carriage returns while a phase is running::

    remote: Counting objects: 100% (3/3), done.
    Receiving objects:  50% (5/10)
    Resolving deltas: 100% (2/2), done.

Each distinct label becomes a progress module. `CloneReporter` coalesces
bursts of updates so the display is not flooded, but always forwards the
last value of a module and its 100% frame.
"""

# Malformed lines and display errors are never fatal to a fetch.

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from repofetch.runtime.progress import ProgressTracker

logger = logging.getLogger("repofetch.fetch.reporter")

_PROGRESS_RE = re.compile(
    r"""
    ^\s*
    (?:remote:\s*)?                   # server-side phases
    (?P<label>[a-z][a-z0-9 _'-]*?)    # phase label
    \s*:\s*
    (?P<percent>\d{1,3})\s*%          # percentage, trailing text ignored
    """,
    re.IGNORECASE | re.VERBOSE,
)
_SLUG_RE = re.compile(r"[^a-z0-9]+")

DEFAULT_MIN_STEP = 5


@dataclass(frozen=True)
class ProgressEvent:
    """One parsed progress frame."""

    module_id: str
    percent: int
    label: str

    @property
    def is_terminal(self) -> bool:
        return self.percent >= 100


def module_id_for(label: str) -> str:
    """Stable row key for a phase label ("Receiving objects" -> "receiving-objects")."""
    return _SLUG_RE.sub("-", label.strip().lower()).strip("-")


def parse_progress_line(line: str) -> Optional[ProgressEvent]:
    """Parse a single stderr line.

    Returns:
        Optional[ProgressEvent]: Event for progress lines, None otherwise.
    """
    match = _PROGRESS_RE.match(line)
    if not match:
        return None
    label = " ".join(match.group("label").split())
    module_id = module_id_for(label)
    if not module_id:
        return None
    percent = min(int(match.group("percent")), 100)
    return ProgressEvent(module_id=module_id, percent=percent, label=label[:1].upper() + label[1:])


class Reporter(Protocol):
    """Consumer of raw stderr lines from a git invocation."""

    def report_line(self, line: str) -> None:
        ...

    def finish(self) -> None:
        """Called once the stream of one invocation is fully drained."""
        ...


class CloneReporter:
    """Forwards deduplicated progress events of one repository to a tracker.

    Policy per module:
    - values lower than the last one seen are dropped
    - 100% and advances of at least ``min_step`` are forwarded at once
    - smaller advances are held; the held value is forwarded when another
      module shows up or the stream ends
    - nothing is forwarded after a module's 100% frame
    """

    def __init__(
        self,
        repo_url: str,
        tracker: ProgressTracker,
        min_step: int = DEFAULT_MIN_STEP,
    ) -> None:
        self.repo_url = repo_url
        self.tracker = tracker
        self.min_step = min_step
        self._seen: Dict[str, int] = {}
        self._forwarded: Dict[str, int] = {}
        self._pending: Optional[ProgressEvent] = None
        self._current: Optional[str] = None

    def report_line(self, line: str) -> None:
        event = parse_progress_line(line)
        if event is None:
            return
        self.report(event)

    def report(self, event: ProgressEvent) -> None:
        if event.module_id != self._current:
            self._flush()
            self._current = event.module_id

        if event.percent < self._seen.get(event.module_id, 0):
            return
        self._seen[event.module_id] = event.percent

        last = self._forwarded.get(event.module_id)
        if last is not None and (last >= 100 or event.percent == last):
            return

        baseline = last if last is not None else 0
        if event.is_terminal or event.percent - baseline >= self.min_step:
            self._pending = None
            self._forward(event)
        else:
            self._pending = event

    def finish(self) -> None:
        self._flush()
        self._current = None

    def _flush(self) -> None:
        if self._pending is not None:
            event, self._pending = self._pending, None
            self._forward(event)

    def _forward(self, event: ProgressEvent) -> None:
        self._forwarded[event.module_id] = event.percent
        try:
            self.tracker.set(event.module_id, event.percent, event.label)
        except Exception as e:  # noqa: BLE001
            logger.debug("Progress tracker rejected %s: %s", event, e)

"""Clone telemetry.

`MetricsSink` is the contract the fetcher reports to: one `clone_started`
and one `clone_finished` per fetch attempt. `Metrics` is a thread-safe
local collector of counters and timers that implements the sink, so a run
can log what it fetched and how long it took.

Usage:
    from repofetch.utils.metrics import get_metrics

    metrics = get_metrics()
    fetcher = GitFetcher(client, metrics=metrics)
    ...
    metrics.log_summary()
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger("repofetch.metrics")


class MetricsSink(Protocol):
    """Receiver of clone start/finish notifications."""

    def clone_started(self, repo_url: str) -> None:
        ...

    def clone_finished(self, repo_url: str, error: Optional[BaseException]) -> None:
        ...


@dataclass
class TimerStats:
    """Statistics for a timer metric.

    Attributes:
        count: Number of times the timer was invoked.
        total: Total elapsed time in seconds.
        min: Minimum elapsed time.
        max: Maximum elapsed time.
    """

    count: int = 0
    total: float = 0.0
    min: float = float("inf")
    max: float = 0.0

    def record(self, elapsed: float) -> None:
        """Record a new timing measurement."""
        self.count += 1
        self.total += elapsed
        self.min = min(self.min, elapsed)
        self.max = max(self.max, elapsed)

    @property
    def avg(self) -> float:
        """Calculate average elapsed time."""
        return self.total / self.count if self.count > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "count": self.count,
            "total": round(self.total, 3),
            "avg": round(self.avg, 3),
            "min": round(self.min, 3) if self.min != float("inf") else 0.0,
            "max": round(self.max, 3),
        }


class Metrics:
    """Thread-safe counters and timers, usable as a `MetricsSink`.

    As a sink it counts ``clones_started``, ``clones_succeeded`` and
    ``clones_failed`` and records ``clone_duration`` per repository
    attempt.
    """

    def __init__(self) -> None:
        """Initialize metrics collection."""
        self._counters: Dict[str, int] = {}
        self._timers: Dict[str, TimerStats] = {}
        self._in_flight: Dict[str, list] = {}
        self._lock = threading.RLock()
        self._start_time = time.time()

    def increment(self, name: str, value: int = 1) -> int:
        """Increment a counter.

        Args:
            name: Counter name.
            value: Amount to increment (default 1).

        Returns:
            New counter value.
        """
        with self._lock:
            new_value = self._counters.get(name, 0) + value
            self._counters[name] = new_value
            return new_value

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def record_time(self, name: str, elapsed: float) -> None:
        with self._lock:
            if name not in self._timers:
                self._timers[name] = TimerStats()
            self._timers[name].record(elapsed)

    def get_timer(self, name: str) -> Optional[TimerStats]:
        with self._lock:
            return self._timers.get(name)

    def clone_started(self, repo_url: str) -> None:
        with self._lock:
            self.increment("clones_started")
            self._in_flight.setdefault(repo_url, []).append(time.monotonic())

    def clone_finished(self, repo_url: str, error: Optional[BaseException]) -> None:
        with self._lock:
            self.increment("clones_failed" if error is not None else "clones_succeeded")
            starts = self._in_flight.get(repo_url)
            if starts:
                self.record_time("clone_duration", time.monotonic() - starts.pop(0))
                if not starts:
                    del self._in_flight[repo_url]
        if error is not None:
            logger.debug("Clone of %s failed: %s", repo_url, error)

    def summary(self) -> Dict[str, Any]:
        """Get summary of all metrics.

        Returns:
            Dictionary containing all counters and timers.
        """
        with self._lock:
            elapsed = time.time() - self._start_time
            return {
                "elapsed_seconds": round(elapsed, 3),
                "counters": dict(self._counters),
                "timers": {name: stats.to_dict() for name, stats in self._timers.items()},
            }

    def log_summary(self, level: int = logging.INFO) -> None:
        """Log metrics summary.

        Args:
            level: Logging level (default INFO).
        """
        summary = self.summary()
        logger.log(level, "Metrics Summary:")
        logger.log(level, "  Elapsed: %.2fs", summary["elapsed_seconds"])

        if summary["counters"]:
            logger.log(level, "  Counters:")
            for name, value in sorted(summary["counters"].items()):
                logger.log(level, "    %s: %d", name, value)

        if summary["timers"]:
            logger.log(level, "  Timers:")
            for name, stats in sorted(summary["timers"].items()):
                logger.log(
                    level,
                    "    %s: count=%d, avg=%.3fs, total=%.3fs",
                    name,
                    stats["count"],
                    stats["avg"],
                    stats["total"],
                )


# Global metrics instance
_metrics: Optional[Metrics] = None
_metrics_lock = threading.Lock()


def get_metrics() -> Metrics:
    """Get the global metrics instance."""
    global _metrics
    if _metrics is None:
        with _metrics_lock:
            if _metrics is None:
                _metrics = Metrics()
    return _metrics


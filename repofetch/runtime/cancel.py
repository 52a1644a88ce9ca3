"""Cooperative cancellation for long-running fetches."""

from __future__ import annotations

import threading
import time
from typing import Optional


class CancelToken:
    """Thread-safe cancellation signal with an optional deadline.

    A token is cancelled either explicitly through :meth:`cancel` or
    implicitly once its deadline passes. Child code polls
    :attr:`cancelled`.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline: Optional[float] = (
            time.monotonic() + timeout if timeout is not None else None
        )
        self._reason = "cancelled"

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel("deadline exceeded")
            return True
        return False

    @property
    def reason(self) -> str:
        return self._reason


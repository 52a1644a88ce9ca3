"""Process creation for external tools.

`CommandRunner` hands out not-yet-started `ProcessHandle`s so that the
git client never calls `subprocess` directly and tests can substitute
their own programs.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
from typing import IO, List, Mapping, Optional, Protocol, Sequence

from repofetch.errors import CancellationError, SpawnError
from repofetch.runtime.cancel import CancelToken

logger = logging.getLogger("repofetch.runtime.runner")

# Poll interval for exit/cancel checks and grace period before SIGKILL
POLL_INTERVAL = 0.05
TERMINATE_GRACE = 2.0


class ProcessHandle(Protocol):
    """A single external process invocation."""

    argv: List[str]

    def start(self) -> None:
        """Spawn the process. Raises SpawnError on failure."""
        ...

    @property
    def stderr(self) -> IO[str]:
        """Text stream of the process's standard error."""
        ...

    def wait(self) -> int:
        """Block until exit and return the exit status.

        Raises CancellationError if the token fires first.
        """
        ...


class CommandRunner(Protocol):
    """Factory for process handles."""

    def command(
        self,
        token: CancelToken,
        program: str,
        *args: str,
        cwd: Optional[str] = None,
    ) -> ProcessHandle:
        ...


class SubprocessHandle:
    """`ProcessHandle` backed by `subprocess.Popen`.

    The child runs in its own session so cancellation can signal the whole
    process group (git forks helpers such as git-remote-https that would
    otherwise keep the stderr pipe open).
    """

    def __init__(
        self,
        argv: Sequence[str],
        token: CancelToken,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.argv = list(argv)
        self.token = token
        self.cwd = cwd
        self.env = env
        self._proc: Optional[subprocess.Popen] = None

    def start(self) -> None:
        if self._proc is not None:
            raise RuntimeError("process already started")
        if self.token.cancelled:
            raise CancellationError(f"{self.argv[0]} not started: {self.token.reason}")

        environ = None
        if self.env:
            environ = dict(os.environ)
            environ.update(self.env)

        logger.debug("Spawning: %s", " ".join(self.argv))
        try:
            self._proc = subprocess.Popen(
                self.argv,
                cwd=self.cwd,
                env=environ,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                start_new_session=(sys.platform != "win32"),
            )
        except OSError as e:
            raise SpawnError(f"could not start {self.argv[0]}: {e}") from e

    @property
    def stderr(self) -> IO[str]:
        if self._proc is None or self._proc.stderr is None:
            raise RuntimeError("process not started")
        return self._proc.stderr

    def wait(self) -> int:
        if self._proc is None:
            raise RuntimeError("process not started")

        while True:
            try:
                return self._proc.wait(timeout=POLL_INTERVAL)
            except subprocess.TimeoutExpired:
                if self.token.cancelled:
                    self._terminate()
                    raise CancellationError(
                        f"{self.argv[0]} {self.token.reason}"
                    ) from None
            except BaseException:
                # The child lives in its own session and misses Ctrl-C
                self.token.cancel("interrupted")
                self._terminate()
                raise

    def _terminate(self) -> None:
        """Stop the process group: SIGTERM, then SIGKILL after a grace period."""
        proc = self._proc
        if proc is None or proc.poll() is not None:
            return

        logger.debug("Terminating pid %s (%s)", proc.pid, self.token.reason)
        self._signal(signal.SIGTERM)
        try:
            proc.wait(timeout=TERMINATE_GRACE)
            return
        except subprocess.TimeoutExpired:
            pass

        logger.debug("Killing pid %s after %.1fs grace", proc.pid, TERMINATE_GRACE)
        self._signal(signal.SIGKILL if hasattr(signal, "SIGKILL") else signal.SIGTERM)
        proc.wait()

    def _signal(self, sig: int) -> None:
        proc = self._proc
        assert proc is not None
        try:
            if sys.platform != "win32":
                os.killpg(proc.pid, sig)
            else:
                proc.send_signal(sig)
        except ProcessLookupError:
            pass


class SubprocessRunner:
    """Production `CommandRunner` using the real executables on PATH."""

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        self.env = dict(env) if env else {}

    def command(
        self,
        token: CancelToken,
        program: str,
        *args: str,
        cwd: Optional[str] = None,
    ) -> SubprocessHandle:
        return SubprocessHandle([program, *args], token, cwd=cwd, env=self.env)

"""Error taxonomy for repository fetches.

All errors derive from :class:`FetchError`. The fetcher attaches the phase
in which an error surfaced (``clone`` or ``extraction``) without changing
its type, so callers can still tell a cancellation from an exit failure.
"""

from __future__ import annotations

from typing import Optional, Sequence


def _command_name(argv: Sequence[str]) -> str:
    """Program and subcommand, skipping a leading ``-C <dir>``."""
    parts = list(argv)
    if len(parts) > 3 and parts[1] == "-C":
        parts = [parts[0]] + parts[3:]
    return " ".join(parts[:2])


class FetchError(Exception):
    """Base class for every fetch failure."""

    def __init__(self, message: str, phase: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.phase = phase

    def __str__(self) -> str:
        if self.phase:
            return f"{self.phase} failed: {self.message}"
        return self.message


class ValidationError(FetchError):
    """A required input is missing or unsafe. Raised before any I/O."""


class SpawnError(FetchError):
    """The external process could not be started."""


class ProcessExitError(FetchError):
    """The external process exited with a non-zero status."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: int,
        diagnostics: str = "",
        phase: Optional[str] = None,
    ) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.diagnostics = diagnostics
        message = f"{_command_name(self.argv)} exited with status {returncode}"
        if diagnostics:
            message = f"{message}: {diagnostics}"
        super().__init__(message, phase=phase)


class CancellationError(FetchError):
    """The cancel token fired while the process was running."""


class ExtractionError(FetchError):
    """Copying the sparse checkout into the target directory failed."""


class SubdirectoryNotFoundError(ExtractionError):
    """The requested subdirectory is absent from the sparse checkout."""

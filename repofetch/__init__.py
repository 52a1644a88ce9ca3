"""repofetch: fetch git repositories, or a subdirectory of one, with live progress."""

from repofetch.config import FetcherConfig
from repofetch.errors import (
    CancellationError,
    ExtractionError,
    FetchError,
    ProcessExitError,
    SpawnError,
    SubdirectoryNotFoundError,
    ValidationError,
)
from repofetch.fetch.git_client import GitClient
from repofetch.fetch.git_fetcher import CloneOutcome, FetchRequest, FetchState, GitFetcher
from repofetch.runtime.cancel import CancelToken

__version__ = "0.1.0"

__all__ = [
    "CancelToken",
    "CancellationError",
    "CloneOutcome",
    "ExtractionError",
    "FetchError",
    "FetchRequest",
    "FetchState",
    "FetcherConfig",
    "GitClient",
    "GitFetcher",
    "ProcessExitError",
    "SpawnError",
    "SubdirectoryNotFoundError",
    "ValidationError",
    "__version__",
]

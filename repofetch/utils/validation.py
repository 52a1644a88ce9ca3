"""Input validation for values that end up on a git command line or path."""

import logging
from pathlib import Path, PurePosixPath

logger = logging.getLogger("repofetch.utils.validation")

_FORBIDDEN_CHARS = ("\x00", "\n", "\r")


def validate_repo_url(url: str) -> bool:
    """Validate a repository URL or path before passing it to git.

    Checks:
    1. Not empty.
    2. Does not start with '-' (prevent argument injection).
    3. No NUL or line breaks.

    Local paths and scp-like ``user@host:path`` remotes are accepted; git
    itself decides whether the remote is reachable.

    Args:
        url: URL string to validate.

    Returns:
        bool: True if valid, False otherwise.
    """
    if not url or not url.strip():
        return False

    if url.startswith("-"):
        logger.warning("URL starts with '-': %s", url)
        return False

    if any(ch in url for ch in _FORBIDDEN_CHARS):
        logger.warning("URL contains control characters: %r", url)
        return False

    return True


def validate_sub_path(sub_path: str) -> bool:
    """Validate a repository-relative subdirectory.

    The path must be relative, must not start with '-', and must name a
    directory strictly below the repository root: '.', '..' and '.git'
    components are rejected.
    """
    if not sub_path or not sub_path.strip():
        return False
    if sub_path.startswith("-") or any(ch in sub_path for ch in _FORBIDDEN_CHARS):
        logger.warning("Unsafe subdirectory: %r", sub_path)
        return False

    normalized = sub_path.replace("\\", "/")
    posix = PurePosixPath(normalized)
    if posix.is_absolute() or ".." in posix.parts:
        logger.warning("Subdirectory escapes the repository: %s", sub_path)
        return False

    # PurePosixPath drops "." components, so check the raw segments
    segments = [s for s in normalized.split("/") if s]
    if not posix.parts or "." in segments or ".git" in segments:
        logger.warning("Subdirectory does not name a tree inside the repository: %s", sub_path)
        return False
    return True


def validate_safe_path(path: "str | Path", base_dir: Path) -> bool:
    """Validate that a path resolves to a location inside the base directory.

    Prevents path traversal, including through symlinks inside a checkout.

    Args:
        path: Path to validate (string or Path object).
        base_dir: The trusted base directory.

    Returns:
        bool: True if safe, False otherwise.
    """
    try:
        base_dir = base_dir.resolve()
        target_path = (base_dir / path).resolve()
    except (OSError, RuntimeError) as e:
        logger.warning("Failed to validate path %s: %s", path, e)
        return False

    try:
        target_path.relative_to(base_dir)
        return True
    except ValueError:
        logger.warning("Path traversal detected: %s is not inside %s", target_path, base_dir)
        return False

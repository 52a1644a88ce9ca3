"""Filesystem helpers: temporary workspaces and tree copies."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import sys
import tempfile
from pathlib import Path
from typing import Callable, Union

logger = logging.getLogger("repofetch.utils.fs")

PathLike = Union[str, Path]

# Signature of a tree copier: (source dir, destination dir) -> None
TreeCopier = Callable[[Path, Path], None]

FALLBACK_TEMP_BASE = Path.home() / ".repofetch" / "tmp"


def create_temp_dir(prefix: str = "repofetch-") -> Path:
    """Create a temporary directory.

    Tries the system temp directory first and falls back to
    ``~/.repofetch/tmp`` when it is not writable.

    Raises:
        OSError: If neither location can be used.
    """
    try:
        return Path(tempfile.mkdtemp(prefix=prefix))
    except OSError as e:
        logger.warning("System temp dir unusable (%s), falling back to %s", e, FALLBACK_TEMP_BASE)
        try:
            FALLBACK_TEMP_BASE.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(prefix=prefix, dir=FALLBACK_TEMP_BASE))
        except OSError as fallback_error:
            raise OSError(
                f"failed to create temp directory in system temp ({e}) "
                f"and fallback location ({fallback_error})"
            ) from fallback_error


def remove_tree(path: PathLike) -> None:
    """Remove a directory tree, clearing read-only bits git leaves on objects."""

    def _on_error(func, failed_path, _exc):
        os.chmod(os.path.dirname(failed_path), stat.S_IRWXU)
        if not os.path.islink(failed_path):
            os.chmod(failed_path, stat.S_IWRITE | stat.S_IREAD | stat.S_IEXEC)
        func(failed_path)

    path = Path(path)
    if not path.exists() and not path.is_symlink():
        return
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_on_error)
    else:
        shutil.rmtree(path, onerror=_on_error)


def copy_tree(src: PathLike, dest: PathLike) -> None:
    """Recursively copy the contents of ``src`` into ``dest``.

    Every directory (empty ones included) and file is reproduced with its
    relative path and permission mode; symlinks are recreated as symlinks.
    ``dest`` may already exist. The first failing entry aborts the copy,
    leaving what was copied so far in place.

    Raises:
        OSError: On the first entry that cannot be copied.
    """
    src = Path(src)
    dest = Path(dest)
    if not src.is_dir():
        raise NotADirectoryError(f"not a directory: {src}")

    dest.mkdir(parents=True, exist_ok=True)
    # Directory modes are applied last so read-only directories can be filled
    dir_modes = [(src, dest)]

    for root, dirs, files in os.walk(src):
        root_path = Path(root)
        rel_root = root_path.relative_to(src)
        target_root = dest / rel_root

        for name in list(dirs):
            source = root_path / name
            target = target_root / name
            if source.is_symlink():
                _copy_symlink(source, target)
                dirs.remove(name)
                continue
            target.mkdir(exist_ok=True)
            dir_modes.append((source, target))

        for name in files:
            source = root_path / name
            target = target_root / name
            if source.is_symlink():
                _copy_symlink(source, target)
            else:
                shutil.copyfile(source, target)
                shutil.copymode(source, target)

    for source, target in reversed(dir_modes):
        shutil.copymode(source, target)

    logger.debug("Copied %s -> %s", src, dest)


def _copy_symlink(source: Path, target: Path) -> None:
    if target.is_symlink() or target.exists():
        target.unlink()
    os.symlink(os.readlink(source), target)

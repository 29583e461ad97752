# cryptofile/fileops.py

from __future__ import annotations

import errno
import logging
import os
import shutil
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

from .config import load_config
from .errors import FileOperationError

logger = logging.getLogger(__name__)

DEFAULT_FILE_MODE = 0o666


@lru_cache(maxsize=None)
def configured_file_mode() -> int:
    """Mode for written files from the config, 0o666 by default."""
    return int(load_config().get("file_mode", DEFAULT_FILE_MODE))


def current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def reset_permissions(path: Union[str, Path], mode: int = DEFAULT_FILE_MODE) -> None:
    """
    chmod to mode masked with the umask. Best effort: a file we cannot
    chmod (not our own, odd filesystem) keeps the permissions it has.
    """
    try:
        os.chmod(path, mode & ~current_umask())
    except OSError as e:
        logger.debug("Could not reset permissions of %s: %s", path, e)


def _temp_sibling(target: Path) -> Path:
    fd, name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    os.close(fd)
    return Path(name)


def write_file(path: Union[str, Path], data: bytes, mode: Optional[int] = None) -> Path:
    """
    Replace the content of path with data.

    The bytes go to a temporary file next to the target first, which is
    then renamed over it, so readers see either the old or the new file.
    """
    target = Path(path)
    try:
        tmp = _temp_sibling(target)
    except OSError as e:
        raise FileOperationError(f"Could not write {target}: {e}")

    try:
        with open(tmp, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, target)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise FileOperationError(f"Could not write {target}: {e}")

    reset_permissions(target, configured_file_mode() if mode is None else mode)
    logger.info("Wrote %d bytes to %s", len(data), target)
    return target


def move_file(source: Union[str, Path], directory: Union[str, Path], name: Optional[str] = None) -> Path:
    """
    Move source into directory (created when missing), optionally renamed.

    Either the target ends up with the full content and the source is
    gone, or the source is left as it was and FileOperationError is raised.
    """
    source = Path(source)
    target_dir = Path(directory)
    target = target_dir / (name or source.name)

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileOperationError(f"Unable to create the {target_dir} directory: {e}")

    if not target_dir.is_dir():
        raise FileOperationError(f"Unable to write in the {target_dir} directory")

    try:
        os.replace(source, target)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise FileOperationError(f"Could not move the file {source} to {target}: {e}")
        _move_across_devices(source, target)

    reset_permissions(target, configured_file_mode())
    logger.info("Moved %s to %s", source, target)
    return target


def _move_across_devices(source: Path, target: Path) -> None:
    try:
        tmp = _temp_sibling(target)
    except OSError as e:
        raise FileOperationError(f"Could not move the file {source} to {target}: {e}")

    try:
        shutil.copyfile(source, tmp)
        os.replace(tmp, target)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise FileOperationError(f"Could not move the file {source} to {target}: {e}")

    try:
        source.unlink()
    except OSError as e:
        # keep the source intact rather than ending up with two copies
        target.unlink(missing_ok=True)
        raise FileOperationError(f"Could not remove {source} after copying it to {target}: {e}")

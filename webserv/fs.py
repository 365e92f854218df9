"""Filesystem helpers used when serving and storing files."""

from __future__ import annotations

import logging
import os
from email.utils import formatdate

logger = logging.getLogger(__name__)


def is_file(path: str) -> bool:
    """True when ``path`` names a regular file."""
    return os.path.isfile(path)


def is_directory(path: str) -> bool:
    """True when ``path`` names a directory."""
    try:
        return os.path.isdir(os.fspath(path)) if os.path.exists(path) else _missing(path)
    except OSError as exc:
        logger.error("%s", exc.strerror)
        return False


def _missing(path: str) -> bool:
    logger.debug("No such file or directory: %s", path)
    return False


def list_files(path: str, recursive: bool = True) -> dict[str, str]:
    """Map each file name under ``path`` to its full path.

    With ``recursive``, directories are descended into instead of listed.
    A name seen more than once keeps the last path found.
    """
    files: dict[str, str] = {}
    with os.scandir(path) as entries:
        for entry in sorted(entries, key=lambda item: item.name):
            full_path = f"{path}/{entry.name}"
            if recursive and entry.is_dir():
                files.update(list_files(full_path, recursive))
            else:
                files[entry.name] = full_path
    return files


def last_modified_date(path: str) -> str:
    """Modification time of ``path`` as an HTTP date."""
    return formatdate(os.stat(path).st_mtime, usegmt=True)


def _write(path: str, content: str | bytes, mode: str) -> None:
    if isinstance(content, bytes):
        with open(path, mode + "b") as handle:
            handle.write(content)
    else:
        with open(path, mode, encoding="utf-8", newline="") as handle:
            handle.write(content)


def create_file(path: str, content: str | bytes) -> None:
    """Write ``content`` to ``path``, replacing anything already there."""
    _write(path, content, "w")


def append_file(path: str, content: str | bytes) -> None:
    """Append ``content`` to ``path``, creating it if needed."""
    _write(path, content, "a")


def delete_file(path: str) -> None:
    """Remove a file or an empty directory."""
    if os.path.isdir(path) and not os.path.islink(path):
        os.rmdir(path)
    else:
        os.remove(path)


def resolve(root: str, path: str) -> str:
    """Append ``path`` to ``root`` unless ``root`` already ends with it.

    A doubled slash at the junction is avoided.
    """
    if root.endswith("/") and path.startswith("/"):
        root = root[:-1]
    if path and root.endswith(path):
        return root
    return root + path
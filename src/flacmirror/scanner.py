"""Single-directory listing of subdirectories and FLAC files."""

from __future__ import annotations

import stat
from pathlib import Path

from flacmirror.errors import FilesystemError

FLAC_SUFFIX = ".flac"


def is_qualifying_name(name: str, suffix: str = FLAC_SUFFIX) -> bool:
    """Return True if name ends with suffix (any case) and has a non-empty stem.

    A file literally named ".flac" does not qualify.
    """
    return len(name) > len(suffix) and name.lower().endswith(suffix.lower())


def strip_suffix(name: str, suffix: str = FLAC_SUFFIX) -> str:
    """Remove the qualifying suffix from name, whatever its case."""
    return name[: len(name) - len(suffix)]


def list_subdirectories(directory: Path) -> list[str]:
    """Return the sorted names of the immediate subdirectories of directory."""
    return [
        name
        for name, mode in _list_children(directory)
        if stat.S_ISDIR(mode)
    ]


def list_qualifying_files(directory: Path, suffix: str = FLAC_SUFFIX) -> list[str]:
    """Return the sorted names of regular files in directory matching suffix."""
    return [
        name
        for name, mode in _list_children(directory)
        if stat.S_ISREG(mode) and is_qualifying_name(name, suffix)
    ]


def _list_children(directory: Path) -> list[tuple[str, int]]:
    """Stat every child of directory and return (name, st_mode) pairs by name.

    Raises FilesystemError if the directory or one of its children cannot be read.
    """
    try:
        children = sorted(directory.iterdir())
    except OSError as e:
        raise FilesystemError(directory, e.strerror or str(e)) from e

    result: list[tuple[str, int]] = []
    for child in children:
        try:
            mode = child.stat().st_mode
        except OSError as e:
            raise FilesystemError(child, e.strerror or str(e)) from e
        result.append((child.name, mode))
    return result

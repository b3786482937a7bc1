"""Recursive planning of mirrored directories and encode jobs."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from flacmirror.errors import FilesystemError
from flacmirror.scanner import FLAC_SUFFIX, list_qualifying_files, list_subdirectories, strip_suffix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodeJob:
    """One source file and its extension-less destination path."""

    source: Path
    destination: Path


@dataclass(frozen=True)
class MirrorPlan:
    """Directories to create and jobs to run, in traversal order."""

    directories: tuple[Path, ...]
    jobs: tuple[EncodeJob, ...]


def plan_mirror(
    source_root: Path,
    dest_root: Path,
    suffix: str = FLAC_SUFFIX,
) -> MirrorPlan:
    """Walk source_root depth-first and build the mirror plan under dest_root.

    Every visited directory gets a mirrored entry, including empty ones.
    Within a directory, subdirectories are fully processed before its files.
    Raises FilesystemError if any directory cannot be read.
    """
    directories, jobs = _visit((source_root,), dest_root, suffix, frozenset())
    logger.debug(
        "Planned %d directories and %d jobs for %s",
        len(directories),
        len(jobs),
        source_root,
    )
    return MirrorPlan(directories=tuple(directories), jobs=tuple(jobs))


def filter_already_encoded(jobs: Sequence[EncodeJob], extension: str) -> list[EncodeJob]:
    """Remove jobs whose destination with extension already exists on disk."""
    return [
        job for job in jobs
        if not job.destination.with_name(job.destination.name + extension).exists()
    ]


def _visit(
    stack: tuple[str | Path, ...],
    dest_root: Path,
    suffix: str,
    ancestors: frozenset[tuple[int, int]],
) -> tuple[list[Path], list[EncodeJob]]:
    """Plan one directory, returning its own and its descendants' entries.

    stack[0] is the source root; the remaining segments are the path relative
    to it and are the only ones re-appended under dest_root.
    """
    source_dir = Path(*stack)
    mirror_dir = dest_root.joinpath(*stack[1:])

    identity = _identity(source_dir)
    if identity in ancestors:
        logger.warning("Skipping %s: directory cycle detected", source_dir)
        return [], []
    ancestors = ancestors | {identity}

    directories: list[Path] = [mirror_dir]
    jobs: list[EncodeJob] = []

    for name in list_subdirectories(source_dir):
        child_dirs, child_jobs = _visit((*stack, name), dest_root, suffix, ancestors)
        directories.extend(child_dirs)
        jobs.extend(child_jobs)

    for name in list_qualifying_files(source_dir, suffix):
        jobs.append(EncodeJob(
            source=source_dir / name,
            destination=mirror_dir / strip_suffix(name, suffix),
        ))

    return directories, jobs


def _identity(directory: Path) -> tuple[int, int]:
    """Return (st_dev, st_ino) for directory."""
    try:
        st = directory.stat()
    except OSError as e:
        raise FilesystemError(directory, e.strerror or str(e)) from e
    return st.st_dev, st.st_ino

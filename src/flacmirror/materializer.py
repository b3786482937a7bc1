"""Directory creation and parallel dispatch of encode jobs."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from flacmirror.errors import EncodeJobError, FilesystemError, PathConflictError
from flacmirror.planner import EncodeJob, MirrorPlan
from flacmirror.reporter import NullReporter, Reporter

logger = logging.getLogger(__name__)

EncodeFn = Callable[[EncodeJob], Path | None]


@dataclass(frozen=True)
class JobResult:
    """Outcome of a single encode job."""

    job: EncodeJob
    output: Path | None = None
    error: str | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped


@dataclass
class MaterializeResult:
    """Directories created and per-job outcomes of a materialize run."""

    created: list[Path] = field(default_factory=list)
    results: list[JobResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[JobResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[JobResult]:
        return [r for r in self.results if r.error is not None]

    @property
    def skipped(self) -> list[JobResult]:
        return [r for r in self.results if r.skipped]


def default_worker_count() -> int:
    """Number of encode workers to use when none is configured."""
    return os.cpu_count() or 1


def ensure_directories(
    directories: Iterable[Path],
    reporter: Reporter | None = None,
    mode: int = 0o755,
) -> list[Path]:
    """Create every missing directory in the plan and return those created.

    Existing directories are left alone, so repeated calls are no-ops.
    Raises PathConflictError if a planned path exists but is not a directory,
    and FilesystemError if a directory cannot be created for any other reason.
    """
    reporter = reporter or NullReporter()
    created: list[Path] = []

    for directory in directories:
        if directory.is_dir():
            continue
        if directory.exists() or directory.is_symlink():
            raise PathConflictError(directory)

        reporter.creating_directory(directory)
        try:
            directory.mkdir(mode=mode, parents=True, exist_ok=True)
        except (FileExistsError, NotADirectoryError) as e:
            # An ancestor segment is a regular file
            raise PathConflictError(directory) from e
        except OSError as e:
            raise FilesystemError(directory, e.strerror or str(e), action="create") from e
        created.append(directory)

    return created


def dispatch(
    jobs: Sequence[EncodeJob],
    encode: EncodeFn,
    reporter: Reporter | None = None,
    max_workers: int | None = None,
    stop_event: threading.Event | None = None,
) -> list[JobResult]:
    """Run encode once per job on a bounded thread pool.

    A failing job does not prevent the others from running. Jobs that have
    not started when stop_event is set are reported as skipped.
    Results are returned in job order.
    """
    reporter = reporter or NullReporter()
    workers = max_workers or default_worker_count()

    if not jobs:
        return []

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="encode") as pool:
        futures = [
            pool.submit(_run_job, job, encode, reporter, stop_event)
            for job in jobs
        ]
        return [f.result() for f in futures]


def materialize(
    plan: MirrorPlan,
    encode: EncodeFn,
    reporter: Reporter | None = None,
    max_workers: int | None = None,
    stop_event: threading.Event | None = None,
) -> MaterializeResult:
    """Create the planned directories, then dispatch every job.

    No job is dispatched unless all directories are in place.
    """
    created = ensure_directories(plan.directories, reporter)
    results = dispatch(plan.jobs, encode, reporter, max_workers, stop_event)
    return MaterializeResult(created=created, results=results)


def _run_job(
    job: EncodeJob,
    encode: EncodeFn,
    reporter: Reporter,
    stop_event: threading.Event | None,
) -> JobResult:
    """Run one job, turning encoder failures into a failed JobResult."""
    if stop_event is not None and stop_event.is_set():
        result = JobResult(job=job, skipped=True)
        reporter.job_finished(result)
        return result

    reporter.job_started(job)
    try:
        output = encode(job)
    except (EncodeJobError, OSError) as e:
        logger.error("Encode failed for %s -> %s: %s", job.source, job.destination, e)
        result = JobResult(job=job, error=str(e))
    else:
        result = JobResult(job=job, output=output)

    reporter.job_finished(result)
    return result

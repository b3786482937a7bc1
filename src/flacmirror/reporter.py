"""Progress reporting hooks for directory creation and encode jobs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from flacmirror.materializer import JobResult
    from flacmirror.planner import EncodeJob

logger = logging.getLogger(__name__)


class Reporter(Protocol):
    """Receives progress events. Job callbacks may run on worker threads."""

    def creating_directory(self, path: Path) -> None: ...

    def job_started(self, job: EncodeJob) -> None: ...

    def job_finished(self, result: JobResult) -> None: ...


class NullReporter:
    """Reporter that ignores every event."""

    def creating_directory(self, path: Path) -> None:
        pass

    def job_started(self, job: EncodeJob) -> None:
        pass

    def job_finished(self, result: JobResult) -> None:
        pass


class LoggingReporter:
    """Reporter that writes each event to the log."""

    def creating_directory(self, path: Path) -> None:
        logger.info("Creating directory at %s ...", path)

    def job_started(self, job: EncodeJob) -> None:
        logger.info("Transcoding %s", job.source)

    def job_finished(self, result: JobResult) -> None:
        if result.skipped:
            logger.info("Skipped %s", result.job.source)
        elif result.ok:
            logger.info("Wrote %s", result.output)

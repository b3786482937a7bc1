"""CLI entry point for flacmirror."""

from __future__ import annotations

import dataclasses
import logging
import signal
import threading
import time
from pathlib import Path
from types import FrameType
from typing import Any, Optional

import typer
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from flacmirror import __version__
from flacmirror.config import MirrorConfig, load_config, merge_config
from flacmirror.errors import (
    BadArgumentsError,
    ExitCode,
    FilesystemError,
    MissingProgramError,
    PathConflictError,
)
from flacmirror.logging_setup import setup_logging
from flacmirror.materializer import JobResult, materialize
from flacmirror.planner import EncodeJob, MirrorPlan, filter_already_encoded, plan_mirror
from flacmirror.reporter import LoggingReporter

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="flacmirror",
    help="Recursively transcode a FLAC library into a mirrored directory tree.",
    no_args_is_help=True,
)


class ProgressReporter(LoggingReporter):
    """LoggingReporter that also advances a rich progress bar."""

    def __init__(self, progress: Progress, task_id: Any) -> None:
        self._progress = progress
        self._task_id = task_id

    def job_started(self, job: EncodeJob) -> None:
        super().job_started(job)
        self._progress.update(self._task_id, current_file=job.source.name)

    def job_finished(self, result: JobResult) -> None:
        super().job_finished(result)
        self._progress.advance(self._task_id)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"flacmirror {__version__}")
        raise typer.Exit()


def _build_config(
    config: Optional[str],
    cli_overrides: dict[str, Any],
) -> MirrorConfig:
    """Load the optional TOML config and merge CLI overrides into it."""
    file_config: dict[str, Any] = {}
    if config is not None:
        config_path = Path(config)
        if not config_path.exists():
            raise BadArgumentsError(f"Config file not found: {config_path}")
        file_config = load_config(config_path)
    return merge_config(file_config, cli_overrides)


@app.command()
def main(
    source: Optional[str] = typer.Argument(None, help="Directory to recurse through and transcode FLAC files from"),
    destination: Optional[str] = typer.Argument(None, help="Directory to place transcoded files (structure will match source)"),
    opus: Optional[int] = typer.Option(None, "-o", "--opus", help="Encode in Opus with loose VBR bitrate of n kbps (n >= 6)"),
    aac: Optional[int] = typer.Option(None, "-a", "--aac", help="Encode in AAC at n kbps (n >= 8)"),
    mp3: Optional[int] = typer.Option(None, "-m", "--mp3", help="Encode in MP3 with average bitrate of n kbps (n >= 8)"),
    jobs: Optional[int] = typer.Option(None, "-j", "--jobs", help="Number of parallel encoder processes (default: CPU count)"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file"),
    skip_existing: bool = typer.Option(False, "--skip-existing", help="Skip files whose transcoded output already exists"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Plan and list the work without creating or encoding anything"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (default: INFO)"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write logs to this file"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True, help="Print version information"),
) -> None:
    """Recursively transcode FLAC files from SOURCE into DESTINATION."""
    cli_overrides: dict[str, Any] = {
        "source_dir": source,
        "dest_dir": destination,
        "opus": opus,
        "aac": aac,
        "mp3": mp3,
        "jobs": jobs,
        "skip_existing": skip_existing or None,
        "log_level": log_level,
        "log_file": log_file,
    }

    try:
        cfg = _build_config(config, cli_overrides)
    except BadArgumentsError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=e.exit_code)

    setup_logging(cfg.log_level, cfg.log_file)

    # Fail fast if the encoder is not installed
    if not dry_run:
        try:
            cfg.encoder.check_available()
        except MissingProgramError as e:
            logger.error("%s", e)
            raise typer.Exit(code=e.exit_code)

    logger.info("flacmirror v%s", __version__)
    logger.info("Source: %s", cfg.source_dir)
    logger.info("Destination: %s", cfg.dest_dir)
    logger.info("Target: %s at %d kbps (%d workers)", cfg.encoder.name, cfg.encoder.bitrate, cfg.jobs)

    try:
        plan = plan_mirror(cfg.source_dir, cfg.dest_dir)
    except FilesystemError as e:
        logger.error("%s. Aborting.", e)
        raise typer.Exit(code=e.exit_code)

    if cfg.skip_existing:
        pending = filter_already_encoded(plan.jobs, cfg.encoder.extension)
        logger.info(
            "Skipping %d already transcoded files",
            len(plan.jobs) - len(pending),
        )
        plan = dataclasses.replace(plan, jobs=tuple(pending))

    logger.info(
        "Found %d directories and %d FLAC files",
        len(plan.directories),
        len(plan.jobs),
    )

    if dry_run:
        _report_dry_run(plan, cfg)
        return

    exit_code = _run_pipeline(plan, cfg)
    if exit_code != ExitCode.OK:
        raise typer.Exit(code=exit_code)


def _report_dry_run(plan: MirrorPlan, cfg: MirrorConfig) -> None:
    """Log the directories and encodes a real run would perform."""
    logger.info("--- Dry Run Summary ---")
    for directory in plan.directories:
        if not directory.is_dir():
            logger.info("Would create %s", directory)
    for job in plan.jobs:
        logger.info("Would transcode %s", job.source)
        logger.info("  to %s", cfg.encoder.output_path(job))


def _run_pipeline(plan: MirrorPlan, cfg: MirrorConfig) -> ExitCode:
    """Materialize the plan with signal handling and return the exit code."""
    stop_event = threading.Event()

    prev_sigint = signal.getsignal(signal.SIGINT)
    prev_sigterm = signal.getsignal(signal.SIGTERM)

    def _handle_shutdown(signum: int, frame: FrameType | None) -> None:
        if stop_event.is_set():
            # Second signal, force exit immediately
            signal.signal(signal.SIGINT, signal.SIG_DFL)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
            raise KeyboardInterrupt
        stop_event.set()
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, finishing running encodes and exiting (press again to force quit)", sig_name)

    signal.signal(signal.SIGINT, _handle_shutdown)
    signal.signal(signal.SIGTERM, _handle_shutdown)

    try:
        return _run_pipeline_inner(plan, cfg, stop_event)
    finally:
        signal.signal(signal.SIGINT, prev_sigint)
        signal.signal(signal.SIGTERM, prev_sigterm)


def _run_pipeline_inner(
    plan: MirrorPlan,
    cfg: MirrorConfig,
    stop_event: threading.Event,
) -> ExitCode:
    """Create directories, dispatch encodes and log the batch summary."""
    batch_start = time.monotonic()

    with Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("{task.fields[current_file]}"),
        TimeElapsedColumn(),
    ) as progress:
        task = progress.add_task(
            "Transcoding",
            total=len(plan.jobs),
            current_file="",
        )
        reporter = ProgressReporter(progress, task)

        try:
            result = materialize(
                plan,
                cfg.encoder,
                reporter=reporter,
                max_workers=cfg.jobs,
                stop_event=stop_event,
            )
        except PathConflictError as e:
            logger.error("%s! Aborting.", e)
            return e.exit_code
        except FilesystemError as e:
            logger.error("%s. Aborting.", e)
            return e.exit_code

    batch_secs = time.monotonic() - batch_start

    summary_label = "Partial Batch Summary (interrupted)" if stop_event.is_set() else "Batch Summary"
    logger.info("--- %s ---", summary_label)
    logger.info("Directories created: %d", len(result.created))
    logger.info("Transcoded: %d", len(result.succeeded))
    logger.info("Failed: %d", len(result.failed))
    logger.info("Skipped (interrupted): %d", len(result.skipped))
    logger.info("Total time: %.1fs", batch_secs)

    for failure in result.failed:
        logger.error("  %s: %s", failure.job.source, failure.error)

    if result.failed:
        return ExitCode.FAILURE
    if stop_event.is_set():
        return ExitCode.INTERRUPTED
    return ExitCode.OK


if __name__ == "__main__":
    app()

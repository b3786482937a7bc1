"""Configuration loading, merging, and validation."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from flacmirror.encoders import ENCODERS, Encoder, select_encoder
from flacmirror.errors import BadArgumentsError
from flacmirror.materializer import default_worker_count


@dataclass(frozen=True)
class MirrorConfig:
    """Immutable configuration for a flacmirror run."""

    source_dir: Path
    dest_dir: Path
    encoder: Encoder
    jobs: int
    log_level: str = "INFO"
    log_file: Path | None = None
    skip_existing: bool = False


_DEFAULTS: dict[str, Any] = {
    "log_level": "INFO",
    "skip_existing": False,
}


def load_config(path: Path) -> dict[str, Any]:
    """Read a TOML config file and return a dict."""
    with path.open("rb") as f:
        return tomllib.load(f)


def merge_config(
    file_config: dict[str, Any],
    cli_overrides: dict[str, Any],
) -> MirrorConfig:
    """Merge defaults, file config, and CLI overrides into a validated config.

    Priority: defaults < file config < CLI overrides.
    The worker count falls back to the FLACMIRROR_JOBS environment variable,
    then to the processor count.
    """
    merged: dict[str, Any] = {**_DEFAULTS}
    merged.update({k: v for k, v in file_config.items() if v is not None})
    merged.update({k: v for k, v in cli_overrides.items() if v is not None})

    if merged.get("jobs") is None:
        env_jobs = os.environ.get("FLACMIRROR_JOBS", "")
        if env_jobs:
            merged["jobs"] = env_jobs

    for key in ("source_dir", "dest_dir", "log_file"):
        if merged.get(key) is not None:
            merged[key] = Path(merged[key]).expanduser().resolve()

    return _validate(merged)


def _validate(merged: dict[str, Any]) -> MirrorConfig:
    """Validate the merged config and return a MirrorConfig."""
    errors: list[str] = []

    source_dir = merged.get("source_dir")
    if source_dir is None:
        errors.append("source_dir is required")
    elif not source_dir.is_dir():
        errors.append(f"source_dir is not a directory: {source_dir}")

    dest_dir = merged.get("dest_dir")
    if dest_dir is None:
        errors.append("dest_dir is required")
    elif not dest_dir.parent.is_dir():
        errors.append(f"parent of dest_dir is not a directory: {dest_dir.parent}")
    elif dest_dir.exists() and not dest_dir.is_dir():
        errors.append(f"dest_dir exists, but isn't a directory: {dest_dir}")

    encoder = None
    try:
        encoder = select_encoder(**{name: _as_int(merged.get(name), name) for name in ENCODERS})
    except ValueError as e:
        errors.append(str(e))
    else:
        if encoder is None:
            minimums = ", ".join(
                f"--{name} >= {cls.min_bitrate}" for name, cls in ENCODERS.items()
            )
            errors.append(f"no transcode target selected (use one of {minimums})")

    jobs = default_worker_count()
    if merged.get("jobs") is not None:
        try:
            jobs = int(merged["jobs"])
        except (TypeError, ValueError):
            errors.append(f"jobs must be an integer, got {merged['jobs']!r}")
        else:
            if jobs < 1:
                errors.append(f"jobs must be at least 1, got {jobs}")

    if errors:
        raise BadArgumentsError("Configuration errors:\n  " + "\n  ".join(errors))

    assert encoder is not None
    return MirrorConfig(
        source_dir=source_dir,
        dest_dir=dest_dir,
        encoder=encoder,
        jobs=jobs,
        log_level=str(merged.get("log_level", _DEFAULTS["log_level"])),
        log_file=merged.get("log_file"),
        skip_existing=bool(merged.get("skip_existing", _DEFAULTS["skip_existing"])),
    )


def _as_int(value: Any, name: str) -> int | None:
    """Convert a bitrate setting to int, raising ValueError with context."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} bitrate must be an integer, got {value!r}") from None

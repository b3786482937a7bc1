"""Tests for configuration loading, merging, and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import tomli_w

from flacmirror.config import MirrorConfig, load_config, merge_config
from flacmirror.encoders import AacEncoder, Mp3Encoder, OpusEncoder
from flacmirror.errors import BadArgumentsError
from flacmirror.materializer import default_worker_count


class TestLoadConfig:
    """Tests for load_config()."""

    def test_loads_valid_toml(self, sample_config_file: Path) -> None:
        result = load_config(sample_config_file)
        assert isinstance(result, dict)
        assert result["opus"] == 128

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nonexistent.toml")


class TestMergeConfig:
    """Tests for merge_config()."""

    def test_defaults_applied(
        self, sample_config_dict: dict[str, Any], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("FLACMIRROR_JOBS", raising=False)
        config = merge_config(sample_config_dict, {})
        assert isinstance(config, MirrorConfig)
        assert config.encoder == OpusEncoder(128)
        assert config.jobs == default_worker_count()
        assert config.log_level == "INFO"
        assert config.log_file is None
        assert config.skip_existing is False

    def test_paths_are_resolved(
        self, sample_config_dict: dict[str, Any], tmp_source_dir: Path, tmp_dest_dir: Path
    ) -> None:
        config = merge_config(sample_config_dict, {})
        assert config.source_dir == tmp_source_dir.resolve()
        assert config.dest_dir == tmp_dest_dir.resolve()
        assert config.source_dir.is_absolute()

    def test_cli_overrides_file_config(self, sample_config_dict: dict[str, Any]) -> None:
        config = merge_config(sample_config_dict, {"opus": 96, "jobs": 2})
        assert config.encoder == OpusEncoder(96)
        assert config.jobs == 2

    def test_cli_none_values_ignored(self, sample_config_dict: dict[str, Any]) -> None:
        config = merge_config(sample_config_dict, {"opus": None, "jobs": None})
        assert config.encoder == OpusEncoder(128)

    def test_jobs_from_env(
        self, sample_config_dict: dict[str, Any], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FLACMIRROR_JOBS", "3")
        config = merge_config(sample_config_dict, {})
        assert config.jobs == 3

    def test_explicit_jobs_beat_env(
        self, sample_config_dict: dict[str, Any], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FLACMIRROR_JOBS", "3")
        config = merge_config(sample_config_dict, {"jobs": 5})
        assert config.jobs == 5

    def test_other_targets(self, sample_config_dict: dict[str, Any]) -> None:
        del sample_config_dict["opus"]
        assert merge_config({**sample_config_dict, "aac": 160}, {}).encoder == AacEncoder(160)
        assert merge_config({**sample_config_dict, "mp3": 192}, {}).encoder == Mp3Encoder(192)

    def test_log_file_is_path(self, sample_config_dict: dict[str, Any], tmp_path: Path) -> None:
        config = merge_config(sample_config_dict, {"log_file": str(tmp_path / "run.log")})
        assert config.log_file == (tmp_path / "run.log").resolve()

    def test_config_is_frozen(self, sample_config_dict: dict[str, Any]) -> None:
        import dataclasses

        config = merge_config(sample_config_dict, {})
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.jobs = 99  # type: ignore[misc]


class TestValidation:
    """Tests for the bad-arguments conditions."""

    def test_missing_source_and_dest(self) -> None:
        with pytest.raises(BadArgumentsError) as exc_info:
            merge_config({"opus": 128}, {})
        message = str(exc_info.value)
        assert "source_dir is required" in message
        assert "dest_dir is required" in message

    def test_source_not_a_directory(self, sample_config_dict: dict[str, Any], tmp_path: Path) -> None:
        f = tmp_path / "file.flac"
        f.write_bytes(b"")
        sample_config_dict["source_dir"] = str(f)
        with pytest.raises(BadArgumentsError, match="source_dir is not a directory"):
            merge_config(sample_config_dict, {})

    def test_source_missing(self, sample_config_dict: dict[str, Any], tmp_path: Path) -> None:
        sample_config_dict["source_dir"] = str(tmp_path / "nope")
        with pytest.raises(BadArgumentsError, match="source_dir is not a directory"):
            merge_config(sample_config_dict, {})

    def test_dest_parent_missing(self, sample_config_dict: dict[str, Any], tmp_path: Path) -> None:
        sample_config_dict["dest_dir"] = str(tmp_path / "missing" / "out")
        with pytest.raises(BadArgumentsError, match="parent of dest_dir"):
            merge_config(sample_config_dict, {})

    def test_dest_is_a_file(self, sample_config_dict: dict[str, Any], tmp_dest_dir: Path) -> None:
        tmp_dest_dir.write_bytes(b"")
        with pytest.raises(BadArgumentsError, match="isn't a directory"):
            merge_config(sample_config_dict, {})

    def test_dest_not_created(self, sample_config_dict: dict[str, Any], tmp_dest_dir: Path) -> None:
        merge_config(sample_config_dict, {})
        assert not tmp_dest_dir.exists()

    def test_no_target(self, sample_config_dict: dict[str, Any]) -> None:
        del sample_config_dict["opus"]
        with pytest.raises(BadArgumentsError, match="no transcode target selected"):
            merge_config(sample_config_dict, {})

    def test_opus_below_minimum_is_bad_arguments(self, sample_config_dict: dict[str, Any]) -> None:
        with pytest.raises(BadArgumentsError, match="no transcode target selected") as exc_info:
            merge_config(sample_config_dict, {"opus": 5})
        assert exc_info.value.exit_code == 63

    def test_non_integer_bitrate(self, sample_config_dict: dict[str, Any]) -> None:
        sample_config_dict["opus"] = "loud"
        with pytest.raises(BadArgumentsError, match="opus bitrate must be an integer"):
            merge_config(sample_config_dict, {})

    def test_jobs_must_be_positive(self, sample_config_dict: dict[str, Any]) -> None:
        with pytest.raises(BadArgumentsError, match="jobs must be at least 1"):
            merge_config(sample_config_dict, {"jobs": 0})

    def test_bad_arguments_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            merge_config({}, {})

    def test_loaded_file_round_trip(self, tmp_path: Path, tmp_source_dir: Path, tmp_dest_dir: Path) -> None:
        path = tmp_path / "c.toml"
        path.write_bytes(tomli_w.dumps({
            "source_dir": str(tmp_source_dir),
            "dest_dir": str(tmp_dest_dir),
            "mp3": 256,
            "skip_existing": True,
        }).encode())
        config = merge_config(load_config(path), {})
        assert config.encoder == Mp3Encoder(256)
        assert config.skip_existing is True

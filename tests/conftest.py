"""Shared test fixtures for flacmirror."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import tomli_w


@pytest.fixture
def tmp_source_dir(tmp_path: Path) -> Path:
    """Create a temporary source library directory."""
    d = tmp_path / "flac"
    d.mkdir()
    return d


@pytest.fixture
def tmp_dest_dir(tmp_path: Path) -> Path:
    """Return a destination path whose parent exists but which is not created."""
    return tmp_path / "out"


@pytest.fixture
def sample_config_dict(tmp_source_dir: Path, tmp_dest_dir: Path) -> dict[str, Any]:
    """Return a minimal valid config dict."""
    return {
        "source_dir": str(tmp_source_dir),
        "dest_dir": str(tmp_dest_dir),
        "opus": 128,
    }


@pytest.fixture
def sample_config_file(
    tmp_path: Path, sample_config_dict: dict[str, Any]
) -> Path:
    """Write a sample config TOML file and return its path."""
    config_path = tmp_path / "config.toml"
    config_path.write_bytes(tomli_w.dumps(sample_config_dict).encode())
    return config_path


@pytest.fixture
def make_tree() -> Any:
    """Return a helper that creates dummy files and empty directories under a root."""

    def _make_tree(root: Path, files: list[str], dirs: list[str] | None = None) -> None:
        for relative in dirs or []:
            (root / relative).mkdir(parents=True, exist_ok=True)
        for relative in files:
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"fLaC")

    return _make_tree

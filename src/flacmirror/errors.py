"""Exception taxonomy and process exit codes."""

from __future__ import annotations

from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flacmirror.planner import EncodeJob


class ExitCode(IntEnum):
    """Process exit codes returned by the CLI."""

    OK = 0
    FAILURE = 1
    BAD_ARGS = 63
    MISSING_PROGRAM = 64
    INTERRUPTED = 130


class FlacMirrorError(Exception):
    """Base class for all flacmirror errors."""

    exit_code: ExitCode = ExitCode.FAILURE


class BadArgumentsError(FlacMirrorError, ValueError):
    """Invalid source/destination directories or no usable encoder target."""

    exit_code = ExitCode.BAD_ARGS


class MissingProgramError(FlacMirrorError, RuntimeError):
    """The selected encoder binary is not on PATH."""

    exit_code = ExitCode.MISSING_PROGRAM

    def __init__(self, program: str) -> None:
        super().__init__(f"{program} not found on PATH. Install it to continue.")
        self.program = program


class FilesystemError(FlacMirrorError, OSError):
    """A directory could not be read during traversal or created in the mirror."""

    def __init__(self, path: Path, reason: str, action: str = "read") -> None:
        super().__init__(f"Cannot {action} {path}: {reason}")
        self.path = path


class PathConflictError(FlacMirrorError):
    """A planned destination directory exists but is not a directory."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"{path} exists, but isn't a directory")
        self.path = path


class EncodeJobError(FlacMirrorError):
    """A single encoder invocation failed."""

    def __init__(
        self,
        job: EncodeJob,
        message: str,
        returncode: int | None = None,
    ) -> None:
        super().__init__(message)
        self.job = job
        self.returncode = returncode

"""External encoder variants invoked once per encode job."""

from __future__ import annotations

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from flacmirror.errors import EncodeJobError, MissingProgramError
from flacmirror.planner import EncodeJob

logger = logging.getLogger(__name__)


class Encoder(ABC):
    """A target format backed by an external encoder program.

    Instances are callable with an EncodeJob and return the written file.
    """

    name: str
    program: str
    extension: str
    min_bitrate: int

    def __init__(self, bitrate: int) -> None:
        if bitrate < self.min_bitrate:
            raise ValueError(
                f"{self.name} bitrate must be at least {self.min_bitrate} kbps, got {bitrate}"
            )
        self.bitrate = bitrate

    def __repr__(self) -> str:
        return f"{type(self).__name__}(bitrate={self.bitrate})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Encoder):
            return NotImplemented
        return (type(self), self.bitrate) == (type(other), other.bitrate)

    def __hash__(self) -> int:
        return hash((type(self), self.bitrate))

    def output_path(self, job: EncodeJob) -> Path:
        """Return the job's destination with this format's extension appended."""
        return job.destination.with_name(job.destination.name + self.extension)

    def partial_path(self, job: EncodeJob) -> Path:
        """Return the hidden file the encoder writes to before it is renamed.

        Keeps the format extension so encoders that infer the container from
        the output name still work.
        """
        return job.destination.with_name(f".{job.destination.name}.part{self.extension}")

    def check_available(self) -> None:
        """Verify that the encoder program is on PATH. Raises MissingProgramError if not."""
        if shutil.which(self.program) is None:
            raise MissingProgramError(self.program)

    @abstractmethod
    def build_command(self, job: EncodeJob, target: Path) -> list[str]:
        """Return the argv that encodes job.source into target."""

    def __call__(self, job: EncodeJob) -> Path:
        """Encode one job and return the finished output file.

        The encoder writes to partial_path(job), which is renamed to
        output_path(job) only on success and removed on any failure, so a
        file at output_path is always complete.
        Raises EncodeJobError on any failure.
        """
        output = self.output_path(job)
        partial = self.partial_path(job)
        cmd = self.build_command(job, partial)
        logger.debug("Running: %s", " ".join(cmd))

        try:
            self._run(job, cmd)
            if not partial.is_file():
                raise EncodeJobError(job, f"{self.program} produced no output")
            partial.replace(output)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        return output

    def _run(self, job: EncodeJob, cmd: list[str]) -> None:
        """Run the encoder command, raising EncodeJobError if it fails."""
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise EncodeJobError(job, f"{self.program} not found") from e
        except OSError as e:
            raise EncodeJobError(job, f"{self.program} error: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.strip().splitlines()
            detail = f": {stderr[-1]}" if stderr else ""
            raise EncodeJobError(
                job,
                f"{self.program} exited with code {result.returncode}{detail}",
                returncode=result.returncode,
            )


class OpusEncoder(Encoder):
    """Opus via opusenc, loose VBR at the given bitrate."""

    name = "opus"
    program = "opusenc"
    extension = ".opus"
    min_bitrate = 6

    def build_command(self, job: EncodeJob, target: Path) -> list[str]:
        return [
            self.program,
            "--quiet",
            "--vbr",
            "--bitrate", str(self.bitrate),
            str(job.source),
            str(target),
        ]


class AacEncoder(Encoder):
    """AAC-LC in an MP4 container via neroAacEnc."""

    name = "aac"
    program = "neroAacEnc"
    extension = ".m4a"
    min_bitrate = 8

    def build_command(self, job: EncodeJob, target: Path) -> list[str]:
        return [
            self.program,
            "-br", str(self.bitrate * 1000),
            "-if", str(job.source),
            "-of", str(target),
        ]


class Mp3Encoder(Encoder):
    """MP3 via lame in average-bitrate mode."""

    name = "mp3"
    program = "lame"
    extension = ".mp3"
    min_bitrate = 8

    def build_command(self, job: EncodeJob, target: Path) -> list[str]:
        return [
            self.program,
            "--quiet",
            "--abr", str(self.bitrate),
            str(job.source),
            str(target),
        ]


# Selection order when several targets are given
ENCODERS: dict[str, type[Encoder]] = {
    "opus": OpusEncoder,
    "aac": AacEncoder,
    "mp3": Mp3Encoder,
}


def select_encoder(
    opus: int | None = None,
    aac: int | None = None,
    mp3: int | None = None,
) -> Encoder | None:
    """Return the first target whose bitrate is given and valid, else None.

    A bitrate below the format's minimum counts as not given.
    """
    requested = {"opus": opus, "aac": aac, "mp3": mp3}
    for name, encoder_cls in ENCODERS.items():
        bitrate = requested[name]
        if bitrate is not None and bitrate >= encoder_cls.min_bitrate:
            return encoder_cls(bitrate)
        if bitrate is not None:
            logger.warning(
                "Ignoring %s bitrate %d: minimum is %d kbps",
                name,
                bitrate,
                encoder_cls.min_bitrate,
            )
    return None

from enum import Enum
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class JobOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class DispatcherState(str, Enum):
    RUNNING = "RUNNING"
    DRAINING = "DRAINING"  # stop requested, waiting for in-flight encodes
    TERMINATED = "TERMINATED"


class VideoFile(BaseModel):
    path: Path
    size_bytes: int = 0


class EncodeOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    crf: int = Field(ge=0)
    preset: str
    job_limit: int = Field(default=1, ge=1)
    video_codec: str = "libx265"
    video_tag: str = "hvc1"
    ffmpeg_binary: str = "ffmpeg"


class EncodeJob(BaseModel):
    """One input file to one output file. Immutable once planned."""

    model_config = ConfigDict(frozen=True)

    input_path: Path
    output_path: Path
    options: EncodeOptions


class JobResult(BaseModel):
    job: EncodeJob
    outcome: JobOutcome
    exit_status: Optional[int] = None
    error_message: Optional[str] = None
    stderr_tail: str = ""
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.outcome == JobOutcome.SUCCESS


class DispatchSummary(BaseModel):
    total: int = 0
    started: int = 0
    succeeded: int = 0
    failed: int = 0
    not_started: int = 0
    max_in_flight: int = 0
    interrupted: bool = False
    signal_number: Optional[int] = None

"""Domain events for the batch transcoding pipeline.

Events flow through the EventBus so the planner and dispatcher never print
directly; the console reporter (see `ui/console.py`) turns them into lines.
"""

from pathlib import Path
from typing import Optional
from pydantic import BaseModel
from .models import DispatchSummary, EncodeJob, JobResult


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class DiscoveryFinished(Event):
    """Emitted after scanning and planning, before any encode starts."""

    input_dir: Path
    files_found: int
    files_to_process: int = 0
    already_exists: int = 0


class JobSkipped(Event):
    """Emitted by the planner when the output file is already on disk."""

    input_path: Path
    output_path: Path


class JobStarted(Event):
    job: EncodeJob


class JobCompleted(Event):
    result: JobResult


class JobFailed(Event):
    """Emitted when the encoder exits non-zero or could not be run."""

    result: JobResult


class InterruptRequested(Event):
    """Emitted on the first termination signal; the dispatcher starts draining."""

    signal_number: Optional[int] = None
    in_flight: int = 0
    policy: str = "drain"


class DispatchFinished(Event):
    summary: DispatchSummary

"""Maps discovered input files to output paths and builds encode jobs.

Skip-if-exists is enforced here, never in the dispatcher: a job is not
constructed for an output path that is already on disk.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Set
from h265conv.config.models import AppConfig
from h265conv.domain.events import JobSkipped
from h265conv.domain.models import EncodeJob, EncodeOptions, VideoFile
from h265conv.infrastructure.event_bus import EventBus


def build_encode_options(config: AppConfig) -> EncodeOptions:
    general = config.general
    return EncodeOptions(
        crf=general.crf,
        preset=general.preset,
        job_limit=general.jobs,
        video_codec=general.video_codec,
        video_tag=general.video_tag,
        ffmpeg_binary=general.ffmpeg_binary,
    )


class OutputPlanner:
    def __init__(self, config: AppConfig, event_bus: EventBus):
        self.output_dir = config.output_dir
        self.output_extension = config.general.output_extension
        self.options = build_encode_options(config)
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)
        self.skipped_count = 0

    def output_path_for(self, input_path: Path) -> Path:
        """Same base name, fixed container extension, flat in output_dir."""
        return self.output_dir / f"{input_path.stem}{self.output_extension}"

    def plan(self, files: Iterable[VideoFile]) -> List[EncodeJob]:
        jobs: List[EncodeJob] = []
        claimed: Set[Path] = set()

        for video_file in files:
            output_path = self.output_path_for(video_file.path)

            if output_path in claimed:
                reason = "claimed by another input"
            elif output_path.exists():
                reason = "already exists"
            else:
                reason = None

            if reason:
                self.skipped_count += 1
                self.logger.info(f"PLAN_SKIP: {video_file.path} -> {output_path} ({reason})")
                self.event_bus.publish(JobSkipped(input_path=video_file.path, output_path=output_path))
                continue

            claimed.add(output_path)
            jobs.append(EncodeJob(input_path=video_file.path, output_path=output_path, options=self.options))

        self.logger.info(f"Planning finished: jobs={len(jobs)}, skipped={self.skipped_count}")
        return jobs

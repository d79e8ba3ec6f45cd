import logging
import shutil
import subprocess
import threading
import time
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional
from h265conv.domain.models import EncodeJob, JobOutcome, JobResult

FFMPEG_DOWNLOAD_URL = "https://www.ffmpeg.org/download.html"


def find_encoder(binary: str = "ffmpeg") -> Optional[Path]:
    """Resolves the encoder binary on PATH; None when it is not installed."""
    found = shutil.which(binary)
    return Path(found) if found else None


class FFmpegAdapter:
    """Wrapper around ffmpeg for HEVC re-encoding.

    The encoder is opaque: exit status 0 means success, anything else is a
    failure. stderr is never parsed, only kept (last lines) to show the user.
    """

    STDERR_TAIL_LINES = 20

    def __init__(self, verbose: bool = False, poll_interval: float = 0.2, terminate_timeout: float = 5.0):
        self.verbose = verbose
        self.poll_interval = poll_interval
        self.terminate_timeout = terminate_timeout
        self.logger = logging.getLogger(__name__)

    def _build_command(self, job: EncodeJob) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        options = job.options
        return [
            options.ffmpeg_binary,
            "-hide_banner",
            "-nostdin",  # background encoders must not read the terminal
            "-n",  # never overwrite an existing output
            "-i", str(job.input_path),
            "-c:v", options.video_codec,
            "-crf", str(options.crf),
            "-preset", options.preset,
            "-c:a", "copy",
            "-tag:v", options.video_tag,
            str(job.output_path),
        ]

    def encode(self, job: EncodeJob, abort_event: Optional[threading.Event] = None) -> JobResult:
        """Runs one encode to completion and returns its result.

        The encoder gets its own session so a terminal Ctrl+C is delivered to
        this process only. When `abort_event` is set the encoder is terminated.
        """
        filename = job.input_path.name
        cmd = self._build_command(job)
        self.logger.info(f"FFMPEG_START: {filename} (crf={job.options.crf}, preset={job.options.preset})")
        self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")

        start_time = time.monotonic()
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                universal_newlines=True,
                encoding="utf-8",
                errors="replace",  # ffmpeg echoes file names and metadata in any encoding
                bufsize=1,
                start_new_session=True,
            )
        except OSError as e:
            self.logger.error(f"FFMPEG_SPAWN_FAILED: {filename}: {e}")
            return JobResult(
                job=job,
                outcome=JobOutcome.FAILURE,
                error_message=f"Could not run {job.options.ffmpeg_binary}: {e}",
            )

        tail: Deque[str] = deque(maxlen=self.STDERR_TAIL_LINES)

        def _reader():
            if not process.stderr:
                return
            # Must read to EOF: a full pipe would block the encoder forever.
            try:
                for line in process.stderr:
                    line = line.rstrip("\n")
                    if not line:
                        continue
                    tail.append(line)
                    if self.verbose:
                        self.logger.debug(f"FFMPEG_STDERR: {filename}: {line}")
            except (OSError, ValueError) as e:
                self.logger.warning(f"FFMPEG_STDERR_LOST: {filename}: {e}")
                try:
                    while process.stderr.buffer.read(65536):
                        pass
                except (OSError, ValueError) as drain_error:
                    self.logger.debug(f"FFMPEG_STDERR_CLOSED: {filename}: {drain_error}")

        reader_thread = threading.Thread(target=_reader, daemon=True)
        reader_thread.start()

        aborted = False
        while True:
            try:
                process.wait(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if abort_event is not None and abort_event.is_set() and not aborted:
                    aborted = True
                    self.logger.info(f"FFMPEG_INTERRUPTED: {filename} (terminate policy)")
                    self._terminate(process)

        reader_thread.join(timeout=5.0)
        elapsed = time.monotonic() - start_time
        returncode = process.returncode
        stderr_tail = "\n".join(tail)

        if returncode == 0:
            self.logger.info(f"FFMPEG_END: {filename} status=completed elapsed={elapsed:.2f}s")
            return JobResult(
                job=job,
                outcome=JobOutcome.SUCCESS,
                exit_status=0,
                duration_seconds=elapsed,
            )

        if aborted:
            error_message = "Encoder terminated on interrupt"
        else:
            error_message = f"ffmpeg exited with code {returncode}"
        self.logger.info(f"FFMPEG_END: {filename} status=failed code={returncode} elapsed={elapsed:.2f}s")
        return JobResult(
            job=job,
            outcome=JobOutcome.FAILURE,
            exit_status=returncode,
            error_message=error_message,
            stderr_tail=stderr_tail,
            duration_seconds=elapsed,
        )

    def _terminate(self, process: subprocess.Popen):
        process.terminate()
        try:
            process.wait(timeout=self.terminate_timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

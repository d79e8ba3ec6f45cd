import os
import sys
import threading
import time
import pytest
import yaml
from pathlib import Path
from h265conv.config.models import AppConfig
from h265conv.domain.models import EncodeJob, EncodeOptions, JobOutcome, JobResult
from h265conv.infrastructure.event_bus import EventBus

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config(tmp_path):
    """Returns a sample AppConfig object for testing."""
    return AppConfig(
        general={
            "jobs": 2,
            "crf": 28,
            "preset": "medium",
            "extensions": [".mp4", ".mov", ".mkv"],
            "output_extension": ".mp4",
            "on_interrupt": "drain",
            "verbose": False,
        },
        input_dir=tmp_path / "videos",
        output_dir=tmp_path / "output",
    )

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "h265conv.yaml"

    content = {
        'input_dir': str(tmp_path / "from_yaml_in"),
        'output_dir': str(tmp_path / "from_yaml_out"),
        'general': {
            'jobs': 3,
            'crf': 24,
            'preset': 'slow',
            'extensions': ['mp4', 'MOV'],
            'on_interrupt': 'terminate',
        },
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

@pytest.fixture
def collected_events(event_bus):
    """Subscribes to every event type and records what is published."""
    from h265conv.domain import events as ev

    received = []
    for event_type in (
        ev.DiscoveryFinished, ev.JobSkipped, ev.JobStarted, ev.JobCompleted,
        ev.JobFailed, ev.InterruptRequested, ev.DispatchFinished,
    ):
        event_bus.subscribe(event_type, received.append)
    return received

# ============================================================================
# Job / Encoder Fixtures
# ============================================================================

@pytest.fixture
def encode_options():
    return EncodeOptions(crf=28, preset="medium", job_limit=2)

@pytest.fixture
def make_jobs(tmp_path, encode_options):
    """Factory: make_jobs(count) -> list of EncodeJob with distinct output paths."""
    def _make(count, names=None):
        names = names or [f"video{i}.mov" for i in range(count)]
        return [
            EncodeJob(
                input_path=tmp_path / "videos" / name,
                output_path=tmp_path / "output" / f"{Path(name).stem}.mp4",
                options=encode_options,
            )
            for name in names
        ]
    return _make


class RecordingEncoder:
    """Stands in for FFmpegAdapter: records calls and peak concurrency."""

    def __init__(self, delay=0.02, fail_names=(), exit_status=2, on_encode=None):
        self.delay = delay
        self.fail_names = set(fail_names)
        self.exit_status = exit_status
        self.on_encode = on_encode
        self.lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.calls = []

    def encode(self, job, abort_event=None):
        with self.lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.calls.append(job.input_path.name)
        try:
            if self.on_encode:
                self.on_encode(job, abort_event)
            time.sleep(self.delay)
            if job.input_path.name in self.fail_names:
                return JobResult(
                    job=job,
                    outcome=JobOutcome.FAILURE,
                    exit_status=self.exit_status,
                    error_message=f"ffmpeg exited with code {self.exit_status}",
                    stderr_tail="Invalid data found when processing input",
                )
            return JobResult(job=job, outcome=JobOutcome.SUCCESS, exit_status=0)
        finally:
            with self.lock:
                self.active -= 1


@pytest.fixture
def recording_encoder():
    """Returns the RecordingEncoder class so tests can configure it."""
    return RecordingEncoder

# ============================================================================
# File System Fixtures
# ============================================================================

@pytest.fixture
def test_input_dir(tmp_path):
    """Creates a test input directory."""
    input_dir = tmp_path / "videos"
    input_dir.mkdir()
    return input_dir

@pytest.fixture
def test_output_dir(tmp_path):
    """Creates a test output directory."""
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir

@pytest.fixture
def dummy_video_files(test_input_dir):
    """Creates dummy video files, plus files that must never become jobs."""
    files = []

    for i, ext in enumerate([".mp4", ".mov", ".MKV"]):
        f = test_input_dir / f"video{i}{ext}"
        f.write_bytes(b"dummy video content " * 100)
        files.append(f)

    subdir = test_input_dir / "subdir" / "deeper"
    subdir.mkdir(parents=True)
    f = subdir / "subvideo.mp4"
    f.write_bytes(b"dummy video content " * 100)
    files.append(f)

    # Never candidates
    (test_input_dir / ".hidden.mp4").write_bytes(b"hidden")
    (subdir / ".hidden.mov").write_bytes(b"hidden")
    (test_input_dir / "notes.txt").write_text("not a video")

    return files

FAKE_FFMPEG = """#!/bin/sh
# Fake encoder: copies -i INPUT to the last argument.
# Inputs named bad* fail with exit status 2.
input=""
prev=""
for arg in "$@"; do
    if [ "$prev" = "-i" ]; then
        input="$arg"
    fi
    prev="$arg"
    output="$arg"
done
echo "$input" >> "{calls_log}"
sleep {delay}
case "$(basename "$input")" in
    bad*)
        echo "$input: Invalid data found when processing input" >&2
        exit 2
        ;;
esac
cp "$input" "$output"
"""

@pytest.fixture
def fake_ffmpeg(tmp_path, monkeypatch):
    """Puts a fake `ffmpeg` shell script first on PATH.

    Returns the path of the log file that gets one input path per invocation.
    """
    if sys.platform.startswith("win"):
        pytest.skip("fake ffmpeg script needs a POSIX shell")

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    calls_log = tmp_path / "ffmpeg_calls.log"
    script = bin_dir / "ffmpeg"
    script.write_text(FAKE_FFMPEG.format(calls_log=calls_log, delay="0.1"))
    script.chmod(0o755)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    return calls_log


def read_calls(calls_log: Path):
    if not calls_log.exists():
        return []
    return [line for line in calls_log.read_text().splitlines() if line]


@pytest.fixture
def ffmpeg_calls():
    """Returns a reader for the fake ffmpeg invocation log."""
    return read_calls


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )

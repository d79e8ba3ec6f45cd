from typing import Optional
from rich.console import Console
from h265conv.infrastructure.event_bus import EventBus
from h265conv.domain.events import (
    DiscoveryFinished, JobSkipped, JobStarted, JobCompleted, JobFailed, InterruptRequested
)


def make_console(stderr: bool = False) -> Console:
    # Paths may contain "[...]": no markup, no highlighting, never wrap.
    return Console(stderr=stderr, highlight=False, soft_wrap=True, markup=False)


class ConsoleReporter:
    """Subscribes to EventBus and prints one line per pipeline event."""

    def __init__(
        self,
        bus: EventBus,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
        verbose: bool = False,
    ):
        self.bus = bus
        self.console = console or make_console()
        self.err_console = err_console or make_console(stderr=True)
        self.verbose = verbose
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(DiscoveryFinished, self.on_discovery_finished)
        self.bus.subscribe(JobSkipped, self.on_job_skipped)
        self.bus.subscribe(JobStarted, self.on_job_started)
        self.bus.subscribe(JobCompleted, self.on_job_completed)
        self.bus.subscribe(JobFailed, self.on_job_failed)
        self.bus.subscribe(InterruptRequested, self.on_interrupt_requested)

    def on_discovery_finished(self, event: DiscoveryFinished):
        if event.files_found == 0:
            return
        self.console.print(
            f"Found {event.files_found} video files in {event.input_dir}: "
            f"{event.files_to_process} to convert, {event.already_exists} already exist.",
            style="dim",
        )

    def on_job_skipped(self, event: JobSkipped):
        self.console.print(f"{event.output_path} already exists, skipping...", style="yellow")

    def on_job_started(self, event: JobStarted):
        if not self.verbose:
            return
        options = event.job.options
        self.console.print(
            f"Converting {event.job.input_path} -> {event.job.output_path} "
            f"({options.video_codec}, crf={options.crf}, preset={options.preset})",
            style="dim",
        )

    def on_job_completed(self, event: JobCompleted):
        job = event.result.job
        self.console.print(f"Converted {job.input_path} to {job.output_path}", style="green")

    def on_job_failed(self, event: JobFailed):
        result = event.result
        self.err_console.print(f"Error converting {result.job.input_path}", style="bold red")
        if result.error_message:
            self.err_console.print(f"  {result.error_message}", style="red")
        if result.stderr_tail:
            self.err_console.print(result.stderr_tail, style="dim")

    def on_interrupt_requested(self, event: InterruptRequested):
        self.console.print("Cleaning up...", style="yellow")
        if event.in_flight == 0:
            return
        if event.policy == "terminate":
            self.console.print(f"Stopping {event.in_flight} running job(s)...", style="yellow")
        else:
            self.console.print(
                f"Waiting for {event.in_flight} running job(s) to finish, no new jobs will start...",
                style="yellow",
            )

import signal
import typer
import yaml
from importlib import metadata
from pathlib import Path
from typing import Optional

from h265conv.config.loader import load_config, CliConfigOverrides
from h265conv.config.models import INTERRUPT_POLICIES
from h265conv.infrastructure.logging import setup_logging
from h265conv.infrastructure.event_bus import EventBus
from h265conv.infrastructure.file_scanner import FileScanner
from h265conv.infrastructure.ffmpeg import FFmpegAdapter, FFMPEG_DOWNLOAD_URL, find_encoder
from h265conv.infrastructure.signals import stop_signal_handlers
from h265conv.pipeline.planner import OutputPlanner
from h265conv.pipeline.dispatcher import JobDispatcher
from h265conv.ui.console import ConsoleReporter
from h265conv.domain.events import DiscoveryFinished

app = typer.Typer(
    help="h265conv - batch re-encode a video folder to H.265/HEVC with ffmpeg",
    add_completion=False,
)


def _package_version() -> str:
    try:
        return metadata.version("h265conv")
    except metadata.PackageNotFoundError:
        return "0.0.0+unknown"


def _version_callback(value: bool):
    if value:
        typer.echo(f"h265conv {_package_version()}")
        raise typer.Exit()


def _fail(message: str, hint: Optional[str] = None) -> typer.Exit:
    typer.secho(message, fg=typer.colors.RED, err=True)
    if hint:
        typer.secho(hint, err=True)
    return typer.Exit(code=1)


@app.command(context_settings={"help_option_names": ["-h", "--help"]})
def convert(
    input_dir: Optional[Path] = typer.Argument(
        None,
        help="Directory containing videos to convert (default: ./videos)"
    ),
    jobs: Optional[int] = typer.Option(None, "--jobs", "-j", help="Maximum number of concurrent ffmpeg jobs (default: 4)"),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory (default: ./output)"),
    crf: Optional[int] = typer.Option(None, "--crf", "-c", help="CRF value for ffmpeg, 0-51 (default: 28)"),
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="x265 preset for ffmpeg (default: medium)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose mode"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to YAML config"),
    on_interrupt: Optional[str] = typer.Option(
        None,
        "--on-interrupt",
        help=f"What happens to running encodes on Ctrl+C ({', '.join(INTERRUPT_POLICIES)}; default: drain)"
    ),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (default: <output>/h265conv.log)"),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit", callback=_version_callback, is_eager=True
    ),
):
    """Convert every video under INPUT_DIR to H.265 (.mp4) in the output directory."""
    overrides = CliConfigOverrides(
        jobs=jobs,
        crf=crf,
        preset=preset,
        output_dir=output_dir,
        input_dir=input_dir,
        on_interrupt=on_interrupt,
        log_path=log_path,
        verbose=verbose,
    )
    try:
        config = overrides.apply(load_config(config_path))
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise _fail(f"Error: Invalid configuration: {exc}")

    general = config.general

    if find_encoder(general.ffmpeg_binary) is None:
        raise _fail(
            f"{general.ffmpeg_binary} could not be found, please install it first.",
            hint=f"Download link: {FFMPEG_DOWNLOAD_URL}",
        )

    if not config.input_dir.is_dir():
        raise _fail(f"Input directory {config.input_dir} does not exist.")

    try:
        logger = setup_logging(
            config.output_dir,
            debug=general.verbose,
            log_path=Path(general.log_path) if general.log_path else None,
        )
    except OSError as exc:
        raise _fail(f"Failed to create output directory {config.output_dir}: {exc}")

    logger.info(f"h265conv started: input_dir={config.input_dir}, output_dir={config.output_dir}")
    logger.info(
        f"Config: jobs={general.jobs}, crf={general.crf}, preset={general.preset}, "
        f"on_interrupt={general.on_interrupt}, verbose={general.verbose}"
    )

    try:
        bus = EventBus()
        ConsoleReporter(bus, verbose=general.verbose)

        scanner = FileScanner(extensions=general.extensions)
        files = list(scanner.scan(config.input_dir))
        if not files:
            logger.info("No files found, exiting")
            typer.echo("No files found in the input directory.")
            return

        planner = OutputPlanner(config, bus)
        planned_jobs = planner.plan(files)
        bus.publish(DiscoveryFinished(
            input_dir=config.input_dir,
            files_found=len(files),
            files_to_process=len(planned_jobs),
            already_exists=planner.skipped_count,
        ))

        dispatcher = JobDispatcher(
            encoder=FFmpegAdapter(verbose=general.verbose),
            event_bus=bus,
            job_limit=general.jobs,
            on_interrupt=general.on_interrupt,
        )
        with stop_signal_handlers(dispatcher.request_stop):
            summary = dispatcher.run(planned_jobs)

        if summary.interrupted:
            signal_number = summary.signal_number or signal.SIGINT
            typer.secho(
                f"Conversion interrupted: {summary.started} job(s) finished running, "
                f"{summary.not_started} not started.",
                fg=typer.colors.YELLOW,
                err=True,
            )
            raise typer.Exit(code=128 + int(signal_number))

        if summary.failed:
            typer.secho(
                f"{summary.failed} of {summary.started} file(s) failed to convert.",
                fg=typer.colors.YELLOW,
                err=True,
            )
        typer.echo(f"All videos have been converted and saved in the {config.output_dir} directory.")

    except KeyboardInterrupt:
        # Ctrl+C outside the dispatcher (e.g. while scanning)
        typer.secho("\nConversion stopped by user (Ctrl+C)", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=130)

    except typer.Exit:
        raise

    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        typer.secho(f"Fatal Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()

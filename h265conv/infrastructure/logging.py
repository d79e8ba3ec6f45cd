import logging
from pathlib import Path
from typing import Optional

LOG_FILE_NAME = "h265conv.log"


def setup_logging(output_dir: Path, debug: bool = False, log_path: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging configuration for h265conv.

    Creates the output directory and the h265conv.log file inside it.
    Returns configured logger instance.

    Args:
        output_dir: Directory where encoded files are written
        debug: If True (verbose mode), enable DEBUG level with ffmpeg commands and stderr
        log_path: Optional path to log file (overrides output_dir)
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    log_file = Path(log_path) if log_path else (output_dir / LOG_FILE_NAME)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.FileHandler(log_file, encoding="utf-8")],
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger("h265conv")
    logger.info(f"Logging initialized: {log_file} (verbose={'ON' if debug else 'OFF'})")

    return logger

import os
from pathlib import Path
from typing import List, Generator
from h265conv.config.models import normalize_extension
from h265conv.domain.models import VideoFile

class FileScanner:
    """Recursively scans for video files in a directory."""

    def __init__(self, extensions: List[str]):
        self.extensions = {normalize_extension(ext) for ext in extensions}

    def scan(self, root_dir: Path) -> Generator[VideoFile, None, None]:
        """Yields VideoFile objects in deterministic (sorted) order.

        Hidden files are never yielded, whatever their depth.
        """
        for root, dirs, files in os.walk(str(root_dir)):
            root_path = Path(root)

            dirs.sort()
            files.sort()

            for file_name in files:
                if file_name.startswith("."):
                    continue

                file_path = root_path / file_name
                if file_path.suffix.lower() not in self.extensions:
                    continue

                try:
                    if not file_path.is_file():
                        continue
                    yield VideoFile(path=file_path, size_bytes=file_path.stat().st_size)
                except OSError:
                    # Skip files we can't access
                    continue

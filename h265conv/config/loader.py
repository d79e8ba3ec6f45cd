import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
from .models import AppConfig


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Loads YAML config and parses it into AppConfig Pydantic model.

    Without a path the built-in defaults are returned. A path that was given
    but does not exist is an error.
    """
    if config_path is None:
        return AppConfig()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    return AppConfig(**data)


@dataclass(frozen=True)
class CliConfigOverrides:
    jobs: Optional[int] = None
    crf: Optional[int] = None
    preset: Optional[str] = None
    output_dir: Optional[Path] = None
    input_dir: Optional[Path] = None
    on_interrupt: Optional[str] = None
    log_path: Optional[Path] = None
    verbose: bool = False

    def apply(self, config: AppConfig) -> AppConfig:
        """Returns a new, re-validated AppConfig with the CLI values on top."""
        data: Dict[str, Any] = config.model_dump()
        general = data["general"]
        if self.jobs is not None:
            general["jobs"] = self.jobs
        if self.crf is not None:
            general["crf"] = self.crf
        if self.preset is not None:
            general["preset"] = self.preset
        if self.on_interrupt is not None:
            general["on_interrupt"] = self.on_interrupt
        if self.log_path is not None:
            general["log_path"] = str(self.log_path)
        if self.verbose:
            general["verbose"] = True
        if self.output_dir is not None:
            data["output_dir"] = self.output_dir
        if self.input_dir is not None:
            data["input_dir"] = self.input_dir
        return AppConfig.model_validate(data)

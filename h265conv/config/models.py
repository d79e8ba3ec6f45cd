from pathlib import Path
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

X265_PRESETS = (
    "ultrafast",
    "superfast",
    "veryfast",
    "faster",
    "fast",
    "medium",
    "slow",
    "slower",
    "veryslow",
    "placebo",
)

INTERRUPT_POLICIES = ("drain", "terminate")

DEFAULT_EXTENSIONS = [".mp4", ".mov", ".mkv", ".avi", ".flv"]


def normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


class GeneralConfig(BaseModel):
    """Encoder and scheduling settings. Frozen: built once per run."""

    model_config = ConfigDict(frozen=True)

    jobs: int = Field(default=4, gt=0)
    crf: int = Field(default=28, ge=0, le=51)
    preset: str = "medium"
    extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    output_extension: str = ".mp4"
    ffmpeg_binary: str = "ffmpeg"
    video_codec: str = "libx265"
    video_tag: str = "hvc1"
    on_interrupt: Literal["drain", "terminate"] = "drain"
    verbose: bool = False
    log_path: Optional[str] = None

    @field_validator("preset")
    @classmethod
    def validate_preset(cls, v: str) -> str:
        preset = v.strip().lower()
        if preset not in X265_PRESETS:
            raise ValueError(f"Invalid preset '{v}'. Use one of: {', '.join(X265_PRESETS)}.")
        return preset

    @field_validator("extensions")
    @classmethod
    def validate_extensions(cls, v: List[str]) -> List[str]:
        normalized = [normalize_extension(ext) for ext in v if ext and ext.strip()]
        if not normalized:
            raise ValueError("extensions must contain at least one entry")
        return normalized

    @field_validator("output_extension")
    @classmethod
    def validate_output_extension(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("output_extension must not be empty")
        return normalize_extension(v)


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    input_dir: Path = Path("videos")
    output_dir: Path = Path("output")

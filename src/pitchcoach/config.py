"""Engine configuration models and JSON loading."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ConfigError


class EstimatorConfig(BaseModel):
    """Autocorrelation pitch estimator settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    sample_rate: int = Field(default=44100, gt=0)
    min_frequency: float = Field(default=65.0, gt=0, description="Lowest detectable pitch (~C2)")
    max_frequency: float = Field(default=4186.0, gt=0, description="Highest detectable pitch (~C8)")
    silence_threshold: float = Field(
        default=0.01, ge=0, description="Mean-square energy below which a block is silent"
    )
    confidence_threshold: float = Field(default=0.3, ge=0, le=1)

    @model_validator(mode="after")
    def _check_range(self) -> EstimatorConfig:
        if self.min_frequency >= self.max_frequency:
            raise ValueError("min_frequency must be below max_frequency")
        return self


class SmootherConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    window_size: int = Field(default=5, ge=1)


class TimingWindow(BaseModel):
    """Tolerance around a note onset, in milliseconds. Late attacks get more slack."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    early_ms: int = Field(default=-100, le=0)
    late_ms: int = Field(default=200, ge=0)

    def contains(self, timing_error_ms: int) -> bool:
        return self.early_ms <= timing_error_ms <= self.late_ms


class CaptureConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    sample_rate: int = Field(default=44100, gt=0)
    block_size: int = Field(default=4096, gt=0, description="~93 ms at 44.1 kHz")
    channels: int = Field(default=1, ge=1)
    device: int | str | None = None


class EngineConfig(BaseModel):
    """Top-level practice engine configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    tick_interval_ms: int = Field(default=33, gt=0, description="~30 Hz session tick")
    synthesize_missed_notes: bool = True
    estimator: EstimatorConfig = Field(default_factory=EstimatorConfig)
    smoother: SmootherConfig = Field(default_factory=SmootherConfig)
    timing: TimingWindow = Field(default_factory=TimingWindow)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)


def load_config(path: str | Path | None) -> EngineConfig:
    """
    Load engine configuration from a JSON file.

    Args:
        path: JSON file path, or None for defaults

    Returns:
        Validated EngineConfig

    Raises:
        ConfigError: If the file is missing or its content is invalid
    """
    if path is None:
        return EngineConfig()

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        return EngineConfig.model_validate_json(path.read_text(encoding="utf-8"))
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid config {path}: {e}") from e

"""
Configuration loader for the snaperase background-removal pipeline.

Environment variables are centralized here to keep the rest of the code
focused on the tensor pipeline. Normalization constants and the model input
side belong to the model variant, so they are resolved into a
`ModelProfile` instead of being hard-coded in the encoder.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)

MODEL_PRESETS = {
    "u2net": {
        "input_side": 320,
        "mean": IMAGENET_MEAN,
        "std": IMAGENET_STD,
    },
    "u2netp": {
        "input_side": 320,
        "mean": IMAGENET_MEAN,
        "std": IMAGENET_STD,
    },
    "u2net_human_seg": {
        "input_side": 320,
        "mean": IMAGENET_MEAN,
        "std": IMAGENET_STD,
    },
    "isnet-general-use": {
        "input_side": 1024,
        "mean": (0.5, 0.5, 0.5),
        "std": (1.0, 1.0, 1.0),
    },
}

MODEL_FAMILIES = set(MODEL_PRESETS) | {"custom"}
INFERENCE_BACKENDS = {"auto", "onnx", "torchscript"}


@dataclass(frozen=True)
class ModelProfile:
    """Input contract of one model variant."""

    name: str
    input_side: int
    mean: Tuple[float, float, float]
    std: Tuple[float, float, float]

    def __post_init__(self) -> None:
        if self.input_side <= 0:
            raise ValueError(f"input_side must be positive, got {self.input_side}")
        if len(self.mean) != 3 or len(self.std) != 3:
            raise ValueError("mean and std need exactly three channel values")
        if any(s == 0 for s in self.std):
            raise ValueError("std values must be non-zero")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", protected_namespaces=()
    )

    # Model
    u2net_model_path: Optional[Path] = None
    model_family: str = "u2net"
    inference_backend: str = "auto"
    onnx_providers: Optional[List[str]] = None
    serialize_runs: bool = False

    # Only read when model_family == "custom"
    model_input_side: int = 320
    norm_mean: Tuple[float, float, float] = IMAGENET_MEAN
    norm_std: Tuple[float, float, float] = IMAGENET_STD

    # API
    request_timeout_seconds: int = 30
    log_level: str = "INFO"

    # Debugging
    debug: bool = False
    debug_output_dir: Path = Field(Path("/tmp/snaperase_debug"))

    @field_validator("model_family")
    @classmethod
    def validate_model_family(cls, v: str) -> str:
        v = v.lower()
        if v not in MODEL_FAMILIES:
            raise ValueError(f"MODEL_FAMILY must be one of {'|'.join(sorted(MODEL_FAMILIES))}")
        return v

    @field_validator("inference_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in INFERENCE_BACKENDS:
            raise ValueError("INFERENCE_BACKEND must be one of auto|onnx|torchscript")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    return Settings()


def resolve_model_profile(settings: Optional[Settings] = None) -> ModelProfile:
    """
    Translate the configured model family into its input contract.

    `custom` takes side and normalization constants straight from settings so
    a new model family can be bound without touching the encoder.
    """
    settings = settings or get_settings()
    if settings.model_family == "custom":
        return ModelProfile(
            name="custom",
            input_side=settings.model_input_side,
            mean=tuple(settings.norm_mean),
            std=tuple(settings.norm_std),
        )
    preset = MODEL_PRESETS[settings.model_family]
    return ModelProfile(
        name=settings.model_family,
        input_side=preset["input_side"],
        mean=preset["mean"],
        std=preset["std"],
    )

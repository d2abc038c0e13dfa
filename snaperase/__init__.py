"""
snaperase background removal package.

Exposes the tensor pipeline (encode, infer, decode, composite) and the
`BackgroundRemover` orchestrator that ties it together. The HTTP API lives
in `snaperase.api` and is not imported here.
"""

from .config import ModelProfile
from .errors import (
    BackgroundRemovalError,
    InferenceFailure,
    InternalInvariantViolation,
    InvalidInput,
    ModelUnavailable,
    PipelineCancelled,
)
from .pipeline import BackgroundRemover, remove_background

__all__ = [
    "BackgroundRemovalError",
    "BackgroundRemover",
    "InferenceFailure",
    "InternalInvariantViolation",
    "InvalidInput",
    "ModelProfile",
    "ModelUnavailable",
    "PipelineCancelled",
    "remove_background",
]

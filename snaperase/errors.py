"""
Error taxonomy for the background-removal pipeline.

Every stage raises one of these and lets it propagate; the orchestrator
never catches or retries. Callers (HTTP layer, CLI) decide what the user
sees.
"""

from __future__ import annotations


class BackgroundRemovalError(Exception):
    """Base class for all pipeline failures."""


class InvalidInput(BackgroundRemovalError, ValueError):
    """Degenerate or undecodable input image."""


class ModelUnavailable(BackgroundRemovalError):
    """The model artifact is missing or could not be loaded."""


class InferenceFailure(BackgroundRemovalError):
    """The model raised while producing a prediction."""


class InternalInvariantViolation(BackgroundRemovalError):
    """Shapes or dimensions disagree between stages. Indicates a bug."""


class PipelineCancelled(BackgroundRemovalError):
    """A run was cancelled between stages."""

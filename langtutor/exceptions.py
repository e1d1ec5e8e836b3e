"""
Error taxonomy for the inference lifecycle.

Every error here is recoverable by calling ``initialize()`` again; none of
them is modelled as fatal.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .configs.model import ModelDescriptor

__all__ = [
    "EngineConstructionError",
    "FetchError",
    "GenerationCancelledError",
    "LlmServiceError",
    "NotReadyError",
    "ResetError",
]


class LlmServiceError(RuntimeError):
    """Base class for inference lifecycle errors."""

    def __init__(self, message: str, descriptor: ModelDescriptor | None = None):
        super().__init__(message)
        self.message = message
        self.descriptor = descriptor


class FetchError(LlmServiceError):
    """A model download failed. No partial file is left behind."""

    def __init__(
        self,
        message: str,
        descriptor: ModelDescriptor | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, descriptor)
        self.status_code = status_code


class EngineConstructionError(LlmServiceError):
    """The inference runtime rejected the model file or could not allocate it."""


class NotReadyError(LlmServiceError):
    """An operation that needs a loaded model was called outside ``Ready``."""

    def __init__(self, state: Any, descriptor: ModelDescriptor | None = None):
        super().__init__(f"LLM service is not ready. Current state: {state}", descriptor)
        self.state = state


class ResetError(LlmServiceError):
    """``reset_session`` was called without a loaded engine, or rebuilding failed."""


class GenerationCancelledError(LlmServiceError):
    """A generation stream was cut short by the service."""

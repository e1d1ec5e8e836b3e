"""Enums for the langtutor inference package."""

from .models import ModelBackend, ModelRuntime

__all__ = [
    "ModelBackend",
    "ModelRuntime",
]

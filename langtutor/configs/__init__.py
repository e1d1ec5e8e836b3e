"""Configuration dataclasses for settings, model descriptors and loaded engines."""

from .base import BaseConfig, to_primitive
from .model import LoadedEngine, ModelDescriptor
from .settings import EngineSettings, default_models_dir

__all__ = [
    "BaseConfig",
    "EngineSettings",
    "LoadedEngine",
    "ModelDescriptor",
    "default_models_dir",
    "to_primitive",
]

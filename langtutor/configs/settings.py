"""
Engine Settings.

Runtime knobs shared by the model store, the fetcher and the inference
services. Values come from defaults, an optional YAML file and
``LANGTUTOR_*`` environment variables, in that order of precedence.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .base import BaseConfig

__all__ = ["EngineSettings", "default_models_dir"]


def default_models_dir() -> Path:
    return Path.home() / ".langtutor" / "models"


def _env_int(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        return default


@dataclass(frozen=True)
class EngineSettings(BaseConfig):
    """Configuration for model storage, downloads and generation streams.

    Attributes:
        models_dir: Directory holding one file per downloaded model.
        chunk_size: Bytes read per download chunk.
        download_timeout: HTTP connect/read timeout in seconds.
        stream_buffer_size: Maximum generated chunks buffered ahead of a consumer.
        disk_reserve_mb: Free space that must remain after a download.
        default_model_id: Catalog entry used when none is named.
        catalog_path: Optional YAML catalog replacing the built-in one.
    """

    models_dir: Path = field(default_factory=default_models_dir)
    chunk_size: int = 4096
    download_timeout: float = 30.0
    stream_buffer_size: int = 64
    disk_reserve_mb: int = 0
    default_model_id: str | None = None
    catalog_path: Path | None = None

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.stream_buffer_size <= 0:
            raise ValueError(
                f"stream_buffer_size must be positive, got {self.stream_buffer_size}"
            )
        if self.download_timeout <= 0:
            raise ValueError(
                f"download_timeout must be positive, got {self.download_timeout}"
            )
        if self.disk_reserve_mb < 0:
            raise ValueError(f"disk_reserve_mb must be >= 0, got {self.disk_reserve_mb}")

    @property
    def disk_reserve_bytes(self) -> int:
        return self.disk_reserve_mb * 1024 * 1024

    def with_env_overrides(self) -> EngineSettings:
        """Return a copy with ``LANGTUTOR_*`` environment variables applied."""
        overrides: dict[str, Any] = {}
        if models_dir := os.getenv("LANGTUTOR_MODELS_DIR"):
            overrides["models_dir"] = Path(models_dir).expanduser()
        if catalog_path := os.getenv("LANGTUTOR_CATALOG"):
            overrides["catalog_path"] = Path(catalog_path).expanduser()
        if default_model := os.getenv("LANGTUTOR_DEFAULT_MODEL"):
            overrides["default_model_id"] = default_model
        if "LANGTUTOR_CHUNK_SIZE" in os.environ:
            overrides["chunk_size"] = _env_int("LANGTUTOR_CHUNK_SIZE", self.chunk_size)
        if "LANGTUTOR_DOWNLOAD_TIMEOUT" in os.environ:
            overrides["download_timeout"] = _env_float(
                "LANGTUTOR_DOWNLOAD_TIMEOUT", self.download_timeout
            )
        return replace(self, **overrides) if overrides else self

    @classmethod
    def load(cls, path: str | Path | None = None) -> EngineSettings:
        """Load settings from an optional YAML file, then apply the environment."""
        settings = cls.from_yaml(path) if path else cls()
        return settings.with_env_overrides()

"""Local storage for downloaded model files."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from ..configs.model import ModelDescriptor

logger = logging.getLogger(__name__)

__all__ = ["PARTIAL_SUFFIX", "ModelStore"]

PARTIAL_SUFFIX = ".part"


class ModelStore:
    """Resolves where a model lives on disk and whether it is already there."""

    def __init__(self, models_dir: Path):
        """
        Initialize the model store.
        Args:
            models_dir: Directory where model files are stored, one file per model id.
        """
        self.models_dir = Path(models_dir)
        self.models_dir.mkdir(parents=True, exist_ok=True)

    def local_path(self, descriptor: ModelDescriptor) -> Path:
        """Path of the model file. Depends only on ``models_dir`` and ``descriptor.id``."""
        return self.models_dir / descriptor.id

    def partial_path(self, descriptor: ModelDescriptor) -> Path:
        """Staging path used while a download is in flight."""
        return self.models_dir / f"{descriptor.id}{PARTIAL_SUFFIX}"

    def exists(self, descriptor: ModelDescriptor) -> bool:
        return self.local_path(descriptor).is_file()

    def delete(self, descriptor: ModelDescriptor) -> bool:
        """
        Remove a model file and any leftover staging file.
        Returns:
            True if the model file existed.
        """
        self.partial_path(descriptor).unlink(missing_ok=True)
        path = self.local_path(descriptor)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted model file %s", path)
        return True

    def list_local(self, descriptors: Iterable[ModelDescriptor]) -> list[dict[str, Any]]:
        """List the given models that are present on disk."""
        local_models = []
        for descriptor in descriptors:
            path = self.local_path(descriptor)
            if path.is_file():
                local_models.append(
                    {
                        "model_id": descriptor.id,
                        "name": descriptor.name,
                        "path": str(path),
                        "runtime": descriptor.runtime.value,
                        "size": path.stat().st_size,
                    }
                )
        return local_models

    def get_disk_usage(self) -> dict[str, int]:
        """
        Get disk usage of the models directory.
        Returns:
            Dict with total, used, and free bytes.
        """
        usage = shutil.disk_usage(self.models_dir)
        return {
            "total": usage.total,
            "used": usage.used,
            "free": usage.free,
        }

    def get_models_size(self) -> int:
        """Total size in bytes of all files in the models directory."""
        return sum(f.stat().st_size for f in self.models_dir.rglob("*") if f.is_file())

    def can_fit(self, size_bytes: int, reserve_bytes: int = 0) -> bool:
        """
        Check if a file of given size fits in the free disk space.
        Args:
            size_bytes: Size of the model in bytes.
            reserve_bytes: Space that must stay free afterwards.
        """
        usage = self.get_disk_usage()
        return (usage["free"] - size_bytes) >= reserve_bytes

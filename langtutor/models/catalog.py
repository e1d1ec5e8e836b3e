"""Static registry of known models."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any

import yaml

from ..configs.model import ModelDescriptor
from ..constants.models import DEFAULT_MODEL_ID, HF_RESOLVE_URL, MODEL_CONFIGS

logger = logging.getLogger(__name__)

__all__ = ["ModelCatalog", "descriptor_from_config"]


def descriptor_from_config(model_id: str, config: Mapping[str, Any]) -> ModelDescriptor:
    """Build a descriptor from a catalog entry, deriving the URL from ``hf_repo``/``hf_file``."""
    data = dict(config)
    data["id"] = model_id
    data.setdefault("name", model_id)
    if not data.get("url") and data.get("hf_repo") and data.get("hf_file"):
        data["url"] = HF_RESOLVE_URL.format(repo=data["hf_repo"], file=data["hf_file"])
    return ModelDescriptor.from_dict(data)


class ModelCatalog:
    """Lookup of model descriptors by id, with one default entry.

    The catalog is a plain value: build it once and pass it to whoever needs it.
    """

    def __init__(self, descriptors: Iterable[ModelDescriptor], default_id: str | None = None):
        self._models: dict[str, ModelDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in self._models:
                raise ValueError(f"Duplicate model id in catalog: {descriptor.id}")
            self._models[descriptor.id] = descriptor

        if not self._models:
            raise ValueError("A model catalog needs at least one entry")

        if default_id is None:
            default_id = next(iter(self._models))
        if default_id not in self._models:
            raise ValueError(f"Default model {default_id!r} is not in the catalog")
        self._default_id = default_id

    @classmethod
    def from_configs(
        cls,
        configs: Mapping[str, Mapping[str, Any]],
        default_id: str | None = None,
    ) -> ModelCatalog:
        return cls(
            (descriptor_from_config(model_id, cfg) for model_id, cfg in configs.items()),
            default_id=default_id,
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> ModelCatalog:
        """Load a catalog file of the form ``{default: id, models: {id: {...}}}``."""
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        models = data.get("models") or {}
        logger.info("Loaded %d catalog entries from %s", len(models), path)
        return cls.from_configs(models, default_id=data.get("default"))

    @classmethod
    def builtin(cls, default_id: str | None = None) -> ModelCatalog:
        return cls.from_configs(MODEL_CONFIGS, default_id=default_id or DEFAULT_MODEL_ID)

    def get(self, model_id: str) -> ModelDescriptor | None:
        return self._models.get(model_id)

    def list_all(self) -> list[ModelDescriptor]:
        return list(self._models.values())

    def default(self) -> ModelDescriptor:
        return self._models[self._default_id]

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self) -> Iterator[ModelDescriptor]:
        return iter(self._models.values())

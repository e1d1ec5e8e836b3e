"""Model catalog, local storage and downloads."""

from .catalog import ModelCatalog, descriptor_from_config
from .fetcher import INDETERMINATE_PROGRESS, ModelFetcher
from .store import PARTIAL_SUFFIX, ModelStore

__all__ = [
    "INDETERMINATE_PROGRESS",
    "PARTIAL_SUFFIX",
    "ModelCatalog",
    "ModelFetcher",
    "ModelStore",
    "descriptor_from_config",
]

"""Backend selection."""

from __future__ import annotations

import logging

from ..configs.model import ModelDescriptor
from ..configs.settings import EngineSettings
from ..enums.models import ModelRuntime
from ..models.fetcher import ModelFetcher
from ..models.store import ModelStore
from .engine import BaseLlmService
from .llama_cpp import LlamaCppService
from .torchscript import TorchScriptService

logger = logging.getLogger(__name__)

__all__ = ["SERVICE_CLASSES", "create_llm_service"]

SERVICE_CLASSES: dict[ModelRuntime, type[BaseLlmService]] = {
    ModelRuntime.LLAMA_CPP: LlamaCppService,
    ModelRuntime.TORCHSCRIPT: TorchScriptService,
}


def create_llm_service(
    descriptor: ModelDescriptor,
    store: ModelStore,
    fetcher: ModelFetcher | None = None,
    settings: EngineSettings | None = None,
) -> BaseLlmService:
    """
    Build the service for ``descriptor.runtime``.
    Args:
        descriptor: The model to serve.
        store: Local model storage.
        fetcher: Optional shared fetcher.
        settings: Optional engine settings.
    Returns:
        An idle service; call ``initialize()`` to load the model.
    """
    service_cls = SERVICE_CLASSES.get(descriptor.runtime)
    if service_cls is None:
        raise ValueError(f"Unsupported runtime: {descriptor.runtime}")
    logger.info("Using %s for %s", service_cls.__name__, descriptor.id)
    return service_cls(descriptor, store, fetcher=fetcher, settings=settings)

"""
langtutor: on-device LLM inference lifecycle for a language tutor.

Downloads catalog models, loads them into a llama.cpp or TorchScript
runtime and streams generated replies behind one service contract.
"""

from .configs import EngineSettings, LoadedEngine, ModelDescriptor
from .enums import ModelBackend, ModelRuntime
from .exceptions import (
    EngineConstructionError,
    FetchError,
    GenerationCancelledError,
    LlmServiceError,
    NotReadyError,
    ResetError,
)
from .inference import (
    BaseLlmService,
    Downloading,
    Error,
    Idle,
    Initializing,
    LlmService,
    Ready,
    ServiceState,
    StateSlot,
    TokenStream,
    Tokenizer,
    create_llm_service,
)
from .models import ModelCatalog, ModelFetcher, ModelStore

__version__ = "0.1.0"

__all__ = [
    "BaseLlmService",
    "Downloading",
    "EngineConstructionError",
    "EngineSettings",
    "Error",
    "FetchError",
    "GenerationCancelledError",
    "Idle",
    "Initializing",
    "LlmService",
    "LlmServiceError",
    "LoadedEngine",
    "ModelBackend",
    "ModelCatalog",
    "ModelDescriptor",
    "ModelFetcher",
    "ModelRuntime",
    "ModelStore",
    "NotReadyError",
    "Ready",
    "ResetError",
    "ServiceState",
    "StateSlot",
    "TokenStream",
    "Tokenizer",
    "create_llm_service",
]

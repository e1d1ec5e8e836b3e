"""Inference services and their building blocks."""

from .engine import BaseLlmService
from .factory import create_llm_service
from .llama_cpp import LlamaCppService, LlamaSession
from .service import LlmService
from .state import Downloading, Error, Idle, Initializing, Ready, ServiceState, StateSlot
from .stream import TokenStream
from .tokenizer import Tokenizer, load_vocabulary, parse_vocabulary
from .torchscript import TorchScriptService

__all__ = [
    "BaseLlmService",
    "Downloading",
    "Error",
    "Idle",
    "Initializing",
    "LlamaCppService",
    "LlamaSession",
    "LlmService",
    "Ready",
    "ServiceState",
    "StateSlot",
    "TokenStream",
    "Tokenizer",
    "TorchScriptService",
    "create_llm_service",
    "load_vocabulary",
    "parse_vocabulary",
]

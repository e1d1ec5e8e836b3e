"""
LLM service contract.

Conversation code depends only on ``LlmService``. Which backend sits behind
it is decided once, when the service is constructed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..configs.model import ModelDescriptor
from .state import ServiceState, StateSlot
from .stream import TokenStream

__all__ = ["LlmService"]


class LlmService(ABC):
    """Lifecycle and generation surface shared by every inference backend."""

    @property
    @abstractmethod
    def descriptor(self) -> ModelDescriptor:
        """The model this service loads."""

    @property
    @abstractmethod
    def state_slot(self) -> StateSlot[ServiceState]:
        """Observable holder of the current state."""

    @property
    def state(self) -> ServiceState:
        return self.state_slot.value

    @abstractmethod
    async def initialize(self) -> None:
        """
        Load the model, downloading it first if it is not on disk.
        Failures are reported through ``state`` and never raised.
        """

    @abstractmethod
    def generate_response(
        self, prompt: str, conversation_id: str, target_language: str
    ) -> TokenStream:
        """
        Stream a reply to ``prompt``.
        Returns:
            A stream of text chunks. If the service is not ready, the stream
            fails with ``NotReadyError`` on first iteration.
        """

    @abstractmethod
    async def get_initial_greeting(self, topic: str, target_language: str) -> str:
        """Opening message for a new conversation. Never raises."""

    @abstractmethod
    async def reset_session(self) -> None:
        """Start a fresh conversation context on the already-loaded model."""

    @abstractmethod
    def close(self) -> None:
        """Release every loaded resource and return to ``Idle``. Idempotent."""

    async def __aenter__(self) -> LlmService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

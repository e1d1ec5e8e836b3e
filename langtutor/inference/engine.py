"""
Inference lifecycle state machine.

``BaseLlmService`` drives a model from ``Idle`` through download and engine
construction to ``Ready`` and back. Backends fill in the hooks that build,
reset and release their runtime objects and that produce text for a prompt.

Transitions::

    Idle -> Initializing -> [Downloading(p) -> Initializing] -> Ready | Error
    Ready -> reset_session() -> Ready | Error
    * -> close() -> Idle
"""

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from pathlib import Path
from typing import Any

from ..configs.model import LoadedEngine, ModelDescriptor
from ..configs.settings import EngineSettings
from ..exceptions import (
    GenerationCancelledError,
    LlmServiceError,
    NotReadyError,
    ResetError,
)
from ..models.fetcher import ModelFetcher
from ..models.store import ModelStore
from .prompts import (
    format_chat_prompt,
    format_greeting_prompt,
    greeting_error_fallback,
    greeting_fallback,
)
from .service import LlmService
from .state import Downloading, Error, Idle, Initializing, Ready, ServiceState, StateSlot
from .stream import TokenStream

logger = logging.getLogger(__name__)

__all__ = ["BaseLlmService"]

GREETING_CONVERSATION_ID = "greeting"


class BaseLlmService(LlmService):
    """State machine shared by all backends.

    Calls on one instance must not overlap; the caller serializes them.
    Only ``state_slot`` is safe to read from other tasks.
    """

    def __init__(
        self,
        descriptor: ModelDescriptor,
        store: ModelStore,
        fetcher: ModelFetcher | None = None,
        settings: EngineSettings | None = None,
    ):
        """
        Initialize the service.
        Args:
            descriptor: The model to serve.
            store: Where the model file lives.
            fetcher: Used when the model is absent. Built from ``settings`` if omitted.
            settings: Stream and download settings.
        """
        self.settings = settings or EngineSettings(models_dir=store.models_dir)
        self.store = store
        self.fetcher = fetcher or ModelFetcher.from_settings(store, self.settings)
        self._descriptor = descriptor
        self._state: StateSlot[ServiceState] = StateSlot(Idle())
        self._handle: LoadedEngine | None = None
        self._active_stream: TokenStream | None = None

    @property
    def descriptor(self) -> ModelDescriptor:
        return self._descriptor

    @property
    def state_slot(self) -> StateSlot[ServiceState]:
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._handle is not None

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _build_engine(self, path: Path) -> LoadedEngine:
        """Construct the runtime from a local model file. Runs in an executor."""

    def _open_session(self, handle: LoadedEngine) -> Any:
        """Create a per-conversation session. Runs in an executor with ``handle.lock`` held."""
        return None

    def _close_session(self, handle: LoadedEngine, session: Any) -> None:
        """Called with ``handle.lock`` held."""

    def _release_engine(self, handle: LoadedEngine) -> None:
        """Called with ``handle.lock`` held."""

    @abstractmethod
    async def _produce(self, handle: LoadedEngine, prompt: str, stream: TokenStream) -> None:
        """Generate a reply to the templated ``prompt``, pushing chunks into ``stream``."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        self.close()
        descriptor = self._descriptor
        self._set_state(Initializing())
        try:
            await self._load(descriptor)
        except asyncio.CancelledError:
            logger.warning("Initialization of %s was cancelled", descriptor.id)
            self._set_state(Idle())
            raise

    async def _load(self, descriptor: ModelDescriptor) -> None:
        if not self.store.exists(descriptor):
            if not await self._download(descriptor):
                return
            self._set_state(Initializing())

        path = self.store.local_path(descriptor)
        loop = asyncio.get_running_loop()
        building = loop.run_in_executor(None, self._build_engine, path)
        try:
            handle = await asyncio.shield(building)
        except asyncio.CancelledError:
            # The executor keeps building; release whatever it returns.
            building.add_done_callback(self._release_abandoned)
            raise
        except Exception as e:
            logger.error("Failed to load %s from %s: %s", descriptor.id, path, e)
            self._fail(f"Failed to initialize {descriptor.name}: {_describe(e)}")
            return

        opening = loop.run_in_executor(None, self._open_locked, handle)
        try:
            handle.session = await asyncio.shield(opening)
        except asyncio.CancelledError:
            opening.add_done_callback(
                lambda future: self._release(handle, _result_or_none(future))
            )
            raise
        except Exception as e:
            self._release(handle)
            logger.error("Failed to open a session for %s: %s", descriptor.id, e)
            self._fail(f"Failed to initialize {descriptor.name}: {_describe(e)}")
            return

        self._handle = handle
        logger.info("%s ready on %s (%s)", descriptor.id, handle.device, handle.backend)
        self._set_state(Ready())

    async def _download(self, descriptor: ModelDescriptor) -> bool:
        self._set_state(Downloading(descriptor, 0))

        def on_progress(percent: int) -> None:
            self._set_state(Downloading(descriptor, percent))

        try:
            await self.fetcher.fetch(descriptor, on_progress=on_progress)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Download of %s failed: %s", descriptor.id, e)
            self._fail(_describe(e))
            return False
        return True

    async def reset_session(self) -> None:
        handle = self._handle
        if handle is None:
            error = ResetError("Cannot reset session: no model is loaded", self._descriptor)
            logger.error(error.message)
            self._fail(error.message)
            return

        self._cancel_active(GenerationCancelledError("Session was reset", self._descriptor))
        self._discard_session(handle)

        loop = asyncio.get_running_loop()
        opening = loop.run_in_executor(None, self._open_locked, handle)
        try:
            handle.session = await asyncio.shield(opening)
        except asyncio.CancelledError:
            opening.add_done_callback(lambda future: self._adopt_session(handle, future))
            self._fail("Session reset was cancelled")
            raise
        except Exception as e:
            # The engine stays loaded; close() or initialize() releases it.
            logger.error("Failed to reset session for %s: %s", handle.model_id, e)
            self._fail(f"Failed to reset session: {_describe(e)}")
            return

        logger.info("Session reset for %s", handle.model_id)
        self._set_state(Ready())

    def close(self) -> None:
        self._cancel_active(GenerationCancelledError("LLM service was closed", self._descriptor))
        handle, self._handle = self._handle, None
        if handle is not None:
            self._release(handle)
        self._set_state(Idle())

    def _open_locked(self, handle: LoadedEngine) -> Any:
        with handle.lock:
            return self._open_session(handle)

    def _discard_session(self, handle: LoadedEngine) -> None:
        if handle.session is None:
            return
        session, handle.session = handle.session, None
        self._close_detached(handle, session)

    def _close_detached(self, handle: LoadedEngine, session: Any) -> None:
        try:
            # Waits for a generation step still running in the executor.
            with handle.lock:
                self._close_session(handle, session)
        except Exception:
            logger.exception("Error closing session for %s", handle.model_id)

    def _adopt_session(self, handle: LoadedEngine, future: asyncio.Future) -> None:
        session = _result_or_none(future)
        if session is None or handle.engine is None:
            return
        if self._handle is handle and handle.session is None:
            handle.session = session
        else:
            self._close_detached(handle, session)

    def _release_abandoned(self, future: asyncio.Future) -> None:
        handle = _result_or_none(future)
        if handle is not None:
            self._release(handle)

    def _release(self, handle: LoadedEngine, session: Any = None) -> None:
        if session is not None:
            handle.session = session
        self._discard_session(handle)
        try:
            with handle.lock:
                self._release_engine(handle)
        except Exception:
            logger.exception("Error releasing engine for %s", handle.model_id)
        handle.engine = None
        handle.vocabulary.clear()
        logger.info("Released %s", handle.model_id)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_response(
        self, prompt: str, conversation_id: str, target_language: str
    ) -> TokenStream:
        name = f"{self._descriptor.id}/{conversation_id}"
        handle = self._handle
        state = self.state
        if handle is None or not isinstance(state, Ready):
            logger.warning("Generation requested while %s", state)
            return TokenStream.failed(NotReadyError(state, self._descriptor), name=name)

        self._cancel_active(
            GenerationCancelledError("Superseded by a newer request", self._descriptor)
        )
        full_prompt = format_chat_prompt(prompt)
        logger.debug("Generating for %s (%s): %r", conversation_id, target_language, full_prompt)

        async def produce(stream: TokenStream) -> None:
            await self._produce(handle, full_prompt, stream)

        stream = TokenStream(produce, maxsize=self.settings.stream_buffer_size, name=name)
        self._active_stream = stream
        stream.add_close_callback(self._forget_stream)
        return stream

    async def get_initial_greeting(self, topic: str, target_language: str) -> str:
        stream = self.generate_response(
            format_greeting_prompt(topic, target_language),
            GREETING_CONVERSATION_ID,
            target_language,
        )
        try:
            text = (await stream.collect()).strip()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Could not generate greeting for %s/%s: %s", topic, target_language, e)
            return greeting_error_fallback(topic, target_language)
        finally:
            await stream.aclose()

        if not text:
            logger.warning("Model returned an empty greeting for %s/%s", topic, target_language)
            return greeting_fallback(topic, target_language)
        return text

    def _cancel_active(self, error: LlmServiceError) -> None:
        stream, self._active_stream = self._active_stream, None
        if stream is not None and not stream.finished:
            logger.info("Cancelling %s stream: %s", stream.name, error.message)
            stream.cancel(error)

    def _forget_stream(self, stream: TokenStream) -> None:
        if self._active_stream is stream:
            self._active_stream = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _set_state(self, state: ServiceState) -> None:
        if self._state.set(state):
            logger.debug("%s -> %s", self._descriptor.id, state)

    def _fail(self, message: str) -> None:
        self._set_state(Error(message, self._descriptor))


def _describe(error: BaseException) -> str:
    if isinstance(error, LlmServiceError):
        return error.message
    return str(error) or type(error).__name__


def _result_or_none(future: asyncio.Future) -> Any:
    """Result of a finished executor future, or None if it failed."""
    if future.cancelled():
        return None
    error = future.exception()
    if error is not None:
        logger.warning("Abandoned background step failed: %s", error)
        return None
    return future.result()

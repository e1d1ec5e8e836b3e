"""
llama.cpp backend.

The engine is a ``llama_cpp.Llama`` instance holding the weights. Each
conversation gets a ``LlamaSession`` that starts from a cleared KV cache and
streams completions token by token.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from ..configs.model import LoadedEngine, ModelDescriptor
from ..enums.models import ModelBackend, ModelRuntime
from ..exceptions import EngineConstructionError
from .engine import BaseLlmService
from .prompts import STOP_SEQUENCES
from .stream import TokenStream

logger = logging.getLogger(__name__)

__all__ = ["LlamaCppService", "LlamaSession"]

CONTEXT_FAILURE = "Failed to create llama_context"


class LlamaSession:
    """Per-conversation generation context on a shared ``Llama`` engine.

    Callers hold the engine lock around ``advance``, ``discard`` and ``close``.
    """

    def __init__(self, llm: Any, descriptor: ModelDescriptor):
        self.llm = llm
        self.descriptor = descriptor
        self._pieces: Iterator[str] | None = None
        self.llm.reset()

    def stream(self, prompt: str) -> Iterator[str]:
        """Yield non-empty text pieces of a streamed completion."""
        d = self.descriptor
        completion = self.llm.create_completion(
            prompt,
            max_tokens=d.max_tokens,
            temperature=d.temperature,
            top_k=d.top_k,
            top_p=d.top_p,
            stop=STOP_SEQUENCES,
            stream=True,
        )
        for chunk in completion:
            text = chunk["choices"][0].get("text", "")
            if text:
                yield text

    def advance(self, pieces: Iterator[str]) -> str | None:
        """Decode the next piece of ``pieces``, abandoning any other open completion."""
        if self._pieces is not pieces:
            if self._pieces is not None:
                self._pieces.close()
            self._pieces = pieces
        return next(pieces, None)

    def discard(self, pieces: Iterator[str]) -> None:
        pieces.close()
        if self._pieces is pieces:
            self._pieces = None

    def close(self) -> None:
        if self._pieces is not None:
            self._pieces.close()
            self._pieces = None
        self.llm.reset()


class LlamaCppService(BaseLlmService):
    """Streaming backend over GGUF models."""

    runtime = ModelRuntime.LLAMA_CPP

    def _build_engine(self, path: Path) -> LoadedEngine:
        from llama_cpp import Llama  # type: ignore

        d = self.descriptor
        n_gpu_layers = -1 if d.preferred_backend is ModelBackend.GPU else 0
        logger.info(
            "Loading %s with n_gpu_layers=%s, n_ctx=%s", path, n_gpu_layers, d.n_ctx
        )
        try:
            llm = Llama(model_path=str(path), n_gpu_layers=n_gpu_layers, n_ctx=d.n_ctx, verbose=False)
        except ValueError as e:
            if CONTEXT_FAILURE not in str(e) or n_gpu_layers == 0:
                raise EngineConstructionError(f"llama.cpp rejected {path.name}: {e}", d) from e
            logger.warning(
                "Failed to create Llama context with GPU acceleration. Falling back to CPU."
            )
            n_gpu_layers = 0
            try:
                llm = Llama(model_path=str(path), n_gpu_layers=0, n_ctx=d.n_ctx, verbose=False)
            except ValueError as cpu_error:
                raise EngineConstructionError(
                    f"llama.cpp rejected {path.name}: {cpu_error}", d
                ) from cpu_error

        device = ModelBackend.GPU if n_gpu_layers else ModelBackend.CPU
        return LoadedEngine(
            model_id=d.id,
            engine=llm,
            path=path,
            backend=self.runtime.value,
            device=device.value,
            loaded_at=time.time(),
        )

    def _open_session(self, handle: LoadedEngine) -> LlamaSession:
        return LlamaSession(handle.engine, self.descriptor)

    def _close_session(self, handle: LoadedEngine, session: LlamaSession) -> None:
        session.close()

    def _release_engine(self, handle: LoadedEngine) -> None:
        close = getattr(handle.engine, "close", None)
        if close is not None:
            close()

    async def _produce(self, handle: LoadedEngine, prompt: str, stream: TokenStream) -> None:
        session: LlamaSession = handle.session
        pieces = session.stream(prompt)
        loop = asyncio.get_running_loop()

        def advance() -> str | None:
            with handle.lock:
                return session.advance(pieces)

        def discard() -> None:
            with handle.lock:
                session.discard(pieces)

        try:
            while True:
                # llama.cpp blocks while decoding, so each piece is pulled in the executor.
                piece = await loop.run_in_executor(None, advance)
                if piece is None or not await stream.send(piece):
                    return
        finally:
            # Runs once any step still in flight releases the lock.
            loop.run_in_executor(None, discard)

"""
Asynchronous token streams.

A ``TokenStream`` adapts a producer coroutine to an async iterator over a
bounded buffer. The producer starts on first iteration. Every stream ends
with exactly one terminal event: normal completion (``StopAsyncIteration``)
or a single raised error.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

__all__ = ["Producer", "TokenStream"]


class TokenStream:
    """Async iterator of generated text chunks."""

    def __init__(
        self,
        producer: Producer | None = None,
        maxsize: int = 64,
        name: str = "generation",
    ):
        """
        Initialize the stream.
        Args:
            producer: Coroutine function that calls ``await stream.send(chunk)``
                for each chunk and returns when generation is complete.
            maxsize: Chunks buffered before ``send`` waits for the consumer.
            name: Label used in log messages.
        """
        if maxsize <= 0:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self.name = name
        self._producer = producer
        self._maxsize = maxsize
        self._buffer: deque[str] = deque()
        self._task: asyncio.Task[None] | None = None
        self._finished = False
        self._error: BaseException | None = None
        self._delivered_terminal = False
        self._readable: asyncio.Event | None = None
        self._writable: asyncio.Event | None = None
        self._on_close: list[Callable[[TokenStream], None]] = []

    @classmethod
    def failed(cls, error: BaseException, name: str = "generation") -> TokenStream:
        """A stream whose only event is ``error``."""
        stream = cls(None, name=name)
        stream.finish(error)
        return stream

    @property
    def finished(self) -> bool:
        return self._finished

    def add_close_callback(self, callback: Callable[[TokenStream], None]) -> None:
        """Run ``callback`` once when the stream reaches its terminal state."""
        if self._finished:
            callback(self)
        else:
            self._on_close.append(callback)

    async def send(self, chunk: str) -> bool:
        """
        Push a chunk from the producer side, waiting while the buffer is full.
        Returns:
            False if the stream has already terminated and the chunk was dropped.
        """
        while not self._finished and len(self._buffer) >= self._maxsize:
            writable = self._event("_writable")
            writable.clear()
            await writable.wait()
        if self._finished:
            return False
        self._buffer.append(chunk)
        self._event("_readable").set()
        return True

    def finish(self, error: BaseException | None = None) -> bool:
        """
        Mark the stream terminated, normally or with ``error``.
        Returns:
            False if it had already terminated.
        """
        if self._finished:
            return False
        self._finished = True
        self._error = error
        if self._readable is not None:
            self._readable.set()
        if self._writable is not None:
            self._writable.set()
        callbacks, self._on_close = self._on_close, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception:
                logger.exception("Close callback for %s stream failed", self.name)
        return True

    def cancel(self, error: BaseException | None = None) -> None:
        """Stop the producer and drop undelivered chunks.

        The consumer then sees ``error`` (or normal completion) as the terminal event.
        """
        self._buffer.clear()
        self.finish(error)
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def aclose(self) -> None:
        """Consumer-side close: stop the producer and wait for it to unwind."""
        self.cancel()
        self._delivered_terminal = True
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    def __aiter__(self) -> TokenStream:
        return self

    async def __anext__(self) -> str:
        self._start()
        while True:
            if self._buffer:
                chunk = self._buffer.popleft()
                if self._writable is not None:
                    self._writable.set()
                return chunk
            if self._finished:
                if self._delivered_terminal:
                    raise StopAsyncIteration
                self._delivered_terminal = True
                if self._error is not None:
                    raise self._error
                raise StopAsyncIteration
            readable = self._event("_readable")
            readable.clear()
            await readable.wait()

    async def collect(self) -> str:
        """Concatenate every chunk. Raises the stream's terminal error, if any."""
        parts = [chunk async for chunk in self]
        return "".join(parts)

    def _start(self) -> None:
        if self._task is None and self._producer is not None and not self._finished:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        assert self._producer is not None
        try:
            await self._producer(self)
        except asyncio.CancelledError:
            self.finish()
            raise
        except Exception as e:
            logger.error("%s stream failed: %s", self.name, e)
            self.finish(e)
        else:
            self.finish()

    def _event(self, attr: str) -> asyncio.Event:
        event = getattr(self, attr)
        if event is None:
            event = asyncio.Event()
            setattr(self, attr, event)
        return event


Producer = Callable[[TokenStream], Awaitable[None]]

"""
Service states and the observable slot that publishes them.

Exactly one state is current at a time. The owning service is the only
writer; any number of observers may read or subscribe.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..configs.model import ModelDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")

__all__ = [
    "Downloading",
    "Error",
    "Idle",
    "Initializing",
    "Ready",
    "ServiceState",
    "StateSlot",
]


@dataclass(frozen=True)
class ServiceState:
    """Base of the closed set of service states."""

    def __str__(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class Idle(ServiceState):
    pass


@dataclass(frozen=True)
class Initializing(ServiceState):
    pass


@dataclass(frozen=True)
class Downloading(ServiceState):
    descriptor: ModelDescriptor
    progress: int = 0

    def __str__(self) -> str:
        return f"Downloading({self.descriptor.id}, {self.progress}%)"


@dataclass(frozen=True)
class Ready(ServiceState):
    pass


@dataclass(frozen=True)
class Error(ServiceState):
    message: str
    descriptor: ModelDescriptor | None = None

    def __str__(self) -> str:
        return f"Error({self.message})"


class StateSlot(Generic[T]):
    """Single-writer value cell with change notification.

    Setting a value equal to the current one is a no-op, so observers see
    each distinct transition once. New subscribers receive the current value
    first.
    """

    def __init__(self, initial: T):
        self._value = initial
        self._listeners: list[Callable[[T], Any]] = []
        self._queues: set[asyncio.Queue[T]] = set()

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> bool:
        """Publish ``value``. Returns False if it equals the current value."""
        if value == self._value:
            return False
        self._value = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("State listener %r failed", listener)
        for queue in self._queues:
            queue.put_nowait(value)
        return True

    def subscribe(self, listener: Callable[[T], Any]) -> Callable[[], None]:
        """
        Register a synchronous listener.
        Args:
            listener: Called with the current value now and with every later change.
        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)
        listener(self._value)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def changes(self) -> AsyncIterator[T]:
        """Yield the current value, then every subsequent change, in order."""
        queue: asyncio.Queue[T] = asyncio.Queue()
        self._queues.add(queue)
        try:
            yield self._value
            while True:
                yield await queue.get()
        finally:
            self._queues.discard(queue)

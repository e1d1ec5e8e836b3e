"""Streaming model downloads with coalesced progress reporting."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Any

import httpx

from ..configs.model import ModelDescriptor
from ..configs.settings import EngineSettings
from ..exceptions import FetchError
from .store import ModelStore

logger = logging.getLogger(__name__)

__all__ = ["INDETERMINATE_PROGRESS", "ModelFetcher", "ProgressCallback"]

ProgressCallback = Callable[[int], Any]

# Reported once when the server does not send a content length.
INDETERMINATE_PROGRESS = 50


class ModelFetcher:
    """Downloads a model file into a ``ModelStore``.

    The body is written to a staging file and renamed into place only after
    the last byte arrives, so the model path is either absent or complete.
    Failed downloads are never retried here; calling ``fetch`` again is the
    retry path.
    """

    def __init__(
        self,
        store: ModelStore,
        client: httpx.AsyncClient | None = None,
        chunk_size: int = 4096,
        timeout: float = 30.0,
        reserve_bytes: int = 0,
    ):
        """
        Initialize the fetcher.
        Args:
            store: Where downloaded files go.
            client: Shared HTTP client. When omitted, one is created per download.
            chunk_size: Bytes read per chunk.
            timeout: HTTP timeout in seconds for clients created here.
            reserve_bytes: Free space that must remain after the download.
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.store = store
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.reserve_bytes = reserve_bytes
        self._client = client

    @classmethod
    def from_settings(
        cls,
        store: ModelStore,
        settings: EngineSettings,
        client: httpx.AsyncClient | None = None,
    ) -> ModelFetcher:
        return cls(
            store,
            client=client,
            chunk_size=settings.chunk_size,
            timeout=settings.download_timeout,
            reserve_bytes=settings.disk_reserve_bytes,
        )

    async def fetch(
        self,
        descriptor: ModelDescriptor,
        on_progress: ProgressCallback | None = None,
    ) -> Path:
        """
        Download ``descriptor.url`` to the store.
        Args:
            descriptor: The model to download.
            on_progress: Called with an integer percentage whenever it changes.
        Returns:
            The local path of the complete model file.
        Raises:
            FetchError: On any HTTP, network or disk failure.
        """
        if not descriptor.is_downloadable:
            raise FetchError(
                f"Model {descriptor.name} (ID: {descriptor.id}) has no download URL specified.",
                descriptor,
            )
        if descriptor.needs_auth:
            logger.warning(
                "Model %s is flagged as needing auth; credentials are not supported "
                "and the request is sent without them",
                descriptor.id,
            )

        target = self.store.local_path(descriptor)
        partial = self.store.partial_path(descriptor)
        report = _ProgressReporter(on_progress)

        logger.info("Downloading %s from %s", descriptor.id, descriptor.url)
        try:
            async with AsyncExitStack() as stack:
                client = self._client
                if client is None:
                    client = await stack.enter_async_context(
                        httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
                    )
                async with client.stream("GET", descriptor.url) as response:
                    if not response.is_success:
                        raise FetchError(
                            f"Download failed: HTTP {response.status_code} "
                            f"{response.reason_phrase}",
                            descriptor,
                            status_code=response.status_code,
                        )
                    content_length = _content_length(response)
                    if content_length is not None and not self.store.can_fit(
                        content_length, self.reserve_bytes
                    ):
                        raise FetchError(
                            f"Not enough disk space for {descriptor.id} "
                            f"({content_length} bytes)",
                            descriptor,
                        )
                    await self._write_body(response, partial, content_length, report)
            os.replace(partial, target)
        except FetchError:
            self._cleanup(partial, target)
            raise
        except asyncio.CancelledError:
            self._cleanup(partial, target)
            raise
        except Exception as e:
            self._cleanup(partial, target)
            raise FetchError(
                f"Failed to download model {descriptor.name}: {e}", descriptor
            ) from e

        logger.info("Downloaded %s to %s", descriptor.id, target)
        return target

    async def _write_body(
        self,
        response: httpx.Response,
        partial: Path,
        content_length: int | None,
        report: _ProgressReporter,
    ) -> None:
        bytes_read = 0
        loop = asyncio.get_running_loop()
        with open(partial, "wb") as fh:
            async for chunk in response.aiter_bytes(chunk_size=self.chunk_size):
                await loop.run_in_executor(None, fh.write, chunk)
                bytes_read += len(chunk)
                if content_length is not None:
                    report(min(100, bytes_read * 100 // content_length))
                else:
                    report(INDETERMINATE_PROGRESS)
            fh.flush()

        encoded = "content-encoding" in response.headers
        if content_length is not None and not encoded and bytes_read < content_length:
            raise OSError(f"Connection closed after {bytes_read} of {content_length} bytes")
        report(100)

    @staticmethod
    def _cleanup(*paths: Path) -> None:
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError:
                logger.exception("Could not remove partial download %s", path)


class _ProgressReporter:
    """Forwards a percentage only when it differs from the last one sent."""

    def __init__(self, callback: ProgressCallback | None):
        self._callback = callback
        self.last: int | None = None

    def __call__(self, percent: int) -> None:
        if percent == self.last:
            return
        self.last = percent
        if self._callback is not None:
            self._callback(percent)


def _content_length(response: httpx.Response) -> int | None:
    try:
        length = int(response.headers.get("content-length", ""))
    except ValueError:
        return None
    return length if length > 0 else None

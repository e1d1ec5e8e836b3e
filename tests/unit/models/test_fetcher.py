import asyncio
from unittest.mock import patch

import httpx
import pytest

from langtutor.configs import ModelDescriptor
from langtutor.exceptions import FetchError
from langtutor.models import INDETERMINATE_PROGRESS, ModelFetcher, ModelStore
from tests.fixtures.http_fixtures import make_client


class TestModelFetcher:
    @pytest.mark.anyio
    async def test_known_length_reports_coalesced_progress(
        self, store, descriptor, ok_handler, payload
    ):
        progress = []
        async with make_client(ok_handler) as client:
            path = await ModelFetcher(store, client=client).fetch(descriptor, progress.append)

        assert path == store.local_path(descriptor)
        assert path.read_bytes() == payload
        assert progress == [40, 81, 100]
        assert not store.partial_path(descriptor).exists()
        assert str(ok_handler.requests[0].url) == descriptor.url
        assert "authorization" not in ok_handler.requests[0].headers

    @pytest.mark.anyio
    async def test_chunks_are_written_in_the_executor(self, store, descriptor, ok_handler, payload):
        loop = asyncio.get_running_loop()
        with patch.object(loop, "run_in_executor", wraps=loop.run_in_executor) as run_in_executor:
            async with make_client(ok_handler) as client:
                await ModelFetcher(store, client=client, chunk_size=4096).fetch(descriptor)

        writes = [c.args[1].__name__ for c in run_in_executor.call_args_list]
        assert writes == ["write"] * 3
        assert store.local_path(descriptor).read_bytes() == payload

    @pytest.mark.anyio
    async def test_unknown_length_reports_indeterminate_then_done(
        self, store, descriptor, unknown_length_handler
    ):
        progress = []
        async with make_client(unknown_length_handler) as client:
            await ModelFetcher(store, client=client, chunk_size=1024).fetch(
                descriptor, progress.append
            )

        assert progress == [INDETERMINATE_PROGRESS, 100]
        assert store.exists(descriptor)

    @pytest.mark.anyio
    async def test_http_error_leaves_no_file(self, store, descriptor, not_found_handler):
        async with make_client(not_found_handler) as client:
            with pytest.raises(FetchError) as exc_info:
                await ModelFetcher(store, client=client).fetch(descriptor)

        assert exc_info.value.status_code == 404
        assert exc_info.value.descriptor == descriptor
        assert not store.local_path(descriptor).exists()
        assert not store.partial_path(descriptor).exists()

    @pytest.mark.anyio
    async def test_transport_error_is_wrapped(self, store, descriptor, unreachable_handler):
        async with make_client(unreachable_handler) as client:
            with pytest.raises(FetchError) as exc_info:
                await ModelFetcher(store, client=client).fetch(descriptor)

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert descriptor.name in exc_info.value.message
        assert not store.exists(descriptor)

    @pytest.mark.anyio
    async def test_truncated_body_is_discarded(self, store, descriptor):
        def handler(request):
            return httpx.Response(
                200, headers={"Content-Length": "100"}, stream=httpx.ByteStream(b"abc")
            )

        async with make_client(handler) as client:
            with pytest.raises(FetchError):
                await ModelFetcher(store, client=client).fetch(descriptor)

        assert not store.local_path(descriptor).exists()
        assert not store.partial_path(descriptor).exists()

    @pytest.mark.anyio
    async def test_failing_progress_callback_cleans_up(self, store, descriptor, ok_handler):
        def on_progress(percent):
            if percent > 50:
                raise RuntimeError("UI went away")

        async with make_client(ok_handler) as client:
            with pytest.raises(FetchError):
                await ModelFetcher(store, client=client).fetch(descriptor, on_progress)

        assert not store.local_path(descriptor).exists()
        assert not store.partial_path(descriptor).exists()

    @pytest.mark.anyio
    async def test_refuses_when_disk_is_full(self, store, descriptor, ok_handler):
        async with make_client(ok_handler) as client:
            with patch.object(ModelStore, "can_fit", return_value=False) as can_fit:
                with pytest.raises(FetchError, match="Not enough disk space"):
                    await ModelFetcher(store, client=client, reserve_bytes=5).fetch(descriptor)

        can_fit.assert_called_once_with(10_000, 5)
        assert not store.partial_path(descriptor).exists()

    @pytest.mark.anyio
    async def test_missing_url(self, store):
        local_only = ModelDescriptor(name="Local", id="local.gguf")

        with pytest.raises(FetchError, match="no download URL"):
            await ModelFetcher(store).fetch(local_only)

    @pytest.mark.anyio
    async def test_needs_auth_sends_no_credentials(self, store, descriptor, ok_handler):
        gated = ModelDescriptor.from_dict({**descriptor.to_dict(), "needs_auth": True})

        async with make_client(ok_handler) as client:
            await ModelFetcher(store, client=client).fetch(gated)

        assert "authorization" not in ok_handler.requests[0].headers

    def test_from_settings(self, store, settings):
        fetcher = ModelFetcher.from_settings(store, settings)

        assert fetcher.chunk_size == settings.chunk_size
        assert fetcher.timeout == settings.download_timeout
        assert fetcher.reserve_bytes == settings.disk_reserve_bytes

    def test_chunk_size_must_be_positive(self, store):
        with pytest.raises(ValueError):
            ModelFetcher(store, chunk_size=0)

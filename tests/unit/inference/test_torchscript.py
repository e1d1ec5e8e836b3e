from unittest.mock import patch

import pytest
import torch

from langtutor.configs import ModelDescriptor
from langtutor.inference.state import Error, Ready
from langtutor.inference.torchscript import TorchScriptService

VOCAB = "<pad>\n<s>\n</s>\nuser\nhi\nai\nhola\n"


class Echo(torch.nn.Module):
    def forward(self, ids: torch.Tensor) -> torch.Tensor:
        return ids


class OneHotEcho(torch.nn.Module):
    def forward(self, ids: torch.Tensor) -> torch.Tensor:
        return torch.nn.functional.one_hot(ids, 8).float()


def save_module(module, path, vocab=VOCAB):
    extra = {"vocab.txt": vocab} if vocab is not None else {}
    torch.jit.save(torch.jit.script(module), str(path), _extra_files=extra)


@pytest.fixture
def make_torch_service(store, settings, mock_fetcher, torchscript_descriptor):
    def factory(module=None, descriptor=torchscript_descriptor, vocab=VOCAB):
        save_module(module or Echo(), store.local_path(descriptor), vocab=vocab)
        return TorchScriptService(descriptor, store, fetcher=mock_fetcher, settings=settings)

    return factory


class TestTorchScriptService:
    @pytest.mark.anyio
    async def test_echo_generation(self, make_torch_service):
        service = make_torch_service()
        await service.initialize()

        assert service.state == Ready()
        chunks = [c async for c in service.generate_response("Hi!", "c1", "English")]

        assert chunks == ["user hi ai"]

    @pytest.mark.anyio
    async def test_logits_output_is_argmaxed(self, make_torch_service):
        service = make_torch_service(OneHotEcho())
        await service.initialize()

        text = await service.generate_response("hola", "c1", "Spanish").collect()

        assert text == "user hola ai"

    @pytest.mark.anyio
    async def test_missing_vocabulary_degrades_to_empty_reply(self, make_torch_service):
        service = make_torch_service(vocab=None)
        await service.initialize()

        assert service.state == Ready()
        assert await service.generate_response("hi", "c1", "English").collect() == ""

    @pytest.mark.anyio
    async def test_corrupt_file_is_construction_error(
        self, store, settings, mock_fetcher, torchscript_descriptor
    ):
        store.local_path(torchscript_descriptor).write_bytes(b"not a torchscript archive")
        service = TorchScriptService(
            torchscript_descriptor, store, fetcher=mock_fetcher, settings=settings
        )

        await service.initialize()

        assert isinstance(service.state, Error)
        assert "echo.pt" in service.state.message

    @pytest.mark.anyio
    async def test_gpu_preference_falls_back_to_cpu(self, make_torch_service, torchscript_descriptor):
        gpu = ModelDescriptor.from_dict(
            {**torchscript_descriptor.to_dict(), "preferred_backend": "gpu"}
        )
        service = make_torch_service(descriptor=gpu)

        with patch("torch.cuda.is_available", return_value=False):
            await service.initialize()

        assert service.state == Ready()
        assert service._handle.device == "cpu"

    @pytest.mark.anyio
    async def test_reset_keeps_module(self, make_torch_service):
        service = make_torch_service()
        await service.initialize()
        module = service._handle.engine

        await service.reset_session()

        assert service.state == Ready()
        assert service._handle.engine is module

    @pytest.mark.anyio
    async def test_close_discards_vocabulary(self, make_torch_service):
        service = make_torch_service()
        await service.initialize()
        handle = service._handle
        assert handle.vocabulary["hola"] == 6

        service.close()

        assert handle.vocabulary == {}
        assert handle.engine is None

"""
TorchScript backend.

Runs a scripted module directly on integer token ids. The module takes a
``[1, context_length]`` ``long`` tensor and returns either token ids of shape
``[1, L]`` or logits of shape ``[1, L, vocab]``. The vocabulary is read from
the archive's extra files.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from ..configs.model import LoadedEngine
from ..enums.models import ModelBackend, ModelRuntime
from ..exceptions import EngineConstructionError
from .engine import BaseLlmService
from .stream import TokenStream
from .tokenizer import Tokenizer, load_vocabulary

logger = logging.getLogger(__name__)

__all__ = ["TorchScriptService"]


class TorchScriptService(BaseLlmService):
    """Batch backend: one forward pass per request, one chunk per reply."""

    runtime = ModelRuntime.TORCHSCRIPT

    def _select_device(self) -> str:
        import torch

        if self.descriptor.preferred_backend is ModelBackend.GPU:
            if torch.cuda.is_available():
                return "cuda"
            logger.warning("CUDA is not available for %s. Falling back to CPU.", self.descriptor.id)
        return "cpu"

    def _build_engine(self, path: Path) -> LoadedEngine:
        import torch

        d = self.descriptor
        device = self._select_device()
        logger.info("Loading TorchScript module %s on %s", path, device)
        try:
            module = torch.jit.load(str(path), map_location=device)
        except (RuntimeError, ValueError, OSError) as e:
            raise EngineConstructionError(f"Could not load {path.name}: {e}", d) from e
        module.eval()

        vocabulary = load_vocabulary(path, d.vocab_file_name)
        return LoadedEngine(
            model_id=d.id,
            engine=module,
            path=path,
            backend=self.runtime.value,
            vocabulary=vocabulary,
            device=device,
            loaded_at=time.time(),
        )

    def _release_engine(self, handle: LoadedEngine) -> None:
        if handle.device == "cuda":
            import torch

            torch.cuda.empty_cache()

    async def _produce(self, handle: LoadedEngine, prompt: str, stream: TokenStream) -> None:
        tokenizer = Tokenizer.for_descriptor(self.descriptor, handle.vocabulary)
        loop = asyncio.get_running_loop()
        text = await loop.run_in_executor(None, self._forward, handle, tokenizer, prompt)
        await stream.send(text)

    def _forward(self, handle: LoadedEngine, tokenizer: Tokenizer, prompt: str) -> str:
        import torch

        ids = tokenizer.tokenize(prompt, self.descriptor.context_length)
        inputs = torch.tensor([ids], dtype=torch.long, device=handle.device)
        with handle.lock, torch.inference_mode():
            output = handle.engine(inputs)

        if isinstance(output, (tuple, list)):
            output = output[0]
        if output.dim() == 3:
            output = output.argmax(dim=-1)
        if output.dim() == 2:
            output = output[0]
        return tokenizer.detokenize(output.long().tolist())

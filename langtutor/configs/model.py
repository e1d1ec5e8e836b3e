from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..enums.models import ModelBackend, ModelRuntime
from .base import BaseConfig

__all__ = ["LoadedEngine", "ModelDescriptor"]


@dataclass(frozen=True)
class ModelDescriptor(BaseConfig):
    """Static description of a downloadable model and how to generate with it.

    ``id`` doubles as the local filename, so it must be a bare filename.
    An empty ``url`` marks a model that can only be used once it is already
    present on disk.
    """

    name: str
    id: str
    url: str = ""
    license_url: str = ""
    # Reserved: downloads never send credentials, even when this is set.
    needs_auth: bool = False
    preferred_backend: ModelBackend | None = ModelBackend.CPU
    runtime: ModelRuntime = ModelRuntime.LLAMA_CPP
    temperature: float = 0.7
    top_k: int = 20
    top_p: float = 0.8
    max_tokens: int = 2048
    thinking_indicator: bool = False
    pad_token_id: int = 0
    bos_token_id: int | None = None
    eos_token_id: int | None = None
    vocab_file_name: str = "vocab.txt"
    context_length: int = 128
    n_ctx: int = 2048
    author: str | None = None
    license: str | None = None

    def __post_init__(self) -> None:
        if not self.id or self.id in (".", "..") or "/" in self.id or "\\" in self.id:
            raise ValueError(f"Model id must be a bare filename, got {self.id!r}")
        if not 0.0 <= self.temperature <= 1.0:
            raise ValueError(f"temperature must be in [0, 1], got {self.temperature}")
        if self.top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {self.top_k}")
        if not 0.0 < self.top_p <= 1.0:
            raise ValueError(f"top_p must be in (0, 1], got {self.top_p}")
        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}")
        if self.context_length <= 0:
            raise ValueError(f"context_length must be positive, got {self.context_length}")
        if self.n_ctx <= 0:
            raise ValueError(f"n_ctx must be positive, got {self.n_ctx}")

    @property
    def is_downloadable(self) -> bool:
        return bool(self.url)


@dataclass
class LoadedEngine:
    """Live inference resources for one loaded model.

    Owned by exactly one service instance. ``session`` is ``None`` for
    runtimes without a per-conversation context. ``lock`` is held by any
    thread touching ``engine`` or ``session``, so a release never runs
    while a generation step is still executing.
    """

    model_id: str
    engine: Any
    path: Path
    backend: str
    session: Any | None = None
    vocabulary: dict[str, int] = field(default_factory=dict)
    device: str = "cpu"
    loaded_at: float = 0.0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

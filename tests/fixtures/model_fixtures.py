import pytest

from langtutor.configs import EngineSettings, ModelDescriptor
from langtutor.enums import ModelBackend, ModelRuntime
from langtutor.models import ModelStore

MODEL_URL = "https://models.example.com/tiny-chat.Q4_K_M.gguf"


@pytest.fixture
def models_dir(tmp_path):
    return tmp_path / "models"


@pytest.fixture
def store(models_dir):
    return ModelStore(models_dir)


@pytest.fixture
def settings(models_dir):
    return EngineSettings(models_dir=models_dir, chunk_size=4096, stream_buffer_size=8)


@pytest.fixture
def descriptor():
    return ModelDescriptor(
        name="Tiny Chat",
        id="tiny-chat.Q4_K_M.gguf",
        url=MODEL_URL,
        license_url="https://models.example.com/LICENSE",
        preferred_backend=ModelBackend.CPU,
        runtime=ModelRuntime.LLAMA_CPP,
        temperature=0.5,
        top_k=10,
        top_p=0.9,
        max_tokens=64,
        n_ctx=512,
    )


@pytest.fixture
def gpu_descriptor(descriptor):
    return ModelDescriptor.from_dict({**descriptor.to_dict(), "preferred_backend": "gpu"})


@pytest.fixture
def torchscript_descriptor():
    return ModelDescriptor(
        name="Echo",
        id="echo.pt",
        url="https://models.example.com/echo.pt",
        runtime=ModelRuntime.TORCHSCRIPT,
        pad_token_id=0,
        eos_token_id=2,
        context_length=16,
    )


@pytest.fixture
def downloaded(store, descriptor):
    """Places a dummy model file where the store expects it."""
    path = store.local_path(descriptor)
    path.write_bytes(b"GGUF-dummy")
    return path


@pytest.fixture
def catalog_yaml(tmp_path):
    path = tmp_path / "catalog.yaml"
    path.write_text(
        """
default: small.gguf
models:
  small.gguf:
    name: Small
    hf_repo: acme/small-GGUF
    hf_file: small.Q4_0.gguf
    temperature: 0.3
    max_tokens: 128
  echo.pt:
    name: Echo
    runtime: torchscript
    url: https://models.example.com/echo.pt
    preferred_backend: gpu
    eos_token_id: 2
""",
        encoding="utf-8",
    )
    return path

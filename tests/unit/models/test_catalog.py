import pytest

from langtutor.configs import ModelDescriptor
from langtutor.constants import DEFAULT_MODEL_ID, MODEL_CONFIGS
from langtutor.enums import ModelBackend, ModelRuntime
from langtutor.models import ModelCatalog, descriptor_from_config


class TestModelCatalog:
    def test_builtin(self):
        catalog = ModelCatalog.builtin()

        assert len(catalog) == len(MODEL_CONFIGS)
        assert catalog.default().id == DEFAULT_MODEL_ID
        for descriptor in catalog.list_all():
            if descriptor.runtime is ModelRuntime.LLAMA_CPP:
                assert descriptor.url.startswith("https://huggingface.co/")

    def test_builtin_torchscript_entry_is_local_only(self):
        descriptor = ModelCatalog.builtin().get("tutor-wordlevel.pt")

        assert descriptor.runtime is ModelRuntime.TORCHSCRIPT
        assert not descriptor.is_downloadable
        assert descriptor.pad_token_id == 0
        assert descriptor.eos_token_id is None
        assert descriptor.vocab_file_name == "vocab.txt"
        assert descriptor.context_length == 128

    def test_builtin_with_other_default(self):
        catalog = ModelCatalog.builtin("llama-2-7b-chat.Q4_K_M.gguf")
        assert catalog.default().preferred_backend is ModelBackend.GPU

    def test_get(self):
        catalog = ModelCatalog.builtin()

        assert catalog.get(DEFAULT_MODEL_ID) is catalog.default()
        assert catalog.get("missing.gguf") is None
        assert DEFAULT_MODEL_ID in catalog
        assert "missing.gguf" not in catalog

    def test_from_yaml(self, catalog_yaml):
        catalog = ModelCatalog.from_yaml(catalog_yaml)

        small = catalog.default()
        assert small.id == "small.gguf"
        assert small.url == "https://huggingface.co/acme/small-GGUF/resolve/main/small.Q4_0.gguf?download=true"
        assert small.temperature == 0.3
        echo = catalog.get("echo.pt")
        assert echo.runtime is ModelRuntime.TORCHSCRIPT
        assert echo.preferred_backend is ModelBackend.GPU
        assert echo.eos_token_id == 2
        assert [d.id for d in catalog] == ["small.gguf", "echo.pt"]

    def test_duplicate_ids_rejected(self, descriptor):
        with pytest.raises(ValueError, match="Duplicate"):
            ModelCatalog([descriptor, descriptor])

    def test_unknown_default_rejected(self, descriptor):
        with pytest.raises(ValueError, match="not in the catalog"):
            ModelCatalog([descriptor], default_id="nope.gguf")

    def test_empty_catalog_rejected(self):
        with pytest.raises(ValueError):
            ModelCatalog([])

    def test_first_entry_is_default(self, descriptor):
        other = ModelDescriptor(name="Other", id="other.gguf")
        assert ModelCatalog([descriptor, other]).default() is descriptor

    def test_explicit_url_wins(self):
        descriptor = descriptor_from_config(
            "x.gguf", {"url": "https://mirror.example.com/x.gguf", "hf_repo": "a/b", "hf_file": "c"}
        )
        assert descriptor.url == "https://mirror.example.com/x.gguf"
        assert descriptor.name == "x.gguf"

from enum import Enum


class ModelBackend(Enum):
    """Compute backend a model prefers to run on."""

    CPU = "cpu"
    GPU = "gpu"


class ModelRuntime(Enum):
    """Inference runtime able to load a model file."""

    LLAMA_CPP = "llama.cpp"
    TORCHSCRIPT = "torchscript"

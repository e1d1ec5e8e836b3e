"""
Built-in model catalog entries.

Each entry is keyed by the model id, which is also the local filename.
The download URL is derived from ``hf_repo`` and ``hf_file``.
"""

from typing import Any, Dict

HF_RESOLVE_URL = "https://huggingface.co/{repo}/resolve/main/{file}?download=true"

DEFAULT_MODEL_ID = "qwen2.5-0.5b-instruct-q4_k_m.gguf"

MODEL_CONFIGS: Dict[str, Dict[str, Any]] = {
    "qwen2.5-0.5b-instruct-q4_k_m.gguf": {
        "name": "Qwen2.5 0.5B Instruct (CPU)",
        "runtime": "llama.cpp",
        "hf_repo": "Qwen/Qwen2.5-0.5B-Instruct-GGUF",
        "hf_file": "qwen2.5-0.5b-instruct-q4_k_m.gguf",
        "license_url": "https://huggingface.co/Qwen/Qwen2.5-0.5B-Instruct/blob/main/LICENSE",
        "preferred_backend": "cpu",
        "temperature": 0.7,
        "top_k": 20,
        "top_p": 0.8,
        "max_tokens": 512,
        "n_ctx": 2048,
        "license": "Apache 2.0",
        "author": "Qwen",
    },
    "tinyllama-1.1b-chat-v1.0.Q4_K_M.gguf": {
        "name": "TinyLlama 1.1B Chat (CPU)",
        "runtime": "llama.cpp",
        "hf_repo": "TheBloke/TinyLlama-1.1B-Chat-v1.0-GGUF",
        "hf_file": "tinyllama-1.1b-chat-v1.0.Q4_K_M.gguf",
        "license_url": "https://huggingface.co/TinyLlama/TinyLlama-1.1B-Chat-v1.0",
        "preferred_backend": "cpu",
        "temperature": 0.7,
        "top_k": 40,
        "top_p": 0.9,
        "max_tokens": 512,
        "n_ctx": 2048,
        "license": "Apache 2.0",
        "author": "TinyLlama",
    },
    "llama-2-7b-chat.Q4_K_M.gguf": {
        "name": "Llama 2 7B Chat (GPU)",
        "runtime": "llama.cpp",
        "hf_repo": "TheBloke/Llama-2-7B-Chat-GGUF",
        "hf_file": "llama-2-7b-chat.Q4_K_M.gguf",
        "license_url": "https://ai.meta.com/llama/license/",
        "preferred_backend": "gpu",
        "temperature": 0.7,
        "top_k": 40,
        "top_p": 0.9,
        "max_tokens": 1024,
        "n_ctx": 4096,
        "license": "Llama 2",
        "author": "Meta",
    },
    # Word-level model run by the TorchScript interpreter. There is no public
    # download; place the exported archive in the models directory.
    "tutor-wordlevel.pt": {
        "name": "Word-level Tutor (TorchScript, CPU)",
        "runtime": "torchscript",
        "preferred_backend": "cpu",
        "temperature": 0.7,
        "top_k": 20,
        "top_p": 0.8,
        "max_tokens": 2048,
        "pad_token_id": 0,
        "bos_token_id": None,
        "eos_token_id": None,
        "vocab_file_name": "vocab.txt",
        "context_length": 128,
    },
}

from .models import DEFAULT_MODEL_ID, HF_RESOLVE_URL, MODEL_CONFIGS

__all__ = ["DEFAULT_MODEL_ID", "HF_RESOLVE_URL", "MODEL_CONFIGS"]

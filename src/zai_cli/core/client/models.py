"""
Known Z.ai models and model-name helpers.

The CLI only talks to one provider, so the model table is static: every
entry carries the API identifier, a display name, the context window and a
one-line description used by the model picker.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class ModelInfo:
    """Metadata about a hosted model."""
    name: str
    display_name: str
    context_limit: int
    description: str


KNOWN_MODELS: List[ModelInfo] = [
    ModelInfo("glm-4.6", "GLM-4.6", 200_000, "200K context, best for coding"),
    ModelInfo("glm-4.5", "GLM-4.5", 128_000, "128K context, stable"),
    ModelInfo("glm-4.5-air", "GLM-4.5-Air", 128_000, "Fast and economical"),
]

DEFAULT_MODEL = "glm-4.6"
FAST_MODEL = "glm-4.5-air"
DEFAULT_CONTEXT_LIMIT = 128_000

_MODELS_BY_NAME: Dict[str, ModelInfo] = {model.name: model for model in KNOWN_MODELS}


def get_available_models() -> List[str]:
    """Get the API identifiers of all known models."""
    return [model.name for model in KNOWN_MODELS]


def normalize_model_name(model: str) -> str:
    """
    Normalize a user-supplied model name to its API identifier.

    Accepts display names in any case ("GLM-4.5-Air", "glm-4.5-air").

    Raises:
        ValueError: If the model is not one of the known models.
    """
    candidate = model.strip().lower()
    if candidate not in _MODELS_BY_NAME:
        raise ValueError(
            f"Unknown model '{model}'. Valid models: {', '.join(get_available_models())}"
        )
    return candidate


def is_model_supported(model: str) -> bool:
    """Check whether a model name refers to a known model."""
    return model.strip().lower() in _MODELS_BY_NAME


def get_model_info(model: str) -> Optional[ModelInfo]:
    """Get metadata for a model, or None when it is unknown."""
    return _MODELS_BY_NAME.get(model.strip().lower())


def get_context_limit(model: str) -> int:
    """Get the context window for a model, falling back to 128K."""
    info = get_model_info(model)
    return info.context_limit if info else DEFAULT_CONTEXT_LIMIT

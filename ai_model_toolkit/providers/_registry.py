"""Model prefix → provider routing and adapter factories."""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING, Any, Dict, Tuple, Type

from ..exceptions import ConfigurationError

if TYPE_CHECKING:
    from ..embeddings._base import BaseEmbeddingModel
    from ._base import BaseChatModel

logger = logging.getLogger(__name__)

# Explicit prefix map: "provider/model" → provider key
_PREFIX_MAP: Dict[str, str] = {
    "openai/": "openai",
    "anthropic/": "anthropic",
    "gemini/": "gemini",
    "google/": "gemini",
    "moonshot/": "moonshot",
    "zhipuai/": "zhipuai",
    "minimax/": "minimax",
    "mistral/": "mistral",
    "ollama/": "ollama",
}

# Bare model name prefix → provider key (no explicit prefix)
_BARE_PREFIX_MAP: Dict[str, str] = {
    "gpt-": "openai",
    "o1-": "openai",
    "o3-": "openai",
    "o4-": "openai",
    "text-embedding-3": "openai",
    "text-embedding-ada": "openai",
    "claude-": "anthropic",
    "gemini-": "gemini",
    "text-embedding-00": "gemini",
    "moonshot-": "moonshot",
    "glm-": "zhipuai",
    "embedding-": "zhipuai",
    "abab": "minimax",
    "embo-": "minimax",
    "mistral-": "mistral",
    "open-mistral": "mistral",
    "open-mixtral": "mistral",
    "codestral-": "mistral",
}

# provider key → (chat module, chat class, embedding class or "")
_ADAPTERS: Dict[str, Tuple[str, str, str]] = {
    "openai": (".openai", "OpenAIChatModel", "OpenAIEmbeddingModel"),
    "anthropic": (".anthropic", "AnthropicChatModel", ""),
    "gemini": (".gemini", "GeminiChatModel", "GeminiEmbeddingModel"),
    "moonshot": (".moonshot", "MoonshotChatModel", ""),
    "zhipuai": (".zhipuai", "ZhiPuAiChatModel", "ZhiPuAiEmbeddingModel"),
    "minimax": (".minimax", "MiniMaxChatModel", "MiniMaxEmbeddingModel"),
    "mistral": (".mistral", "MistralChatModel", "MistralEmbeddingModel"),
    "ollama": (".ollama", "OllamaChatModel", "OllamaEmbeddingModel"),
}

# Embedding classes live with their SDK family, not their chat module.
_EMBEDDING_MODULES: Dict[str, str] = {
    "gemini": "ai_model_toolkit.embeddings.gemini",
}
_DEFAULT_EMBEDDING_MODULE = "ai_model_toolkit.embeddings.openai"

PROVIDERS = tuple(_ADAPTERS)


def bare_model_name(model: str) -> str:
    """Drop a leading ``provider/`` routing prefix, if any."""
    head, sep, rest = model.partition("/")
    if sep and (head.lower() + sep) in _PREFIX_MAP:
        return rest
    return model


def resolve_provider_key(model: str) -> str:
    """Resolve a model string to a provider key.

    Checks explicit ``provider/model`` prefix first, then bare model name
    prefixes.  Raises :class:`ConfigurationError` for unrecognised models.
    """
    lower = model.lower()

    # Check explicit prefix
    for prefix, key in _PREFIX_MAP.items():
        if lower.startswith(prefix):
            return key

    # Check bare model name prefixes
    for prefix, key in _BARE_PREFIX_MAP.items():
        if lower.startswith(prefix):
            return key

    raise ConfigurationError(
        f"Cannot determine provider for model '{model}'. "
        f"Use an explicit prefix ({', '.join(_PREFIX_MAP)}) "
        f"or a recognised bare model name."
    )


def _adapter_entry(provider_key: str) -> Tuple[str, str, str]:
    try:
        return _ADAPTERS[provider_key.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown provider key: '{provider_key}'. Available: {list(PROVIDERS)}"
        ) from None


def chat_model_class(provider_key: str) -> Type["BaseChatModel"]:
    """Lazily import and return the chat model class for *provider_key*."""
    module_name, class_name, _ = _adapter_entry(provider_key)
    module = importlib.import_module(module_name, __package__)
    return getattr(module, class_name)


def embedding_model_class(provider_key: str) -> Type["BaseEmbeddingModel"]:
    """Lazily import and return the embedding model class for *provider_key*."""
    _, _, class_name = _adapter_entry(provider_key)
    if not class_name:
        raise ConfigurationError(
            f"Provider '{provider_key}' does not offer an embedding model."
        )
    module_name = _EMBEDDING_MODULES.get(provider_key.lower(), _DEFAULT_EMBEDDING_MODULE)
    module = importlib.import_module(module_name)
    return getattr(module, class_name)


def create_chat_model(provider_key: str, **kwargs: Any) -> "BaseChatModel":
    """Instantiate the chat model adapter for *provider_key*."""
    cls = chat_model_class(provider_key)
    logger.info("Creating chat model %s", cls.__name__)
    return cls(**kwargs)


def create_embedding_model(provider_key: str, **kwargs: Any) -> "BaseEmbeddingModel":
    """Instantiate the embedding model adapter for *provider_key*."""
    cls = embedding_model_class(provider_key)
    logger.info("Creating embedding model %s", cls.__name__)
    return cls(**kwargs)

"""Curated catalog of supported chat and embedding models.

Provides :class:`ModelInfo` metadata and discovery functions so users can
find available models without reading provider documentation.

Usage::

    from ai_model_toolkit import list_models, get_model_info

    # All models
    for m in list_models():
        print(f"{m.model_id}  ({m.display_name})")

    # Filter by provider
    for m in list_models("moonshot"):
        print(m.model_id, m.capabilities)

    # Embedding dimensions
    info = get_model_info("text-embedding-3-small")
    if info:
        print(info.dimensions)
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

# ---------------------------------------------------------------------------
# Provider prefixes, kept in sync with providers/_registry.py
# Used only for bare-name → prefixed-name resolution in get_model_info().
# ---------------------------------------------------------------------------
_PROVIDER_PREFIXES: dict[str, str] = {
    "openai": "openai/",
    "anthropic": "anthropic/",
    "gemini": "gemini/",
    "moonshot": "moonshot/",
    "zhipuai": "zhipuai/",
    "minimax": "minimax/",
    "mistral": "mistral/",
    "ollama": "ollama/",
}


class ModelInfo(BaseModel):
    """Metadata for a supported model.

    Attributes:
        model_id: Fully-qualified ID (``"provider/model"``).
        provider: Provider key (``"openai"``, ``"moonshot"``, ...).
        display_name: Human-friendly label.
        capabilities: Feature tags. Common values: ``"chat"``,
            ``"streaming"``, ``"tools"``, ``"vision"``, ``"embedding"``.
        dimensions: Vector length for embedding models, else ``None``.
    """

    model_id: str
    provider: str
    display_name: str
    capabilities: list[str]
    dimensions: Optional[int] = None


_CHAT = ["chat", "streaming", "tools"]
_CHAT_VISION = ["chat", "streaming", "tools", "vision"]


def _entry(
    model_id: str,
    display_name: str,
    capabilities: list[str],
    dimensions: Optional[int] = None,
) -> tuple[str, ModelInfo]:
    provider = model_id.split("/", 1)[0]
    return model_id, ModelInfo(
        model_id=model_id,
        provider=provider,
        display_name=display_name,
        capabilities=list(capabilities),
        dimensions=dimensions,
    )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

MODEL_CATALOG: dict[str, ModelInfo] = dict(
    [
        # OpenAI
        _entry("openai/gpt-4o", "GPT-4o", _CHAT_VISION),
        _entry("openai/gpt-4o-mini", "GPT-4o Mini", _CHAT_VISION),
        _entry("openai/gpt-4.1", "GPT-4.1", _CHAT_VISION),
        _entry("openai/text-embedding-3-small", "Text Embedding 3 Small", ["embedding"], 1536),
        _entry("openai/text-embedding-3-large", "Text Embedding 3 Large", ["embedding"], 3072),
        _entry("openai/text-embedding-ada-002", "Ada v2 Embedding", ["embedding"], 1536),
        # Anthropic
        _entry("anthropic/claude-3-5-haiku-latest", "Claude 3.5 Haiku", _CHAT),
        _entry("anthropic/claude-sonnet-4-0", "Claude Sonnet 4", _CHAT_VISION),
        # Google Gemini
        _entry("gemini/gemini-2.0-flash", "Gemini 2.0 Flash", _CHAT_VISION),
        _entry("gemini/gemini-2.5-pro", "Gemini 2.5 Pro", _CHAT_VISION),
        _entry("gemini/text-embedding-004", "Text Embedding 004", ["embedding"], 768),
        # Moonshot
        _entry("moonshot/moonshot-v1-8k", "Moonshot v1 8K", _CHAT),
        _entry("moonshot/moonshot-v1-32k", "Moonshot v1 32K", _CHAT),
        _entry("moonshot/moonshot-v1-128k", "Moonshot v1 128K", _CHAT),
        # ZhiPu AI
        _entry("zhipuai/glm-4-air", "GLM-4 Air", _CHAT),
        _entry("zhipuai/glm-4v", "GLM-4V", _CHAT_VISION),
        _entry("zhipuai/embedding-2", "ZhiPu Embedding 2", ["embedding"], 1024),
        # MiniMax
        _entry("minimax/abab5.5-chat", "abab5.5 Chat", _CHAT),
        _entry("minimax/abab6.5s-chat", "abab6.5s Chat", _CHAT),
        _entry("minimax/embo-01", "MiniMax Embo-01", ["embedding"], 1536),
        # Mistral AI
        _entry("mistral/open-mistral-7b", "Mistral 7B", _CHAT),
        _entry("mistral/mistral-large-latest", "Mistral Large", _CHAT),
        _entry("mistral/mistral-embed", "Mistral Embed", ["embedding"], 1024),
        # Ollama (local)
        _entry("ollama/mistral", "Mistral (Ollama)", ["chat", "streaming"]),
        _entry("ollama/nomic-embed-text", "Nomic Embed Text (Ollama)", ["embedding"], 768),
    ]
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def list_models(
    provider: Optional[str] = None, capability: Optional[str] = None
) -> list[ModelInfo]:
    """Return cataloged models, optionally filtered by provider and capability.

    Returns:
        List of :class:`ModelInfo` instances, ordered by catalog insertion.
    """
    models = list(MODEL_CATALOG.values())
    if provider is not None:
        models = [m for m in models if m.provider == provider]
    if capability is not None:
        models = [m for m in models if capability in m.capabilities]
    return models


def get_model_info(model_id: str) -> Optional[ModelInfo]:
    """Look up metadata for a model by its ID.

    Accepts both prefixed (``"openai/gpt-4o"``) and bare (``"gpt-4o"``)
    model IDs.

    Returns:
        :class:`ModelInfo` if found, otherwise ``None``.
    """
    # Direct lookup (prefixed form)
    if model_id in MODEL_CATALOG:
        return MODEL_CATALOG[model_id]

    # Try adding each provider prefix
    for prefix in _PROVIDER_PREFIXES.values():
        prefixed = prefix + model_id
        if prefixed in MODEL_CATALOG:
            return MODEL_CATALOG[prefixed]

    return None

"""Mistral AI adapter: a thin subclass of the OpenAI adapter with its own base URL."""

from __future__ import annotations

from typing import Optional

from .openai import OpenAIChatModel, OpenAIChatOptions


class MistralChatOptions(OpenAIChatOptions):
    safe_prompt: Optional[bool] = None
    random_seed: Optional[int] = None


class MistralChatModel(OpenAIChatModel):
    """Chat model for Mistral AI using its OpenAI-compatible endpoint."""

    OPTIONS_CLASS = MistralChatOptions
    DEFAULT_MODEL = "open-mistral-7b"
    API_ENV_VAR = "MISTRAL_API_KEY"
    DEFAULT_BASE_URL = "https://api.mistral.ai/v1"
    _EXTRA_BODY_FIELDS = frozenset({"safe_prompt", "random_seed"})

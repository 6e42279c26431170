"""MiniMax adapter: a thin subclass of the OpenAI adapter with its own base URL."""

from __future__ import annotations

from typing import Optional

from .openai import OpenAIChatModel, OpenAIChatOptions


class MiniMaxChatOptions(OpenAIChatOptions):
    mask_sensitive_info: Optional[bool] = None


class MiniMaxChatModel(OpenAIChatModel):
    """Chat model for MiniMax using its OpenAI-compatible endpoint."""

    OPTIONS_CLASS = MiniMaxChatOptions
    DEFAULT_MODEL = "abab5.5-chat"
    API_ENV_VAR = "MINIMAX_API_KEY"
    DEFAULT_BASE_URL = "https://api.minimax.chat/v1"
    _EXTRA_BODY_FIELDS = frozenset({"mask_sensitive_info"})

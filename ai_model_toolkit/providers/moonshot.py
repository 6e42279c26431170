"""Moonshot (Kimi) adapter: a thin subclass of the OpenAI adapter with its own base URL."""

from __future__ import annotations

from .openai import OpenAIChatModel, OpenAIChatOptions


class MoonshotChatModel(OpenAIChatModel):
    """Chat model for Moonshot using its OpenAI-compatible endpoint."""

    OPTIONS_CLASS = OpenAIChatOptions
    DEFAULT_MODEL = "moonshot-v1-8k"
    API_ENV_VAR = "MOONSHOT_API_KEY"
    DEFAULT_BASE_URL = "https://api.moonshot.cn/v1"
    # Moonshot may report "stop" on a turn that still carries tool calls.
    TOOL_CALL_FINISH_REASONS = frozenset({"tool_calls", "stop"})

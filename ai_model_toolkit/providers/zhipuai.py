"""ZhiPu AI (GLM) adapter: a thin subclass of the OpenAI adapter with its own base URL."""

from __future__ import annotations

from typing import Optional

from .openai import OpenAIChatModel, OpenAIChatOptions


class ZhiPuAiChatOptions(OpenAIChatOptions):
    request_id: Optional[str] = None
    do_sample: Optional[bool] = None


class ZhiPuAiChatModel(OpenAIChatModel):
    """Chat model for ZhiPu AI using its OpenAI-compatible endpoint."""

    OPTIONS_CLASS = ZhiPuAiChatOptions
    DEFAULT_MODEL = "glm-4-air"
    API_ENV_VAR = "ZHIPUAI_API_KEY"
    DEFAULT_BASE_URL = "https://open.bigmodel.cn/api/paas/v4/"
    TOOL_CALL_FINISH_REASONS = frozenset({"tool_calls", "stop"})
    _EXTRA_BODY_FIELDS = frozenset({"request_id", "do_sample"})

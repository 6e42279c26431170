"""OpenAI Chat Completions adapter."""

from __future__ import annotations

import logging
import os
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional, Union

from ..exceptions import ConfigurationError, PreconditionError
from ..messages import (
    AssistantMessage,
    Message,
    SystemMessage,
    ToolCall,
    ToolResponseMessage,
    UserMessage,
)
from ..options import ChatOptions
from ..responses import Usage
from ..tools.models import ToolCallback
from ._base import BaseChatModel, ProviderChoice, ProviderCompletion, ToolCallDelta

logger = logging.getLogger(__name__)


def create_async_openai(owner: Any) -> Any:
    """Build an ``AsyncOpenAI`` client from *owner*'s key, base URL and timeout.

    *owner* is a chat or embedding model exposing ``api_key``, ``base_url``,
    ``timeout``, ``API_ENV_VAR`` and ``REQUIRES_API_KEY``.
    """
    try:
        from openai import AsyncOpenAI
    except ImportError:
        raise ConfigurationError(
            "OpenAI-compatible models require the 'openai' package. "
            "Install it with: pip install openai"
        )

    env_var = owner.API_ENV_VAR
    key = owner.api_key or (os.environ.get(env_var) if env_var else None)
    if not key:
        if owner.REQUIRES_API_KEY:
            raise ConfigurationError(
                f"{type(owner).__name__} API key not found. Provide via api_key "
                f"argument or set the {env_var} environment variable."
            )
        key = "unused"

    client_kwargs: Dict[str, Any] = {
        "api_key": key,
        "timeout": owner.timeout,
        # Retries are handled by RetryPolicy.
        "max_retries": 0,
    }
    if owner.base_url:
        client_kwargs["base_url"] = owner.base_url
    return AsyncOpenAI(**client_kwargs)


def is_openai_transport_error(error: Exception) -> bool:
    try:
        from openai import APIConnectionError, APITimeoutError
    except ImportError:
        return False
    return isinstance(error, (APIConnectionError, APITimeoutError))


class OpenAIChatOptions(ChatOptions):
    n: Optional[int] = None
    seed: Optional[int] = None
    response_format: Optional[Dict[str, Any]] = None
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None
    user: Optional[str] = None
    parallel_tool_calls: Optional[bool] = None


class OpenAIChatModel(BaseChatModel):
    """Chat model for OpenAI and OpenAI-compatible Chat Completions endpoints."""

    OPTIONS_CLASS = OpenAIChatOptions
    DEFAULT_MODEL = "gpt-4o-mini"
    API_ENV_VAR = "OPENAI_API_KEY"
    DEFAULT_BASE_URL: ClassVar[Optional[str]] = None
    REQUIRES_API_KEY: ClassVar[bool] = True
    # Option fields the endpoint accepts but the openai SDK does not name;
    # they travel in ``extra_body``.
    _EXTRA_BODY_FIELDS: ClassVar[FrozenSet[str]] = frozenset()

    def __init__(self, *, base_url: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(base_url=base_url or self.DEFAULT_BASE_URL, **kwargs)
        self._async_client: Any = None  # Lazy-created

    def _get_client(self) -> Any:
        """Lazily create the ``AsyncOpenAI`` client."""
        if self._async_client is None:
            self._async_client = create_async_openai(self)
        return self._async_client

    # ------------------------------------------------------------------
    # Retry hooks
    # ------------------------------------------------------------------

    def _is_transport_error(self, error: Exception) -> bool:
        return is_openai_transport_error(error)

    # ------------------------------------------------------------------
    # Request mapping
    # ------------------------------------------------------------------

    def _media_part(self, media: Any) -> Dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": media.to_data_url()}}

    def _convert_message(self, message: Message) -> List[Dict[str, Any]]:
        if isinstance(message, SystemMessage):
            return [{"role": "system", "content": message.content or ""}]

        if isinstance(message, UserMessage):
            if not message.media:
                return [{"role": "user", "content": message.content or ""}]
            parts: List[Dict[str, Any]] = []
            if message.content:
                parts.append({"type": "text", "text": message.content})
            parts.extend(self._media_part(m) for m in message.media)
            return [{"role": "user", "content": parts}]

        if isinstance(message, AssistantMessage):
            entry: Dict[str, Any] = {"role": "assistant", "content": message.content}
            if message.tool_calls:
                entry["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": tc.type,
                        "function": {"name": tc.name, "arguments": tc.arguments},
                    }
                    for tc in message.tool_calls
                ]
            return [entry]

        if isinstance(message, ToolResponseMessage):
            out = []
            for response in message.responses:
                if not response.id or not response.name:
                    raise PreconditionError(
                        "Tool responses must carry both a call id and a name."
                    )
                out.append(
                    {
                        "role": "tool",
                        "tool_call_id": response.id,
                        "name": response.name,
                        "content": response.response_data,
                    }
                )
            return out

        raise PreconditionError(
            f"Unsupported message type: {type(message).__name__} "
            f"({message.message_type.value})"
        )

    def _build_request(
        self,
        messages: List[Message],
        options: ChatOptions,
        tools: List[ToolCallback],
        stream: bool,
    ) -> Dict[str, Any]:
        converted: List[Dict[str, Any]] = []
        for message in messages:
            converted.extend(self._convert_message(message))

        request: Dict[str, Any] = {"messages": converted}
        extra_body: Dict[str, Any] = {}
        for name, value in options.to_payload().items():
            if name in self._EXTRA_BODY_FIELDS:
                extra_body[name] = value
            else:
                request[name] = value
        if not request.get("model"):
            raise ConfigurationError(f"No model configured for {type(self).__name__}.")
        if extra_body:
            request["extra_body"] = extra_body
        if tools:
            request["tools"] = [cb.to_definition() for cb in tools]
        if stream:
            request["stream"] = True
            request["stream_options"] = {"include_usage": True}

        logger.debug(
            "%s request: model=%s messages=%d tools=%d stream=%s",
            type(self).__name__,
            request["model"],
            len(converted),
            len(tools),
            stream,
        )
        return request

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------

    async def _call_api(self, request: Dict[str, Any]) -> Any:
        return await self._get_client().chat.completions.create(**request)

    async def _open_stream(self, request: Dict[str, Any]) -> Any:
        return await self._get_client().chat.completions.create(**request)

    # ------------------------------------------------------------------
    # Response mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_usage(raw_usage: Any) -> Optional[Usage]:
        if raw_usage is None:
            return None
        prompt = getattr(raw_usage, "prompt_tokens", 0) or 0
        completion = getattr(raw_usage, "completion_tokens", 0) or 0
        total = getattr(raw_usage, "total_tokens", None)
        return Usage(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=total if total is not None else prompt + completion,
        )

    def _to_completion(self, raw: Any) -> Optional[ProviderCompletion]:
        raw_choices = getattr(raw, "choices", None)
        choices = None
        if raw_choices is not None:
            choices = []
            for raw_choice in raw_choices:
                message = raw_choice.message
                tool_calls = [
                    ToolCall(
                        id=tc.id,
                        name=tc.function.name,
                        arguments=tc.function.arguments or "{}",
                    )
                    for tc in (getattr(message, "tool_calls", None) or [])
                ]
                choices.append(
                    ProviderChoice(
                        index=getattr(raw_choice, "index", 0) or 0,
                        role=getattr(message, "role", None),
                        content=getattr(message, "content", None),
                        tool_calls=tool_calls,
                        finish_reason=getattr(raw_choice, "finish_reason", None),
                    )
                )
        return ProviderCompletion(
            id=getattr(raw, "id", None),
            model=getattr(raw, "model", None),
            created=getattr(raw, "created", None),
            choices=choices,
            usage=self._to_usage(getattr(raw, "usage", None)),
        )

    def _chunk_to_completion(self, chunk: Any) -> Optional[ProviderCompletion]:
        choices = []
        for raw_choice in getattr(chunk, "choices", None) or []:
            delta = raw_choice.delta
            deltas = [
                ToolCallDelta(
                    index=getattr(tc, "index", 0) or 0,
                    id=getattr(tc, "id", None),
                    name=getattr(tc.function, "name", None) if tc.function else None,
                    arguments=(getattr(tc.function, "arguments", None) or "")
                    if tc.function
                    else "",
                )
                for tc in (getattr(delta, "tool_calls", None) or [])
            ]
            choices.append(
                ProviderChoice(
                    index=getattr(raw_choice, "index", 0) or 0,
                    role=getattr(delta, "role", None),
                    content=getattr(delta, "content", None),
                    tool_call_deltas=deltas,
                    finish_reason=getattr(raw_choice, "finish_reason", None),
                )
            )
        return ProviderCompletion(
            id=getattr(chunk, "id", None),
            model=getattr(chunk, "model", None),
            created=getattr(chunk, "created", None),
            choices=choices,
            usage=self._to_usage(getattr(chunk, "usage", None)),
        )

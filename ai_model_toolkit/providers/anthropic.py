"""Anthropic Messages API adapter."""

from __future__ import annotations

import json
import logging
import os
from types import SimpleNamespace
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from ..exceptions import (
    ConfigurationError,
    PreconditionError,
    UnsupportedFeatureError,
)
from ..messages import (
    AssistantMessage,
    Media,
    Message,
    SystemMessage,
    ToolCall,
    ToolResponseMessage,
    UserMessage,
)
from ..options import ChatOptions
from ..responses import Usage
from ..tools.models import ToolCallback
from ._base import (
    BaseChatModel,
    ProviderChoice,
    ProviderCompletion,
    ToolCallDelta,
    close_stream,
)

logger = logging.getLogger(__name__)

# Default max_tokens for Anthropic (required parameter)
_DEFAULT_MAX_TOKENS = 4096
_DOCUMENT_MIME_TYPES = frozenset({"application/pdf", "text/plain"})


class AnthropicChatOptions(ChatOptions):
    top_k: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None


class AnthropicChatModel(BaseChatModel):
    """Chat model for Anthropic using the Messages API."""

    OPTIONS_CLASS = AnthropicChatOptions
    DEFAULT_MODEL = "claude-3-5-haiku-latest"
    API_ENV_VAR = "ANTHROPIC_API_KEY"
    TOOL_CALL_FINISH_REASONS = frozenset({"tool_use"})

    def __init__(self, *, max_tokens: int = _DEFAULT_MAX_TOKENS, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._default_max_tokens = max_tokens
        self._async_client: Any = None  # Lazy-created

    def _get_client(self) -> Any:
        """Lazily import and create an ``AsyncAnthropic`` client."""
        if self._async_client is not None:
            return self._async_client

        try:
            import anthropic
        except ImportError:
            raise ConfigurationError(
                "Anthropic models require the 'anthropic' package. "
                "Install it with: pip install anthropic"
            )

        key = self.api_key or os.environ.get(self.API_ENV_VAR)
        if not key:
            raise ConfigurationError(
                f"Anthropic API key not found. Provide via api_key argument or "
                f"set the {self.API_ENV_VAR} environment variable."
            )

        client_kwargs: Dict[str, Any] = {
            "api_key": key,
            "timeout": self.timeout,
            "max_retries": 0,
        }
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        self._async_client = anthropic.AsyncAnthropic(**client_kwargs)
        return self._async_client

    # ------------------------------------------------------------------
    # Retry hooks
    # ------------------------------------------------------------------

    def _is_transport_error(self, error: Exception) -> bool:
        try:
            from anthropic import APIConnectionError, APITimeoutError
        except ImportError:
            return False
        return isinstance(error, (APIConnectionError, APITimeoutError))

    # ------------------------------------------------------------------
    # Message conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _media_block(media: Media) -> Dict[str, Any]:
        if media.mime_type.startswith("image/"):
            block_type = "image"
        elif media.mime_type in _DOCUMENT_MIME_TYPES:
            block_type = "document"
        else:
            raise UnsupportedFeatureError(
                f"Anthropic does not accept '{media.mime_type}' attachments."
            )
        if media.is_url:
            source: Dict[str, Any] = {"type": "url", "url": media.data}
        else:
            source = {
                "type": "base64",
                "media_type": media.mime_type,
                "data": media.to_data_url().split(",", 1)[1],
            }
        return {"type": block_type, "source": source}

    @classmethod
    def _convert_messages(
        cls, messages: List[Message]
    ) -> Tuple[Optional[str], List[Dict[str, Any]]]:
        """Split out the system prompt and convert the rest to Anthropic turns.

        Tool calls become ``tool_use`` blocks, tool responses become user
        turns of ``tool_result`` blocks, and consecutive same-role turns are
        merged.
        """
        system_parts: List[str] = []
        converted: List[Dict[str, Any]] = []

        for message in messages:
            if isinstance(message, SystemMessage):
                if message.content:
                    system_parts.append(message.content)

            elif isinstance(message, UserMessage):
                blocks: List[Dict[str, Any]] = []
                if message.content:
                    blocks.append({"type": "text", "text": message.content})
                blocks.extend(cls._media_block(m) for m in message.media)
                converted.append({"role": "user", "content": blocks})

            elif isinstance(message, AssistantMessage):
                assistant_blocks: List[Dict[str, Any]] = []
                if message.content:
                    assistant_blocks.append({"type": "text", "text": message.content})
                for tc in message.tool_calls:
                    try:
                        input_args = json.loads(tc.arguments or "{}")
                    except json.JSONDecodeError:
                        input_args = {}
                    assistant_blocks.append(
                        {
                            "type": "tool_use",
                            "id": tc.id,
                            "name": tc.name,
                            "input": input_args,
                        }
                    )
                if assistant_blocks:
                    converted.append({"role": "assistant", "content": assistant_blocks})

            elif isinstance(message, ToolResponseMessage):
                results = [
                    {
                        "type": "tool_result",
                        "tool_use_id": r.id,
                        "content": r.response_data,
                    }
                    for r in message.responses
                ]
                converted.append({"role": "user", "content": results})

            else:
                raise PreconditionError(
                    f"Unsupported message type: {type(message).__name__}"
                )

        system = "\n\n".join(system_parts) or None
        return system, cls._merge_consecutive(converted)

    @staticmethod
    def _merge_consecutive(
        messages: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        """Merge consecutive messages with the same role.

        Anthropic requires alternating user/assistant messages.
        """
        merged: List[Dict[str, Any]] = []
        for msg in messages:
            if merged and msg["role"] == merged[-1]["role"]:
                merged[-1] = {
                    "role": msg["role"],
                    "content": merged[-1]["content"] + msg["content"],
                }
            else:
                merged.append(msg)
        return merged

    @staticmethod
    def _tool_definition(callback: ToolCallback) -> Dict[str, Any]:
        return {
            "name": callback.name,
            "description": callback.description,
            "input_schema": callback.input_schema,
        }

    def _build_request(
        self,
        messages: List[Message],
        options: ChatOptions,
        tools: List[ToolCallback],
        stream: bool,
    ) -> Dict[str, Any]:
        system, anthropic_messages = self._convert_messages(messages)
        payload = options.to_payload()

        request: Dict[str, Any] = {
            "model": payload.pop("model", None),
            "messages": anthropic_messages,
            "max_tokens": payload.pop("max_tokens", None) or self._default_max_tokens,
        }
        if not request["model"]:
            raise ConfigurationError("No model configured for AnthropicChatModel.")
        if system:
            request["system"] = system
        if "stop" in payload:
            request["stop_sequences"] = payload.pop("stop")
        for unsupported in ("presence_penalty", "frequency_penalty"):
            if payload.pop(unsupported, None) is not None:
                logger.debug("Dropping unsupported param for Anthropic: %s", unsupported)
        request.update(payload)
        if tools:
            request["tools"] = [self._tool_definition(cb) for cb in tools]
        if stream:
            request["stream"] = True
        return request

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------

    async def _call_api(self, request: Dict[str, Any]) -> Any:
        return await self._get_client().messages.create(**request)

    async def _open_stream(self, request: Dict[str, Any]) -> Any:
        events = await self._get_client().messages.create(**request)
        return _carry_prompt_tokens(events)

    # ------------------------------------------------------------------
    # Response mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_usage(raw: Any) -> Optional[Usage]:
        """Extract token usage from an Anthropic message or delta event."""
        usage = getattr(raw, "usage", None)
        if not usage:
            return None
        input_tokens = getattr(usage, "input_tokens", 0) or 0
        output_tokens = getattr(usage, "output_tokens", 0) or 0
        return Usage(
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        )

    def _to_completion(self, raw: Any) -> Optional[ProviderCompletion]:
        content_blocks = getattr(raw, "content", None)
        choices = None
        if content_blocks is not None:
            text = ""
            tool_calls: List[ToolCall] = []
            for block in content_blocks:
                block_type = getattr(block, "type", "")
                if block_type == "text":
                    text += getattr(block, "text", "")
                elif block_type == "tool_use":
                    tool_calls.append(
                        ToolCall(
                            id=getattr(block, "id", ""),
                            name=getattr(block, "name", ""),
                            arguments=json.dumps(getattr(block, "input", {})),
                        )
                    )
            choices = [
                ProviderChoice(
                    role=getattr(raw, "role", "assistant"),
                    content=text or None,
                    tool_calls=tool_calls,
                    finish_reason=getattr(raw, "stop_reason", None),
                )
            ]
        return ProviderCompletion(
            id=getattr(raw, "id", None),
            model=getattr(raw, "model", None),
            choices=choices,
            usage=self._extract_usage(raw),
        )

    def _chunk_to_completion(self, chunk: Any) -> Optional[ProviderCompletion]:
        event_type = getattr(chunk, "type", "")

        if event_type == "message_start":
            message = chunk.message
            return ProviderCompletion(
                id=getattr(message, "id", None),
                model=getattr(message, "model", None),
                choices=[ProviderChoice(role=getattr(message, "role", "assistant"))],
            )

        if event_type == "content_block_start":
            block = chunk.content_block
            block_type = getattr(block, "type", "")
            if block_type == "tool_use":
                delta = ToolCallDelta(
                    index=chunk.index,
                    id=getattr(block, "id", None),
                    name=getattr(block, "name", None),
                )
                return ProviderCompletion(choices=[ProviderChoice(tool_call_deltas=[delta])])
            if block_type == "text" and getattr(block, "text", ""):
                return ProviderCompletion(choices=[ProviderChoice(content=block.text)])
            return None

        if event_type == "content_block_delta":
            delta = chunk.delta
            delta_type = getattr(delta, "type", "")
            if delta_type == "text_delta":
                return ProviderCompletion(
                    choices=[ProviderChoice(content=getattr(delta, "text", ""))]
                )
            if delta_type == "input_json_delta":
                fragment = ToolCallDelta(
                    index=chunk.index, arguments=getattr(delta, "partial_json", "")
                )
                return ProviderCompletion(
                    choices=[ProviderChoice(tool_call_deltas=[fragment])]
                )
            return None

        if event_type == "message_delta":
            return ProviderCompletion(
                choices=[
                    ProviderChoice(
                        finish_reason=getattr(chunk.delta, "stop_reason", None)
                    )
                ],
                usage=self._extract_usage(chunk),
            )

        # ping, content_block_stop, message_stop
        return None


async def _carry_prompt_tokens(events: Any) -> AsyncIterator[Any]:
    """Re-yield stream events, copying ``message_start`` input tokens onto
    the terminal ``message_delta`` (whose usage only counts output tokens).

    Closing this generator closes *events*.
    """
    input_tokens = 0
    try:
        async for event in events:
            event_type = getattr(event, "type", "")
            if event_type == "message_start":
                usage = getattr(event.message, "usage", None)
                input_tokens = getattr(usage, "input_tokens", 0) or 0
            elif event_type == "message_delta" and input_tokens:
                usage = getattr(event, "usage", None)
                if not getattr(usage, "input_tokens", 0):
                    event = SimpleNamespace(
                        type=event_type,
                        delta=event.delta,
                        usage=SimpleNamespace(
                            input_tokens=input_tokens,
                            output_tokens=getattr(usage, "output_tokens", 0) or 0,
                        ),
                    )
            yield event
    finally:
        await close_stream(events)

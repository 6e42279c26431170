"""Google Gemini adapter using the google-genai SDK."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional
from uuid import uuid4

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
from ._base import BaseChatModel, ProviderChoice, ProviderCompletion

logger = logging.getLogger(__name__)


def create_genai_client(owner: Any) -> Any:
    """Build a ``google.genai.Client`` from *owner*'s ``api_key``/``API_ENV_VAR``."""
    try:
        from google import genai
    except ImportError:
        raise ConfigurationError(
            "Gemini models require the 'google-genai' package. "
            "Install it with: pip install google-genai"
        )

    key = owner.api_key or os.environ.get(owner.API_ENV_VAR)
    if not key:
        raise ConfigurationError(
            f"Google API key not found. Provide via api_key argument or "
            f"set the {owner.API_ENV_VAR} environment variable."
        )
    return genai.Client(api_key=key)


# ChatOptions field -> GenerateContentConfig field
_CONFIG_FIELDS = {
    "temperature": "temperature",
    "top_p": "top_p",
    "top_k": "top_k",
    "max_tokens": "max_output_tokens",
    "stop": "stop_sequences",
    "presence_penalty": "presence_penalty",
    "frequency_penalty": "frequency_penalty",
    "candidate_count": "candidate_count",
    "seed": "seed",
}


class GeminiChatOptions(ChatOptions):
    top_k: Optional[float] = None
    candidate_count: Optional[int] = None
    seed: Optional[int] = None


class GeminiChatModel(BaseChatModel):
    """Chat model for Google Gemini using the google-genai SDK.

    Gemini reports ``STOP`` for turns that request function calls, and does
    not issue call ids; ids are generated locally.
    """

    OPTIONS_CLASS = GeminiChatOptions
    DEFAULT_MODEL = "gemini-2.0-flash"
    API_ENV_VAR = "GOOGLE_API_KEY"
    TOOL_CALL_FINISH_REASONS = frozenset({"stop"})

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._client: Any = None  # Lazy-created

    def _get_client(self) -> Any:
        """Lazily create the ``google.genai.Client``."""
        if self._client is None:
            self._client = create_genai_client(self)
        return self._client

    # ------------------------------------------------------------------
    # Retry hooks
    # ------------------------------------------------------------------

    def _status_code(self, error: Exception) -> Optional[int]:
        code = getattr(error, "code", None)
        if isinstance(code, int):
            return code
        return super()._status_code(error)

    # ------------------------------------------------------------------
    # Message conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _convert_messages(messages: List[Message]) -> Any:
        """Return ``(system_instruction, contents)`` for the conversation."""
        from google.genai import types

        system_parts: List[str] = []
        contents = []

        for message in messages:
            parts: List[Any] = []
            role = "user"

            if isinstance(message, SystemMessage):
                if message.content:
                    system_parts.append(message.content)
                continue

            elif isinstance(message, UserMessage):
                if message.content:
                    parts.append(types.Part(text=message.content))
                for media in message.media:
                    if media.is_url:
                        parts.append(
                            types.Part.from_uri(
                                file_uri=media.data, mime_type=media.mime_type
                            )
                        )
                    else:
                        parts.append(
                            types.Part.from_bytes(
                                data=media.data, mime_type=media.mime_type
                            )
                        )

            elif isinstance(message, AssistantMessage):
                role = "model"
                if message.content:
                    parts.append(types.Part(text=message.content))
                for tc in message.tool_calls:
                    function_call = types.FunctionCall(
                        name=tc.name, args=json.loads(tc.arguments or "{}")
                    )
                    parts.append(types.Part(function_call=function_call))

            elif isinstance(message, ToolResponseMessage):
                for response in message.responses:
                    response_data: Any = response.response_data
                    try:
                        response_data = json.loads(response.response_data)
                    except (json.JSONDecodeError, TypeError):
                        pass
                    function_response = types.FunctionResponse(
                        name=response.name, response={"result": response_data}
                    )
                    parts.append(types.Part(function_response=function_response))

            else:
                raise PreconditionError(
                    f"Unsupported message type: {type(message).__name__}"
                )

            if parts:
                contents.append(types.Content(role=role, parts=parts))

        system = "\n\n".join(system_parts) or None
        return system, contents

    def _build_request(
        self,
        messages: List[Message],
        options: ChatOptions,
        tools: List[ToolCallback],
        stream: bool,
    ) -> Dict[str, Any]:
        from google.genai import types

        system_instruction, contents = self._convert_messages(messages)
        payload = options.to_payload()
        model = payload.pop("model", None)
        if not model:
            raise ConfigurationError("No model configured for GeminiChatModel.")

        config_args: Dict[str, Any] = {
            _CONFIG_FIELDS[name]: value
            for name, value in payload.items()
            if name in _CONFIG_FIELDS
        }
        if system_instruction:
            config_args["system_instruction"] = system_instruction
        if tools:
            config_args["tools"] = [
                types.Tool(
                    function_declarations=[
                        types.FunctionDeclaration(
                            name=cb.name,
                            description=cb.description,
                            parameters=cb.input_schema,
                        )
                        for cb in tools
                    ]
                )
            ]

        return {
            "model": model,
            "contents": contents,
            "config": types.GenerateContentConfig(**config_args),
        }

    # ------------------------------------------------------------------
    # API calls
    # ------------------------------------------------------------------

    async def _call_api(self, request: Dict[str, Any]) -> Any:
        return await self._get_client().aio.models.generate_content(**request)

    async def _open_stream(self, request: Dict[str, Any]) -> Any:
        return await self._get_client().aio.models.generate_content_stream(**request)

    # ------------------------------------------------------------------
    # Response mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_usage(response: Any) -> Optional[Usage]:
        """Extract usage metadata from a Gemini response."""
        usage_meta = getattr(response, "usage_metadata", None)
        if not usage_meta:
            return None
        prompt = getattr(usage_meta, "prompt_token_count", 0) or 0
        completion = getattr(usage_meta, "candidates_token_count", 0) or 0
        return Usage(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=prompt + completion,
        )

    @staticmethod
    def _finish_reason(candidate: Any) -> Optional[str]:
        reason = getattr(candidate, "finish_reason", None)
        if reason is None:
            return None
        return getattr(reason, "name", None) or str(reason)

    def _to_choice(self, index: int, candidate: Any) -> ProviderChoice:
        text = ""
        tool_calls: List[ToolCall] = []
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            if getattr(part, "text", None):
                text += part.text
            function_call = getattr(part, "function_call", None)
            if function_call:
                tool_calls.append(
                    ToolCall(
                        id=getattr(function_call, "id", None)
                        or f"call_{function_call.name}_{uuid4().hex[:8]}",
                        name=function_call.name,
                        arguments=json.dumps(function_call.args or {}),
                    )
                )
        return ProviderChoice(
            index=getattr(candidate, "index", None) or index,
            role="assistant",
            content=text or None,
            tool_calls=tool_calls,
            finish_reason=self._finish_reason(candidate),
        )

    def _to_completion(self, raw: Any) -> Optional[ProviderCompletion]:
        candidates = getattr(raw, "candidates", None)
        choices = None
        if candidates is not None:
            choices = [self._to_choice(i, c) for i, c in enumerate(candidates)]
        return ProviderCompletion(
            id=getattr(raw, "response_id", None),
            model=getattr(raw, "model_version", None),
            choices=choices,
            usage=self._extract_usage(raw),
        )

    def _chunk_to_completion(self, chunk: Any) -> Optional[ProviderCompletion]:
        # Function calls arrive whole in a single chunk.
        return self._to_completion(chunk)

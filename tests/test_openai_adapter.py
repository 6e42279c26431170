"""Unit tests for the OpenAI Chat Completions adapter and its
OpenAI-compatible subclasses (Moonshot, ZhiPu AI, Mistral, MiniMax, Ollama).

All SDK traffic goes through a fake ``chat.completions.create``; no network.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, List, Optional
from unittest.mock import AsyncMock, patch

import httpx
import openai
import pytest

from ai_model_toolkit.exceptions import (
    ConfigurationError,
    NonTransientError,
    PreconditionError,
    RetryExhaustedError,
)
from ai_model_toolkit.messages import (
    AssistantMessage,
    Media,
    Prompt,
    SystemMessage,
    ToolCall,
    ToolResponse,
    ToolResponseMessage,
    UserMessage,
)
from ai_model_toolkit.options import ChatOptions
from ai_model_toolkit.providers.minimax import MiniMaxChatModel
from ai_model_toolkit.providers.mistral import MistralChatModel
from ai_model_toolkit.providers.moonshot import MoonshotChatModel
from ai_model_toolkit.providers.ollama import OllamaChatModel
from ai_model_toolkit.providers.openai import OpenAIChatModel
from ai_model_toolkit.providers.zhipuai import ZhiPuAiChatModel
from ai_model_toolkit.retry import RetryPolicy
from ai_model_toolkit.tools.tool_factory import ToolFactory

pytestmark = pytest.mark.asyncio


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _completion(
    content: Optional[str] = "Hello!",
    *,
    finish_reason: str = "stop",
    tool_calls: Optional[List[Any]] = None,
    id: str = "chatcmpl-1",
) -> SimpleNamespace:
    message = SimpleNamespace(role="assistant", content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        id=id,
        model="gpt-4o-mini",
        created=1700000000,
        choices=[SimpleNamespace(index=0, message=message, finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
    )


def _sdk_tool_call(call_id: str, name: str, arguments: str) -> SimpleNamespace:
    return SimpleNamespace(
        id=call_id, function=SimpleNamespace(name=name, arguments=arguments)
    )


def _with_client(model: OpenAIChatModel, create: AsyncMock) -> OpenAIChatModel:
    model._async_client = SimpleNamespace(  # noqa: SLF001
        chat=SimpleNamespace(completions=SimpleNamespace(create=create))
    )
    return model


def _status_error(cls: type, status: int) -> Exception:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return cls(f"HTTP {status}", response=response, body=None)


def _weather_factory() -> ToolFactory:
    factory = ToolFactory()

    def get_weather(city: str) -> str:
        """Current temperature for a city."""
        return "72F"

    factory.register_tool(get_weather)
    return factory


# ---------------------------------------------------------------------------
# Message conversion
# ---------------------------------------------------------------------------


class TestConvertMessages:
    def setup_method(self) -> None:
        self.model = OpenAIChatModel(api_key="sk-test")

    def test_system_and_user(self) -> None:
        assert self.model._convert_message(SystemMessage(content="Be brief.")) == [  # noqa: SLF001
            {"role": "system", "content": "Be brief."}
        ]
        assert self.model._convert_message(UserMessage(content="Hi")) == [  # noqa: SLF001
            {"role": "user", "content": "Hi"}
        ]

    def test_user_media_parts(self) -> None:
        message = UserMessage(
            content="What is this?",
            media=[
                Media(mime_type="image/png", data=b"\x89PNG"),
                Media(mime_type="image/jpeg", data="https://example.com/cat.jpg"),
            ],
        )
        converted = self.model._convert_message(message)  # noqa: SLF001
        parts = converted[0]["content"]
        assert parts[0] == {"type": "text", "text": "What is this?"}
        assert parts[1]["image_url"]["url"] == "data:image/png;base64,iVBORw=="
        assert parts[2]["image_url"]["url"] == "https://example.com/cat.jpg"

    def test_assistant_tool_calls(self) -> None:
        message = AssistantMessage(
            content=None,
            tool_calls=[ToolCall(id="call_1", name="get_weather", arguments='{"city": "Paris"}')],
        )
        (entry,) = self.model._convert_message(message)  # noqa: SLF001
        assert entry["role"] == "assistant"
        assert entry["content"] is None
        assert entry["tool_calls"] == [
            {
                "id": "call_1",
                "type": "function",
                "function": {"name": "get_weather", "arguments": '{"city": "Paris"}'},
            }
        ]

    def test_tool_responses_expand_to_one_entry_each(self) -> None:
        message = ToolResponseMessage(
            responses=[
                ToolResponse(id="call_1", name="a", response_data="1"),
                ToolResponse(id="call_2", name="b", response_data="2"),
            ]
        )
        converted = self.model._convert_message(message)  # noqa: SLF001
        assert converted == [
            {"role": "tool", "tool_call_id": "call_1", "name": "a", "content": "1"},
            {"role": "tool", "tool_call_id": "call_2", "name": "b", "content": "2"},
        ]

    def test_tool_response_without_id_rejected(self) -> None:
        message = ToolResponseMessage(
            responses=[ToolResponse(id="", name="a", response_data="1")]
        )
        with pytest.raises(PreconditionError):
            self.model._convert_message(message)  # noqa: SLF001


# ---------------------------------------------------------------------------
# Request building
# ---------------------------------------------------------------------------


class TestBuildRequest:
    def test_options_tools_and_stream(self) -> None:
        factory = _weather_factory()
        model = OpenAIChatModel(
            api_key="sk-test",
            default_options={"temperature": 0.2, "seed": 7},
            tool_factory=factory,
        )
        options = model.default_options
        tools = [factory.lookup("get_weather")]

        request = model._build_request(  # noqa: SLF001
            [UserMessage(content="Hi")], options, tools, True
        )

        assert request["model"] == "gpt-4o-mini"
        assert request["temperature"] == 0.2
        assert request["seed"] == 7
        assert request["tools"][0]["function"]["name"] == "get_weather"
        assert request["stream"] is True
        assert request["stream_options"] == {"include_usage": True}
        assert "functions" not in request
        assert "tool_callbacks" not in request

    def test_non_streaming_has_no_stream_fields(self) -> None:
        model = OpenAIChatModel(api_key="sk-test")
        request = model._build_request(  # noqa: SLF001
            [UserMessage(content="Hi")], model.default_options, [], False
        )
        assert "stream" not in request
        assert "tools" not in request

    def test_vendor_fields_travel_in_extra_body(self) -> None:
        model = ZhiPuAiChatModel(api_key="k", default_options={"do_sample": False})
        request = model._build_request(  # noqa: SLF001
            [UserMessage(content="Hi")], model.default_options, [], False
        )
        assert request["extra_body"] == {"do_sample": False}
        assert "do_sample" not in request
        assert request["model"] == "glm-4-air"

    def test_mistral_and_minimax_extra_body(self) -> None:
        mistral = MistralChatModel(api_key="k", default_options={"safe_prompt": True})
        minimax = MiniMaxChatModel(
            api_key="k", default_options={"mask_sensitive_info": False}
        )
        for model, expected in (
            (mistral, {"safe_prompt": True}),
            (minimax, {"mask_sensitive_info": False}),
        ):
            request = model._build_request(  # noqa: SLF001
                [UserMessage(content="Hi")], model.default_options, [], False
            )
            assert request["extra_body"] == expected

    def test_missing_model_rejected(self) -> None:
        model = OpenAIChatModel(api_key="k")
        with pytest.raises(ConfigurationError):
            model._build_request(  # noqa: SLF001
                [UserMessage(content="Hi")], ChatOptions(), [], False
            )


# ---------------------------------------------------------------------------
# Response mapping
# ---------------------------------------------------------------------------


class TestResponseMapping:
    def test_completion(self) -> None:
        model = OpenAIChatModel(api_key="k")
        completion = model._to_completion(  # noqa: SLF001
            _completion(
                None,
                finish_reason="tool_calls",
                tool_calls=[_sdk_tool_call("call_1", "get_weather", "")],
            )
        )
        assert completion.id == "chatcmpl-1"
        assert completion.usage.total_tokens == 15
        choice = completion.choices[0]
        assert choice.role == "assistant"
        assert choice.finish_reason == "tool_calls"
        assert choice.tool_calls[0].arguments == "{}"

    def test_missing_choices_maps_to_none(self) -> None:
        model = OpenAIChatModel(api_key="k")
        completion = model._to_completion(  # noqa: SLF001
            SimpleNamespace(id="x", choices=None, usage=None)
        )
        assert completion.choices is None
        assert completion.usage is None

    def test_chunk_with_tool_fragments(self) -> None:
        model = OpenAIChatModel(api_key="k")
        chunk = SimpleNamespace(
            id="chatcmpl-2",
            model="gpt-4o-mini",
            choices=[
                SimpleNamespace(
                    index=0,
                    delta=SimpleNamespace(
                        role="assistant",
                        content=None,
                        tool_calls=[
                            SimpleNamespace(
                                index=0,
                                id="call_1",
                                function=SimpleNamespace(name="get_weather", arguments='{"ci'),
                            )
                        ],
                    ),
                    finish_reason=None,
                )
            ],
            usage=None,
        )
        completion = model._chunk_to_completion(chunk)  # noqa: SLF001
        delta = completion.choices[0].tool_call_deltas[0]
        assert (delta.id, delta.name, delta.arguments) == ("call_1", "get_weather", '{"ci')
        assert completion.choices[0].role == "assistant"

    def test_usage_only_chunk(self) -> None:
        model = OpenAIChatModel(api_key="k")
        chunk = SimpleNamespace(
            id="chatcmpl-2",
            choices=[],
            usage=SimpleNamespace(prompt_tokens=3, completion_tokens=2, total_tokens=None),
        )
        completion = model._chunk_to_completion(chunk)  # noqa: SLF001
        assert completion.choices == []
        assert completion.usage.total_tokens == 5


# ---------------------------------------------------------------------------
# Calls through the fake client
# ---------------------------------------------------------------------------


class TestCall:
    async def test_simple_call(self) -> None:
        create = AsyncMock(return_value=_completion("Hello!"))
        model = _with_client(OpenAIChatModel(api_key="k"), create)

        response = await model.call("Hi")

        assert response.result.output.content == "Hello!"
        assert response.metadata.usage.prompt_tokens == 10
        kwargs = create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Hi"}]
        assert kwargs["model"] == "gpt-4o-mini"

    async def test_tool_round_trip(self) -> None:
        create = AsyncMock(
            side_effect=[
                _completion(
                    None,
                    finish_reason="tool_calls",
                    tool_calls=[_sdk_tool_call("call_1", "get_weather", '{"city": "Paris"}')],
                ),
                _completion("It is 72F in Paris.", id="chatcmpl-2"),
            ]
        )
        model = _with_client(
            OpenAIChatModel(api_key="k", tool_factory=_weather_factory()), create
        )

        response = await model.call(
            Prompt("Weather in Paris?", ChatOptions(functions={"get_weather"}))
        )

        assert response.result.output.content == "It is 72F in Paris."
        second = create.call_args_list[1].kwargs["messages"]
        assert second[-2]["tool_calls"][0]["id"] == "call_1"
        assert second[-1] == {
            "role": "tool",
            "tool_call_id": "call_1",
            "name": "get_weather",
            "content": "72F",
        }

    async def test_moonshot_stop_still_triggers_tools(self) -> None:
        create = AsyncMock(
            side_effect=[
                _completion(
                    None,
                    finish_reason="stop",
                    tool_calls=[_sdk_tool_call("call_1", "get_weather", '{"city": "Oslo"}')],
                ),
                _completion("Cold."),
            ]
        )
        model = _with_client(
            MoonshotChatModel(api_key="k", tool_factory=_weather_factory()), create
        )

        response = await model.call(
            Prompt("Weather?", ChatOptions(functions={"get_weather"}))
        )

        assert response.result.output.content == "Cold."
        assert create.call_count == 2

    async def test_openai_stop_does_not_trigger_tools(self) -> None:
        create = AsyncMock(
            return_value=_completion(
                None,
                finish_reason="stop",
                tool_calls=[_sdk_tool_call("call_1", "get_weather", "{}")],
            )
        )
        model = _with_client(
            OpenAIChatModel(api_key="k", tool_factory=_weather_factory()), create
        )

        response = await model.call(
            Prompt("Weather?", ChatOptions(functions={"get_weather"}))
        )

        assert response.result.output.has_tool_calls
        assert create.call_count == 1

    @patch("asyncio.sleep", new_callable=AsyncMock)
    async def test_server_errors_are_retried(self, mock_sleep: AsyncMock) -> None:
        create = AsyncMock(
            side_effect=[
                _status_error(openai.InternalServerError, 500),
                _completion("Recovered"),
            ]
        )
        model = _with_client(OpenAIChatModel(api_key="k"), create)

        response = await model.call("Hi")

        assert response.result.output.content == "Recovered"
        mock_sleep.assert_awaited_once_with(2.0)

    @patch("asyncio.sleep", new_callable=AsyncMock)
    async def test_retry_exhaustion(self, mock_sleep: AsyncMock) -> None:
        create = AsyncMock(side_effect=_status_error(openai.InternalServerError, 503))
        model = _with_client(
            OpenAIChatModel(api_key="k", retry_policy=RetryPolicy(max_attempts=3)),
            create,
        )

        with pytest.raises(RetryExhaustedError) as exc_info:
            await model.call("Hi")

        assert create.call_count == 3
        assert exc_info.value.status_code == 503

    @patch("asyncio.sleep", new_callable=AsyncMock)
    async def test_bad_request_not_retried(self, mock_sleep: AsyncMock) -> None:
        create = AsyncMock(side_effect=_status_error(openai.BadRequestError, 400))
        model = _with_client(OpenAIChatModel(api_key="k"), create)

        with pytest.raises(NonTransientError) as exc_info:
            await model.call("Hi")

        assert exc_info.value.status_code == 400
        assert create.call_count == 1
        mock_sleep.assert_not_called()

    async def test_stream(self) -> None:
        chunks = [
            SimpleNamespace(
                id="c1",
                choices=[
                    SimpleNamespace(
                        index=0,
                        delta=SimpleNamespace(role="assistant", content="Hel", tool_calls=None),
                        finish_reason=None,
                    )
                ],
                usage=None,
            ),
            SimpleNamespace(
                id="c1",
                choices=[
                    SimpleNamespace(
                        index=0,
                        delta=SimpleNamespace(role=None, content="lo", tool_calls=None),
                        finish_reason="stop",
                    )
                ],
                usage=None,
            ),
        ]

        class _Stream:
            def __init__(self) -> None:
                self.closed = False

            def __aiter__(self) -> Any:
                return self._gen()

            async def _gen(self) -> Any:
                for chunk in chunks:
                    yield chunk

            async def close(self) -> None:
                self.closed = True

        upstream = _Stream()
        create = AsyncMock(return_value=upstream)
        model = _with_client(OpenAIChatModel(api_key="k"), create)

        responses = [r async for r in model.stream("Hi")]

        assert [r.result.output.content for r in responses] == ["Hel", "lo"]
        assert responses[1].result.output.metadata["role"] == "assistant"
        assert create.call_args.kwargs["stream"] is True
        assert upstream.closed


# ---------------------------------------------------------------------------
# Client construction
# ---------------------------------------------------------------------------


class TestClientConstruction:
    async def test_missing_key_raises_configuration_error(self, no_vendor_keys: None) -> None:
        model = OpenAIChatModel()
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            await model.call("Hi")

    def test_key_from_environment(
        self, no_vendor_keys: None, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("MOONSHOT_API_KEY", "env-key")
        client = MoonshotChatModel()._get_client()  # noqa: SLF001
        assert client.api_key == "env-key"
        assert str(client.base_url).startswith("https://api.moonshot.cn/v1")
        assert client.max_retries == 0

    def test_ollama_needs_no_key(self, no_vendor_keys: None) -> None:
        client = OllamaChatModel()._get_client()  # noqa: SLF001
        assert str(client.base_url).startswith("http://localhost:11434/v1")

    def test_client_is_reused(self) -> None:
        model = OpenAIChatModel(api_key="k")
        assert model._get_client() is model._get_client()  # noqa: SLF001

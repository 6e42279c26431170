"""Unit tests for messages, media and Prompt validation."""

from __future__ import annotations

import pytest

from ai_model_toolkit.exceptions import PreconditionError
from ai_model_toolkit.messages import (
    AssistantMessage,
    Media,
    MessageType,
    Prompt,
    SystemMessage,
    ToolCall,
    ToolResponse,
    ToolResponseMessage,
    UserMessage,
)
from ai_model_toolkit.options import ChatOptions


class TestPromptConstruction:
    def test_string_becomes_user_message(self) -> None:
        prompt = Prompt("Hello")
        assert len(prompt.messages) == 1
        assert isinstance(prompt.messages[0], UserMessage)
        assert prompt.messages[0].content == "Hello"
        assert prompt.messages[0].message_type is MessageType.USER

    def test_single_message(self) -> None:
        prompt = Prompt(SystemMessage(content="Be terse."))
        assert prompt.messages[0].message_type is MessageType.SYSTEM

    def test_options_kept(self) -> None:
        options = ChatOptions(temperature=0.1)
        prompt = Prompt("Hi", options)
        assert prompt.options is options

    def test_empty_conversation_rejected(self) -> None:
        with pytest.raises(PreconditionError, match="at least one message"):
            Prompt([])

    def test_options_must_be_chat_options(self) -> None:
        with pytest.raises(PreconditionError, match="ChatOptions"):
            Prompt("Hi", {"temperature": 0.1})  # type: ignore[arg-type]

    def test_messages_are_immutable(self) -> None:
        message = UserMessage(content="Hi")
        with pytest.raises(Exception):
            message.content = "changed"  # type: ignore[misc]


class TestToolResponseOrdering:
    def test_response_answering_earlier_call_is_accepted(self) -> None:
        call = ToolCall(id="call_1", name="get_weather", arguments='{"city": "Paris"}')
        prompt = Prompt(
            [
                UserMessage(content="Weather?"),
                AssistantMessage(tool_calls=[call]),
                ToolResponseMessage(
                    responses=[
                        ToolResponse(id="call_1", name="get_weather", response_data="72F")
                    ]
                ),
            ]
        )
        assert len(prompt.messages) == 3

    def test_dangling_response_rejected(self) -> None:
        with pytest.raises(PreconditionError, match="does not answer"):
            Prompt(
                [
                    UserMessage(content="Weather?"),
                    ToolResponseMessage(
                        responses=[
                            ToolResponse(id="call_1", name="get_weather", response_data="72F")
                        ]
                    ),
                ]
            )

    def test_response_before_call_rejected(self) -> None:
        call = ToolCall(id="call_1", name="get_weather")
        with pytest.raises(PreconditionError):
            Prompt(
                [
                    ToolResponseMessage(
                        responses=[
                            ToolResponse(id="call_1", name="get_weather", response_data="x")
                        ]
                    ),
                    AssistantMessage(tool_calls=[call]),
                ]
            )

    def test_name_mismatch_rejected(self) -> None:
        call = ToolCall(id="call_1", name="get_weather")
        with pytest.raises(PreconditionError):
            Prompt(
                [
                    AssistantMessage(tool_calls=[call]),
                    ToolResponseMessage(
                        responses=[ToolResponse(id="call_1", name="get_time", response_data="x")]
                    ),
                ]
            )


class TestAugment:
    def test_augment_appends_and_keeps_options(self) -> None:
        options = ChatOptions(model="m")
        prompt = Prompt("Hi", options)

        longer = prompt.augment(AssistantMessage(content="Hello!"), UserMessage(content="Bye"))

        assert [m.content for m in longer.messages] == ["Hi", "Hello!", "Bye"]
        assert longer.options is options
        assert len(prompt.messages) == 1


class TestMedia:
    def test_bytes_become_data_url(self) -> None:
        media = Media(mime_type="image/png", data=b"\x89PNG")
        assert not media.is_url
        assert media.to_data_url() == "data:image/png;base64,iVBORw=="

    def test_url_passes_through(self) -> None:
        media = Media(mime_type="image/jpeg", data="https://example.com/cat.jpg")
        assert media.is_url
        assert media.to_data_url() == "https://example.com/cat.jpg"

    def test_assistant_has_tool_calls(self) -> None:
        assert not AssistantMessage(content="x").has_tool_calls
        assert AssistantMessage(tool_calls=[ToolCall(id="1", name="t")]).has_tool_calls

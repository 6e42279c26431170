"""Conversation messages and the :class:`Prompt` container.

Messages are immutable pydantic models tagged by :class:`MessageType`::

    from ai_model_toolkit.messages import Prompt, SystemMessage, UserMessage

    prompt = Prompt(
        messages=[
            SystemMessage(content="You are terse."),
            UserMessage(content="What's the weather in Paris?"),
        ]
    )
"""

from __future__ import annotations

import base64
import enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Set, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import PreconditionError

if TYPE_CHECKING:  # pragma: no cover - import cycle guard for type checkers
    from .options import ChatOptions


class MessageType(str, enum.Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class Media(BaseModel):
    """A multimodal attachment: raw bytes or a URL, plus its MIME type."""

    model_config = ConfigDict(frozen=True)

    mime_type: str
    data: Union[bytes, str]

    @property
    def is_url(self) -> bool:
        return isinstance(self.data, str)

    def to_data_url(self) -> str:
        """Return a URL usable in image/file content parts.

        Raw bytes are inlined as a base64 ``data:`` URL.
        """
        if isinstance(self.data, str):
            return self.data
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: str = "{}"  # JSON string as sent by the provider
    type: str = "function"


class ToolResponse(BaseModel):
    """The result of one tool invocation, fed back to the model."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    response_data: str


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    message_type: MessageType
    content: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SystemMessage(Message):
    message_type: MessageType = MessageType.SYSTEM


class UserMessage(Message):
    message_type: MessageType = MessageType.USER
    media: List[Media] = Field(default_factory=list)


class AssistantMessage(Message):
    message_type: MessageType = MessageType.ASSISTANT
    tool_calls: List[ToolCall] = Field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class ToolResponseMessage(Message):
    message_type: MessageType = MessageType.TOOL
    responses: List[ToolResponse] = Field(default_factory=list)


class Prompt(BaseModel):
    """The full conversational input to one model call.

    Attributes:
        messages: Ordered conversation turns. A plain string is accepted and
            becomes a single :class:`UserMessage`.
        options: Optional per-call :class:`~ai_model_toolkit.options.ChatOptions`
            overriding the model's defaults.

    Every :class:`ToolResponse` must answer a tool call (same ``id`` and
    ``name``) made by an earlier :class:`AssistantMessage`; otherwise a
    :class:`~ai_model_toolkit.exceptions.PreconditionError` is raised.
    """

    model_config = ConfigDict(frozen=True)

    messages: Tuple[Message, ...]
    options: Optional[Any] = None

    def __init__(
        self,
        messages: Union[str, Message, Sequence[Message]],
        options: Optional["ChatOptions"] = None,
        **data: Any,
    ) -> None:
        if isinstance(messages, str):
            messages = (UserMessage(content=messages),)
        elif isinstance(messages, Message):
            messages = (messages,)
        else:
            messages = tuple(messages)
        super().__init__(messages=messages, options=options, **data)
        self._check_conversation()

    def _check_conversation(self) -> None:
        if not self.messages:
            raise PreconditionError("Prompt must contain at least one message.")

        from .options import ChatOptions

        if self.options is not None and not isinstance(self.options, ChatOptions):
            raise PreconditionError(
                f"Prompt options must be ChatOptions, got {type(self.options).__name__}."
            )

        seen_calls: Set[Tuple[str, str]] = set()
        for message in self.messages:
            if isinstance(message, AssistantMessage):
                seen_calls.update((tc.id, tc.name) for tc in message.tool_calls)
            elif isinstance(message, ToolResponseMessage):
                for response in message.responses:
                    if (response.id, response.name) not in seen_calls:
                        raise PreconditionError(
                            f"Tool response '{response.name}' (id={response.id}) "
                            "does not answer any earlier assistant tool call."
                        )

    def augment(self, *messages: Message) -> "Prompt":
        """Return a new prompt with *messages* appended and the same options."""
        return Prompt(list(self.messages) + list(messages), options=self.options)

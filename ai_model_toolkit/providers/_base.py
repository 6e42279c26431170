"""BaseChatModel ABC with the shared request merge, reconciliation, tool loop and retry."""

from __future__ import annotations

import abc
import asyncio
import inspect
import logging
from dataclasses import dataclass, field, replace
from typing import (
    Any,
    AsyncIterator,
    ClassVar,
    Dict,
    FrozenSet,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    Union,
)

from ..exceptions import ToolLoopLimitError
from ..messages import (
    AssistantMessage,
    Message,
    Prompt,
    ToolCall,
    ToolResponse,
    ToolResponseMessage,
)
from ..options import ChatOptions, merge_options
from ..responses import (
    ChatGenerationMetadata,
    ChatResponse,
    ChatResponseMetadata,
    Generation,
    Usage,
)
from ..retry import RetryPolicy, RetrySupport
from ..tools.models import ToolCallback
from ..tools.tool_factory import ToolFactory

logger = logging.getLogger(__name__)

PromptInput = Union[Prompt, str, Message, Sequence[Message]]

DEFAULT_MAX_TOOL_ROUNDS = 25


# ---------------------------------------------------------------------------
# Normalised types returned by adapter _to_completion / _chunk_to_completion
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolCallDelta:
    """One streamed fragment of a tool call.

    The first fragment for an ``index`` carries ``id`` and ``name``; later
    fragments only append to ``arguments``.
    """

    index: int
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: str = ""


@dataclass(frozen=True)
class ProviderChoice:
    """A single candidate completion (or chunk of one) from the provider."""

    index: int = 0
    role: Optional[str] = None
    content: Optional[str] = None
    tool_calls: List[ToolCall] = field(default_factory=list)
    tool_call_deltas: List[ToolCallDelta] = field(default_factory=list)
    finish_reason: Optional[str] = None


@dataclass(frozen=True)
class ProviderCompletion:
    """Normalised completion; ``choices is None`` means the body had none."""

    id: Optional[str] = None
    model: Optional[str] = None
    created: Optional[int] = None
    choices: Optional[List[ProviderChoice]] = None
    usage: Optional[Usage] = None


# ---------------------------------------------------------------------------
# Per-stream state
# ---------------------------------------------------------------------------


class StreamSession:
    """State for one streamed response, discarded when the stream ends.

    Only the first chunk of a response carries the role; later chunks with
    the same id inherit it. Chunks without an id belong to the last id seen.
    Tool-call fragments are buffered per choice and released once the chunk
    carrying that choice's finish reason arrives, together with the text
    streamed so far for that choice.
    """

    def __init__(self) -> None:
        self._roles: Dict[str, str] = {}
        self.response_id: Optional[str] = None
        self._fragments: Dict[Tuple[int, int], Dict[str, Any]] = {}
        self._text: Dict[int, str] = {}

    def resolve_id(self, response_id: Optional[str]) -> Optional[str]:
        if response_id:
            self.response_id = response_id
        return self.response_id

    def role_for(self, response_id: Optional[str], role: Optional[str]) -> str:
        key = response_id or ""
        if role:
            self._roles.setdefault(key, role)
        return self._roles.get(key, "")

    def text_for(self, choice: ProviderChoice) -> str:
        """Text streamed so far for the choice, including this chunk."""
        self._text[choice.index] = self._text.get(choice.index, "") + (
            choice.content or ""
        )
        return self._text[choice.index]

    def collect_tool_calls(self, choice: ProviderChoice) -> List[ToolCall]:
        for delta in choice.tool_call_deltas:
            slot = self._fragments.setdefault(
                (choice.index, delta.index), {"id": None, "name": None, "arguments": ""}
            )
            if delta.id:
                slot["id"] = delta.id
            if delta.name:
                slot["name"] = delta.name
            slot["arguments"] += delta.arguments or ""

        if not choice.finish_reason:
            return []
        ready = sorted(k for k in self._fragments if k[0] == choice.index)
        calls = []
        for key in ready:
            slot = self._fragments.pop(key)
            calls.append(
                ToolCall(
                    id=slot["id"] or f"call_{key[1]}",
                    name=slot["name"] or "",
                    arguments=slot["arguments"] or "{}",
                )
            )
        return calls


# ---------------------------------------------------------------------------
# BaseChatModel ABC
# ---------------------------------------------------------------------------


class BaseChatModel(RetrySupport, abc.ABC):
    """Abstract base for all chat model adapters.

    Subclasses implement the thin SDK-specific capability methods (request
    mapping, the raw call, response mapping); this class owns option merging,
    the reconciler, streaming, the tool-call loop and retry.
    """

    OPTIONS_CLASS: ClassVar[Type[ChatOptions]] = ChatOptions
    DEFAULT_MODEL: ClassVar[Optional[str]] = None
    API_ENV_VAR: ClassVar[Optional[str]] = None
    # Finish reasons (compared case-insensitively) that mean "run the tools".
    TOOL_CALL_FINISH_REASONS: ClassVar[FrozenSet[str]] = frozenset({"tool_calls"})

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        default_options: Union[ChatOptions, Dict[str, Any], None] = None,
        tool_factory: Optional[ToolFactory] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 180.0,
        max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.tool_factory = tool_factory or ToolFactory()
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.max_tool_rounds = max_tool_rounds
        self._default_options = merge_options(
            self.OPTIONS_CLASS, {"model": self.DEFAULT_MODEL}, default_options
        )

    @property
    def default_options(self) -> ChatOptions:
        """A copy of the options applied beneath every prompt's options."""
        return self._default_options.copy()

    def enable_tools(self, *names: str) -> None:
        """Enable registered tools for every call made with this model."""
        self._default_options = merge_options(
            self.OPTIONS_CLASS, self._default_options, {"functions": set(names)}
        )

    # ------------------------------------------------------------------
    # Capability interface: every adapter implements these
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def _build_request(
        self,
        messages: List[Message],
        options: ChatOptions,
        tools: List[ToolCallback],
        stream: bool,
    ) -> Dict[str, Any]:
        """Map the conversation, merged options and tools to a vendor request."""

    @abc.abstractmethod
    async def _call_api(self, request: Dict[str, Any]) -> Any:
        """Submit *request* once and return the raw vendor completion."""

    @abc.abstractmethod
    async def _open_stream(self, request: Dict[str, Any]) -> Any:
        """Open a vendor stream for *request*; returns an async iterable of chunks."""

    @abc.abstractmethod
    def _to_completion(self, raw: Any) -> Optional[ProviderCompletion]:
        """Map a raw vendor completion."""

    @abc.abstractmethod
    def _chunk_to_completion(self, chunk: Any) -> Optional[ProviderCompletion]:
        """Map a raw stream chunk; ``None`` skips chunks carrying nothing."""

    # ------------------------------------------------------------------
    # Request preparation
    # ------------------------------------------------------------------

    @staticmethod
    def _to_prompt(prompt: PromptInput) -> Prompt:
        if isinstance(prompt, Prompt):
            return prompt
        return Prompt(prompt)

    def _merged_options(self, prompt: Prompt) -> ChatOptions:
        return merge_options(self.OPTIONS_CLASS, self._default_options, prompt.options)

    def _resolve_tools(self, options: ChatOptions) -> Dict[str, ToolCallback]:
        """Callbacks for every enabled tool; prompt-scoped ones shadow the registry."""
        resolved = {cb.name: cb for cb in options.tool_callbacks}
        for name in sorted(options.functions):
            if name not in resolved:
                resolved[name] = self.tool_factory.lookup(name)
        return resolved

    # ------------------------------------------------------------------
    # Reconciler
    # ------------------------------------------------------------------

    @staticmethod
    def _to_generation(
        response_id: Optional[str],
        role: str,
        choice: ProviderChoice,
        tool_calls: List[ToolCall],
    ) -> Generation:
        output = AssistantMessage(
            content=choice.content,
            metadata={
                "id": response_id or "",
                "role": role,
                "finish_reason": choice.finish_reason or "",
            },
            tool_calls=tool_calls,
        )
        return Generation(
            output=output,
            metadata=ChatGenerationMetadata(finish_reason=choice.finish_reason),
        )

    @staticmethod
    def _response_metadata(completion: ProviderCompletion) -> ChatResponseMetadata:
        return ChatResponseMetadata(
            id=completion.id,
            model=completion.model,
            usage=completion.usage,
            created=completion.created,
        )

    def _to_chat_response(
        self, completion: Optional[ProviderCompletion]
    ) -> ChatResponse:
        if completion is None:
            logger.warning("No chat completion returned by %s", type(self).__name__)
            return ChatResponse()
        if completion.choices is None:
            logger.warning(
                "No choices returned by %s for completion %s",
                type(self).__name__,
                completion.id,
            )
            return ChatResponse()
        generations = [
            self._to_generation(
                completion.id, choice.role or "assistant", choice, list(choice.tool_calls)
            )
            for choice in completion.choices
        ]
        return ChatResponse(
            results=generations, metadata=self._response_metadata(completion)
        )

    def _reconcile_chunk(
        self, session: StreamSession, completion: ProviderCompletion
    ) -> ChatResponse:
        response_id = session.resolve_id(completion.id)
        generations = []
        for choice in completion.choices or ():
            role = session.role_for(response_id, choice.role)
            text = session.text_for(choice)
            tool_calls = list(choice.tool_calls) + session.collect_tool_calls(choice)
            if tool_calls:
                choice = replace(choice, content=text or None)
            generations.append(
                self._to_generation(response_id, role, choice, tool_calls)
            )
        metadata = self._response_metadata(completion)
        metadata.id = response_id
        return ChatResponse(results=generations, metadata=metadata)

    # ------------------------------------------------------------------
    # Tool-call loop
    # ------------------------------------------------------------------

    def is_tool_call(self, generation: Generation) -> bool:
        """Whether *generation* asks for tools with a triggering finish reason."""
        reason = (generation.metadata.finish_reason or "").lower()
        triggers = {r.lower() for r in self.TOOL_CALL_FINISH_REASONS}
        return generation.output.has_tool_calls and reason in triggers

    def _tool_call_generation(self, response: ChatResponse) -> Optional[Generation]:
        for generation in response.results:
            if self.is_tool_call(generation):
                return generation
        return None

    async def _execute_tool_calls(
        self,
        assistant: AssistantMessage,
        tools: Dict[str, ToolCallback],
        tool_execution_context: Optional[Dict[str, Any]],
    ) -> ToolResponseMessage:
        logger.info(
            "Executing %d tool call(s): %s",
            len(assistant.tool_calls),
            [tc.name for tc in assistant.tool_calls],
        )

        async def _run(call: ToolCall) -> ToolResponse:
            callback = tools.get(call.name) or self.tool_factory.lookup(call.name)
            result = await self.tool_factory.invoke(
                callback, call.arguments, tool_execution_context
            )
            return ToolResponse(id=call.id, name=call.name, response_data=result.content)

        responses = await asyncio.gather(*(_run(tc) for tc in assistant.tool_calls))
        return ToolResponseMessage(responses=list(responses))

    def _check_round(self, rounds: int) -> None:
        if rounds >= self.max_tool_rounds:
            raise ToolLoopLimitError(
                f"Model requested tools for more than {self.max_tool_rounds} "
                "consecutive rounds."
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def call(
        self,
        prompt: PromptInput,
        *,
        tool_execution_context: Optional[Dict[str, Any]] = None,
    ) -> ChatResponse:
        """Submit *prompt*, running requested tools until a final response.

        Raises:
            ToolError: A requested tool is unknown or failed.
            ToolLoopLimitError: Tools were requested more than
                ``max_tool_rounds`` times in a row.
            NonTransientError: The provider call failed (including retry
                exhaustion).
        """
        prompt = self._to_prompt(prompt)
        options = self._merged_options(prompt)
        tools = self._resolve_tools(options)
        messages: List[Message] = list(prompt.messages)

        rounds = 0
        while True:
            request = self._build_request(messages, options, list(tools.values()), False)
            raw = await self._with_retry(lambda: self._call_api(request), "call")
            completion = self._to_completion(raw) if raw is not None else None
            response = self._to_chat_response(completion)

            generation = self._tool_call_generation(response)
            if generation is None:
                return response
            self._check_round(rounds)
            rounds += 1
            tool_message = await self._execute_tool_calls(
                generation.output, tools, tool_execution_context
            )
            messages = messages + [generation.output, tool_message]

    async def stream(
        self,
        prompt: PromptInput,
        *,
        tool_execution_context: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[ChatResponse]:
        """Yield one :class:`ChatResponse` per received chunk.

        Chunks that complete a tool request are not yielded; the tools run
        and the follow-up stream continues in the same iteration. Closing the
        iterator closes the vendor stream.
        """
        prompt = self._to_prompt(prompt)
        options = self._merged_options(prompt)
        tools = self._resolve_tools(options)
        messages: List[Message] = list(prompt.messages)

        rounds = 0
        while True:
            request = self._build_request(messages, options, list(tools.values()), True)
            upstream = await self._with_retry(
                lambda: self._open_stream(request), "stream"
            )
            session = StreamSession()
            pending: Optional[AssistantMessage] = None
            try:
                async for chunk in upstream:
                    completion = self._chunk_to_completion(chunk)
                    if completion is None:
                        continue
                    response = self._reconcile_chunk(session, completion)
                    generation = self._tool_call_generation(response)
                    if generation is not None:
                        pending = generation.output
                        continue
                    yield response
            finally:
                await close_stream(upstream)

            if pending is None:
                return
            self._check_round(rounds)
            rounds += 1
            tool_message = await self._execute_tool_calls(
                pending, tools, tool_execution_context
            )
            messages = messages + [pending, tool_message]


async def close_stream(upstream: Any) -> None:
    close = getattr(upstream, "aclose", None) or getattr(upstream, "close", None)
    if close is None:
        return
    result = close()
    if inspect.isawaitable(result):
        await result

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .messages import AssistantMessage


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatGenerationMetadata(BaseModel):
    finish_reason: Optional[str] = None


class Generation(BaseModel):
    """One candidate output within a :class:`ChatResponse`.

    ``output.metadata`` carries the provider message ``id``, the ``role``
    and the ``finish_reason`` as reported by the provider.
    """

    output: AssistantMessage
    metadata: ChatGenerationMetadata = Field(default_factory=ChatGenerationMetadata)


class ChatResponseMetadata(BaseModel):
    id: Optional[str] = None
    model: Optional[str] = None
    usage: Optional[Usage] = None
    created: Optional[int] = None
    extra: Dict[str, Any] = Field(default_factory=dict)


class ChatResponse(BaseModel):
    results: List[Generation] = Field(default_factory=list)
    metadata: ChatResponseMetadata = Field(default_factory=ChatResponseMetadata)

    @property
    def result(self) -> Optional[Generation]:
        """The first generation, or ``None`` for an empty response."""
        return self.results[0] if self.results else None

    @property
    def content(self) -> Optional[str]:
        return self.result.output.content if self.result else None

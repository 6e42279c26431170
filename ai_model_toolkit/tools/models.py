# ai_model_toolkit/ai_model_toolkit/tools/models.py
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field


class ToolCallback(BaseModel):
    """A named capability the model may ask to invoke mid-conversation.

    ``function`` receives the tool arguments as keyword arguments and may be
    sync or async. It may return a ``str``, a :class:`ToolExecutionResult`,
    or any JSON-serialisable value.
    """

    name: str
    description: str
    input_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    function: Callable[..., Any]

    def to_definition(self) -> Dict[str, Any]:
        """Return the Chat Completions style ``{"type": "function"}`` definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }


class ToolExecutionResult(BaseModel):
    """Represents the outcome of a tool execution."""

    content: str  # The string added to the conversation for the model
    metadata: Optional[Dict[str, Any]] = None

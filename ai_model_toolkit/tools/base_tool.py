from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .models import ToolExecutionResult


class BaseTool(ABC):
    """Base class for tools that carry configuration (clients, credentials).

    Register with :meth:`ToolFactory.register_tool_class`; the factory builds
    one instance through :meth:`from_config` and exposes its ``execute``.
    """

    NAME: str
    DESCRIPTION: str
    PARAMETERS: Optional[Dict[str, Any]] = None  # inferred from execute() if unset

    @abstractmethod
    def execute(self, **kwargs: Any) -> ToolExecutionResult | str:
        """Run the tool."""
        raise NotImplementedError

    @classmethod
    def from_config(cls, **config: Any) -> "BaseTool":
        return cls(**config)

from .base_tool import BaseTool
from .models import ToolCallback, ToolExecutionResult
from .tool_factory import ToolFactory

__all__ = [
    "ToolFactory",
    "BaseTool",
    "ToolCallback",
    "ToolExecutionResult",
]

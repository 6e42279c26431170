# ai_model_toolkit/ai_model_toolkit/tools/tool_factory.py
import asyncio
import inspect
import json
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from ..exceptions import ToolError
from ._schema_gen import input_model_of, schema_for_callable
from .models import ToolCallback, ToolExecutionResult

module_logger = logging.getLogger(__name__)


class ToolFactory:
    """
    Registry of tool callbacks the model may invoke, keyed by name.
    Builds provider-neutral tool definitions, invokes callbacks with the
    model-supplied JSON arguments (plus optional execution context), and
    tracks how often each tool is used.
    """

    def __init__(self) -> None:
        self.tools: Dict[str, ToolCallback] = {}
        self.tool_usage_counts: Dict[str, int] = defaultdict(int)
        module_logger.info("ToolFactory initialized.")

    def register_tool(
        self,
        function: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
        exclude_params: Optional[List[str]] = None,
    ) -> ToolCallback:
        """
        Registers a Python function as a tool.

        Args:
            function: The callable to execute. May be sync or async.
            name: The name the model uses to call the function. Defaults to
                  the function's ``__name__``.
            description: Explanation shown to the model. Defaults to the
                         function's docstring.
            parameters: JSON Schema for the arguments. Inferred from the
                        function's type hints when omitted.
            exclude_params: Parameters left out of the inferred schema because
                            they are supplied from the execution context.

        Returns:
            ToolCallback: The registered callback.
        """
        name = name or function.__name__
        if description is None:
            description = (function.__doc__ or "").strip()
            if not description:
                module_logger.warning(
                    "Tool function '%s' has no docstring. Using generic description.",
                    name,
                )
                description = f"Executes the {name} function."
        if parameters is None:
            parameters = schema_for_callable(function, exclude=exclude_params or ())
        elif not isinstance(parameters, dict) or parameters.get("type") != "object":
            module_logger.warning(
                "Tool '%s' parameters does not seem to be a valid JSON Schema object.",
                name,
            )

        callback = ToolCallback(
            name=name,
            description=description,
            input_schema=parameters,
            function=function,
        )
        self.register_callback(callback)
        return callback

    def register_callback(self, callback: ToolCallback) -> None:
        """Registers an already-built :class:`ToolCallback`."""
        if callback.name in self.tools:
            module_logger.warning(
                "Tool '%s' is already registered. Overwriting.", callback.name
            )
        self.tools[callback.name] = callback
        self.tool_usage_counts[callback.name] = 0
        module_logger.info("Registered tool: %s", callback.name)

    def register_tool_class(
        self,
        tool_class: type,
        config: Optional[Dict[str, Any]] = None,
    ) -> ToolCallback:
        """Registers a tool class that inherits from :class:`BaseTool`."""
        from .base_tool import BaseTool

        if not (isinstance(tool_class, type) and issubclass(tool_class, BaseTool)):
            raise ToolError(f"{tool_class!r} must inherit from BaseTool.")

        name = getattr(tool_class, "NAME", None)
        description = getattr(tool_class, "DESCRIPTION", None)
        if not name or not description:
            raise ToolError(
                f"Tool class {tool_class.__name__} missing required NAME or DESCRIPTION."
            )

        instance = tool_class.from_config(**(config or {}))
        parameters = getattr(tool_class, "PARAMETERS", None) or schema_for_callable(
            instance.execute
        )
        callback = ToolCallback(
            name=name,
            description=description,
            input_schema=parameters,
            function=instance.execute,
        )
        self.register_callback(callback)
        return callback

    def lookup(self, name: str) -> ToolCallback:
        """Return the callback registered under *name*.

        Raises:
            ToolError: If no tool with that name is registered.
        """
        try:
            return self.tools[name]
        except KeyError:
            raise ToolError(
                f"Tool '{name}' is not registered. Available: {sorted(self.tools)}"
            ) from None

    def get_tool_definitions(
        self, filter_tool_names: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Returns Chat Completions style tool definitions, optionally filtered.

        Args:
            filter_tool_names: Tool names to include. ``None`` returns every
                registered tool; unknown names raise :class:`ToolError`.
        """
        if filter_tool_names is None:
            return [cb.to_definition() for cb in self.tools.values()]
        return [self.lookup(name).to_definition() for name in filter_tool_names]

    async def dispatch_tool(
        self,
        function_name: str,
        function_args_str: Optional[str],
        tool_execution_context: Optional[Dict[str, Any]] = None,
    ) -> ToolExecutionResult:
        """Looks up *function_name* and invokes it. See :meth:`invoke`."""
        callback = self.lookup(function_name)
        return await self.invoke(callback, function_args_str, tool_execution_context)

    async def invoke(
        self,
        callback: ToolCallback,
        function_args_str: Optional[str],
        tool_execution_context: Optional[Dict[str, Any]] = None,
    ) -> ToolExecutionResult:
        """
        Invokes *callback* with the model-supplied JSON arguments.

        Context entries whose names match parameters of the callback are
        injected unless the model already supplied that argument. Async
        callbacks are awaited.

        Raises:
            ToolError: If the arguments are not a JSON object or the callback
                raises. Tool failures abort the current turn.
        """
        name = callback.name
        raw_args = function_args_str or "{}"
        try:
            arguments = json.loads(raw_args)
        except json.JSONDecodeError as e:
            raise ToolError(
                f"Failed to decode JSON arguments for tool '{name}': {e}. Args: '{raw_args}'"
            ) from e
        if not isinstance(arguments, dict):
            raise ToolError(
                f"Expected a JSON object for arguments of tool '{name}', "
                f"got {type(arguments).__name__}."
            )

        function = callback.function
        injected = self._context_arguments(
            function, name, arguments, tool_execution_context
        )
        self.increment_tool_usage(name)

        try:
            module_logger.debug("Executing tool '%s' with args: %s", name, arguments)
            input_model = input_model_of(function, exclude=injected)
            if input_model is not None:
                result = function(input_model.model_validate(arguments), **injected)
            else:
                result = function(**arguments, **injected)
            if asyncio.iscoroutine(result) or inspect.isawaitable(result):
                result = await result
        except ValidationError as e:
            raise ToolError(f"Invalid arguments for tool '{name}': {e}") from e
        except ToolError:
            raise
        except Exception as e:
            module_logger.error("Error during tool execution for %s: %s", name, e)
            raise ToolError(
                f"Execution failed unexpectedly within tool '{name}': {e}"
            ) from e

        return self._to_execution_result(name, result)

    @staticmethod
    def _context_arguments(
        function: Callable[..., Any],
        name: str,
        arguments: Dict[str, Any],
        tool_execution_context: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        if not tool_execution_context:
            return {}
        try:
            params = inspect.signature(function).parameters
        except (TypeError, ValueError) as e:
            module_logger.error(
                "Could not inspect signature for tool '%s': %s. Context not injected.",
                name,
                e,
            )
            return {}
        accepts_any = any(p.kind is p.VAR_KEYWORD for p in params.values())
        injected: Dict[str, Any] = {}
        for key, value in tool_execution_context.items():
            if key not in params and not accepts_any:
                continue
            if key in arguments:
                module_logger.warning(
                    "Context parameter '%s' for tool '%s' collides with a "
                    "model-provided argument. Context will NOT override.",
                    key,
                    name,
                )
                continue
            injected[key] = value
        return injected

    @staticmethod
    def _to_execution_result(name: str, result: Any) -> ToolExecutionResult:
        if isinstance(result, ToolExecutionResult):
            return result
        if isinstance(result, str):
            return ToolExecutionResult(content=result)
        if isinstance(result, BaseModel):
            return ToolExecutionResult(content=result.model_dump_json())
        try:
            return ToolExecutionResult(content=json.dumps(result))
        except (TypeError, ValueError):
            module_logger.warning(
                "Tool '%s' returned a non-serialisable %s; using str().",
                name,
                type(result).__name__,
            )
            return ToolExecutionResult(content=str(result))

    def increment_tool_usage(self, tool_name: str) -> None:
        """Increments the usage count for the given tool name."""
        self.tool_usage_counts[tool_name] += 1

    def get_tool_usage_counts(self) -> Dict[str, int]:
        """Returns a copy of the per-tool usage counts."""
        return dict(self.tool_usage_counts)

    def reset_tool_usage_counts(self) -> None:
        """Resets all tool usage counts to zero."""
        for tool_name in self.tool_usage_counts:
            self.tool_usage_counts[tool_name] = 0
        module_logger.info("All tool usage counts have been reset.")

    @property
    def available_tool_names(self) -> List[str]:
        """Returns a list of all registered tool names."""
        return list(self.tools)

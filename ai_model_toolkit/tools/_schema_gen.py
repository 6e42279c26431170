"""Derive a tool's JSON input schema from a Python callable.

Used by :meth:`ToolFactory.register_tool` when no schema is given. Two
shapes are recognised:

* a function whose only argument is a pydantic model (``def f(req: Weather)``)
  gets that model's JSON schema, and is called with a validated instance;
* any other function gets an ``object`` schema built from its annotated
  parameters.

Parameters filled in from the execution context are excluded.
"""

from __future__ import annotations

import enum
import inspect
import logging
import types
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Literal,
    Optional,
    Type,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from pydantic import BaseModel

logger = logging.getLogger(__name__)

_SCALARS: Dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
}


def _tool_parameters(
    func: Callable[..., Any], exclude: Iterable[str] = ()
) -> List[inspect.Parameter]:
    skipped = set(exclude) | {"self", "cls"}
    return [
        p
        for p in inspect.signature(func).parameters.values()
        if p.name not in skipped
        and p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
    ]


def _resolved_hints(func: Callable[..., Any]) -> Dict[str, Any]:
    try:
        return get_type_hints(func)
    except (NameError, AttributeError, TypeError):
        # Unresolvable forward references; fall back to raw annotations.
        return {}


def input_model_of(
    func: Callable[..., Any], exclude: Iterable[str] = ()
) -> Optional[Type[BaseModel]]:
    """Return the pydantic model when *func* takes exactly one model argument."""
    params = _tool_parameters(func, exclude)
    if len(params) != 1:
        return None
    annotation = _resolved_hints(func).get(params[0].name, params[0].annotation)
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation
    return None


def schema_for_callable(
    func: Callable[..., Any], exclude: Iterable[str] = ()
) -> Dict[str, Any]:
    """Build the JSON schema describing *func*'s tool arguments."""
    model = input_model_of(func, exclude)
    if model is not None:
        schema = model.model_json_schema()
        schema.pop("title", None)
        return schema

    hints = _resolved_hints(func)
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for param in _tool_parameters(func, exclude):
        annotation = hints.get(param.name, param.annotation)
        if annotation is inspect.Parameter.empty:
            logger.debug(
                "Parameter '%s' of %s has no annotation; describing it as a string.",
                param.name,
                getattr(func, "__name__", func),
            )
            annotation = str
        prop = schema_for_type(annotation)
        if param.default is inspect.Parameter.empty:
            required.append(param.name)
        elif param.default is not None and not isinstance(param.default, enum.Enum):
            prop["default"] = param.default
        properties[param.name] = prop

    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def schema_for_type(annotation: Any) -> Dict[str, Any]:
    """Map one Python annotation to a JSON schema fragment."""
    if annotation is type(None):
        return {"type": "null"}
    if annotation in _SCALARS:
        return {"type": _SCALARS[annotation]}

    origin = get_origin(annotation)
    args = get_args(annotation)

    if origin is Union or isinstance(annotation, getattr(types, "UnionType", ())):
        members = [a for a in args if a is not type(None)]
        nullable = len(members) != len(args)
        if len(members) == 1:
            inner = schema_for_type(members[0])
        else:
            inner = {"anyOf": [schema_for_type(a) for a in members]}
        if not nullable:
            return inner
        if isinstance(inner.get("type"), str):
            return {**inner, "type": [inner["type"], "null"]}
        return {"anyOf": [inner, {"type": "null"}]}

    if origin is Literal:
        return _enum_schema(list(args))

    if origin in (list, tuple, set, frozenset) or annotation in (list, tuple, set):
        if args and args[0] is not Ellipsis:
            return {"type": "array", "items": schema_for_type(args[0])}
        return {"type": "array"}

    if origin is dict or annotation is dict:
        return {"type": "object"}

    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return _enum_schema([member.value for member in annotation])

    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        schema = annotation.model_json_schema()
        schema.pop("title", None)
        return schema

    return {"type": "string"}


def _enum_schema(values: List[Any]) -> Dict[str, Any]:
    for py_type, json_type in _SCALARS.items():
        if values and all(type(v) is py_type for v in values):
            return {"type": json_type, "enum": values}
    return {"enum": values}

"""Chat options and the layered merge used to build every outbound request."""

from __future__ import annotations

import copy as _copy
import logging
from typing import Any, Dict, List, Mapping, Optional, Set, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import PreconditionError
from .tools.models import ToolCallback

logger = logging.getLogger(__name__)

_TOOL_FIELDS = frozenset({"functions", "tool_callbacks"})

OptionsT = TypeVar("OptionsT", bound="ChatOptions")
OptionsLayer = Union["ChatOptions", Mapping[str, Any], None]


class ChatOptions(BaseModel):
    """Portable chat options. ``None`` means "let the provider decide".

    ``functions`` names registered tools to enable for the call.
    ``tool_callbacks`` carries tools scoped to a single prompt; they are
    looked up before the shared :class:`~ai_model_toolkit.tools.ToolFactory`.
    """

    model_config = ConfigDict(extra="forbid")

    model: Optional[str] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    stop: Optional[List[str]] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    functions: Set[str] = Field(default_factory=set)
    tool_callbacks: List[ToolCallback] = Field(default_factory=list)

    def copy(self: OptionsT) -> OptionsT:  # type: ignore[override]
        """Return an independent copy; tool callbacks are shared, not cloned."""
        return merge_options(type(self), self)

    def to_payload(self) -> Dict[str, Any]:
        """Dump the set, non-tool fields for a wire request."""
        return self.model_dump(exclude_none=True, exclude=set(_TOOL_FIELDS))

    @property
    def enabled_tool_names(self) -> Set[str]:
        """Names from ``functions`` plus every prompt-scoped callback."""
        return set(self.functions) | {cb.name for cb in self.tool_callbacks}


def _layer_values(layer: OptionsLayer) -> Dict[str, Any]:
    if layer is None:
        return {}
    if isinstance(layer, ChatOptions):
        return {
            name: getattr(layer, name)
            for name in layer.model_fields_set | _TOOL_FIELDS
        }
    if isinstance(layer, Mapping):
        return dict(layer)
    raise PreconditionError(
        f"Cannot merge options of type {type(layer).__name__}; "
        "expected ChatOptions or a mapping."
    )


def merge_options(target_cls: Type[OptionsT], *layers: OptionsLayer) -> OptionsT:
    """Merge option layers into a new ``target_cls`` instance.

    Layers are given lowest precedence first; a later non-``None`` value
    wins. Enabled tool names are unioned across layers and tool callbacks are
    de-duplicated by name (later layer wins). Fields ``target_cls`` does not
    declare are dropped. No layer is mutated.

    Raises:
        PreconditionError: If a layer is not options/mapping, or the merged
            values do not validate against ``target_cls``.
    """
    if not (isinstance(target_cls, type) and issubclass(target_cls, ChatOptions)):
        raise PreconditionError(f"{target_cls!r} is not a ChatOptions subclass.")

    known = set(target_cls.model_fields)
    merged: Dict[str, Any] = {}
    functions: Set[str] = set()
    callbacks: Dict[str, ToolCallback] = {}

    for layer in layers:
        values = _layer_values(layer)
        for name, value in values.items():
            if name == "functions":
                functions.update(value or ())
            elif name == "tool_callbacks":
                for callback in value or ():
                    callbacks[callback.name] = callback
            elif value is None:
                continue
            elif name not in known:
                logger.debug(
                    "Dropping option '%s' not supported by %s",
                    name,
                    target_cls.__name__,
                )
            else:
                merged[name] = _copy.deepcopy(value)

    try:
        return target_cls(
            **merged, functions=functions, tool_callbacks=list(callbacks.values())
        )
    except ValidationError as e:
        raise PreconditionError(
            f"Incompatible options for {target_cls.__name__}: {e}"
        ) from e

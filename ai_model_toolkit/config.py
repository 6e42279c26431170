"""Settings structs and the factory functions that build models from them.

Settings are plain pydantic models; nothing is discovered implicitly. A
process builds its models once at start-up::

    settings = ModelSettings.from_env()
    chat_model = create_chat_model(settings)
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError
from .providers._base import DEFAULT_MAX_TOOL_ROUNDS, BaseChatModel
from .providers._registry import (
    bare_model_name,
    create_chat_model as _create_chat_adapter,
    create_embedding_model as _create_embedding_adapter,
    resolve_provider_key,
)

from .retry import RetryPolicy
from .tools.tool_factory import ToolFactory

module_logger = logging.getLogger(__name__)

ENV_PREFIX = "AI_MODEL_TOOLKIT_"
DEFAULT_PROVIDER = "openai"

_TRUE = frozenset({"1", "true", "yes", "on"})


class ModelSettings(BaseModel):
    """Everything needed to build a chat model and, optionally, an embedding model.

    ``provider`` may be omitted when ``model`` carries a ``provider/`` prefix
    or a recognised bare name (``"claude-..."``, ``"glm-..."``).
    """

    provider: Optional[str] = None
    model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 180.0
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    chat_options: Dict[str, Any] = Field(default_factory=dict)
    max_tool_rounds: int = Field(default=DEFAULT_MAX_TOOL_ROUNDS, ge=0)

    embedding_provider: Optional[str] = None
    embedding_model: Optional[str] = None
    embedding_dimensions: Optional[int] = None
    max_batch_tokens: Optional[int] = None
    max_batch_items: Optional[int] = None

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, prefix: str = ENV_PREFIX
    ) -> "ModelSettings":
        """Read ``AI_MODEL_TOOLKIT_*`` variables (``.env`` is loaded at import).

        Vendor API keys (``OPENAI_API_KEY``, ``ANTHROPIC_API_KEY``, ...) are
        picked up by the adapters when ``API_KEY`` is not set here.

        Raises:
            ConfigurationError: A variable holds an invalid value.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(prefix + name)
            return value if value not in (None, "") else None

        def codes(name: str) -> List[int]:
            raw = get(name)
            if raw is None:
                return []
            try:
                return [int(c) for c in raw.split(",") if c.strip()]
            except ValueError:
                raise ConfigurationError(
                    f"{prefix}{name} must be a comma-separated list of status codes."
                ) from None

        retry: Dict[str, Any] = {
            "max_attempts": get("RETRY_MAX_ATTEMPTS"),
            "initial_interval": get("RETRY_INITIAL_INTERVAL"),
            "multiplier": get("RETRY_MULTIPLIER"),
            "max_interval": get("RETRY_MAX_INTERVAL"),
            "on_http_codes": codes("RETRY_ON_HTTP_CODES"),
            "exclude_on_http_codes": codes("RETRY_EXCLUDE_ON_HTTP_CODES"),
        }
        on_client_errors = get("RETRY_ON_CLIENT_ERRORS")
        if on_client_errors is not None:
            retry["on_client_errors"] = on_client_errors.lower() in _TRUE

        chat_options = {
            "temperature": get("TEMPERATURE"),
            "max_tokens": get("MAX_TOKENS"),
        }
        values: Dict[str, Any] = {
            "provider": get("PROVIDER"),
            "model": get("MODEL"),
            "api_key": get("API_KEY"),
            "base_url": get("BASE_URL"),
            "timeout": get("TIMEOUT"),
            "max_tool_rounds": get("MAX_TOOL_ROUNDS"),
            "embedding_provider": get("EMBEDDING_PROVIDER"),
            "embedding_model": get("EMBEDDING_MODEL"),
            "embedding_dimensions": get("EMBEDDING_DIMENSIONS"),
            "max_batch_tokens": get("MAX_BATCH_TOKENS"),
            "max_batch_items": get("MAX_BATCH_ITEMS"),
            "chat_options": {k: v for k, v in chat_options.items() if v is not None},
        }
        try:
            return cls(
                retry=RetryPolicy(**{k: v for k, v in retry.items() if v is not None}),
                **{k: v for k, v in values.items() if v is not None},
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid {prefix}* settings: {e}") from e

    def resolved_provider(self) -> str:
        if self.provider:
            return self.provider.lower()
        if self.model:
            return resolve_provider_key(self.model)
        return DEFAULT_PROVIDER

    def resolved_embedding_provider(self) -> str:
        if self.embedding_provider:
            return self.embedding_provider.lower()
        if self.embedding_model:
            return resolve_provider_key(self.embedding_model)
        return self.resolved_provider()


def create_chat_model(
    settings: Optional[ModelSettings] = None,
    tool_factory: Optional[ToolFactory] = None,
) -> BaseChatModel:
    """Build the chat model adapter selected by *settings*."""
    settings = settings or ModelSettings()
    provider = settings.resolved_provider()
    default_options = dict(settings.chat_options)
    if settings.model:
        default_options["model"] = bare_model_name(settings.model)

    module_logger.info(
        "Building chat model for provider '%s' (model: %s)",
        provider,
        default_options.get("model", "<default>"),
    )
    return _create_chat_adapter(
        provider,
        api_key=settings.api_key,
        base_url=settings.base_url,
        default_options=default_options,
        tool_factory=tool_factory,
        retry_policy=settings.retry,
        timeout=settings.timeout,
        max_tool_rounds=settings.max_tool_rounds,
    )


def create_embedding_model(settings: Optional[ModelSettings] = None) -> Any:
    """Build the embedding model adapter selected by *settings*."""
    settings = settings or ModelSettings()
    provider = settings.resolved_embedding_provider()
    default_options: Dict[str, Any] = {}
    if settings.embedding_model:
        default_options["model"] = bare_model_name(settings.embedding_model)
    if settings.embedding_dimensions:
        default_options["dimensions"] = settings.embedding_dimensions

    same_provider = provider == settings.resolved_provider()
    return _create_embedding_adapter(
        provider,
        api_key=settings.api_key if same_provider else None,
        base_url=settings.base_url if same_provider else None,
        default_options=default_options,
        retry_policy=settings.retry,
        timeout=settings.timeout,
        max_batch_tokens=settings.max_batch_tokens,
        max_batch_items=settings.max_batch_items,
    )

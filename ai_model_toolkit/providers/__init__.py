from ._base import (
    BaseChatModel,
    ProviderChoice,
    ProviderCompletion,
    StreamSession,
    ToolCallDelta,
)
from ._registry import (
    PROVIDERS,
    chat_model_class,
    create_chat_model,
    create_embedding_model,
    embedding_model_class,
    resolve_provider_key,
)

__all__ = [
    "BaseChatModel",
    "ProviderChoice",
    "ProviderCompletion",
    "StreamSession",
    "ToolCallDelta",
    "PROVIDERS",
    "chat_model_class",
    "create_chat_model",
    "create_embedding_model",
    "embedding_model_class",
    "resolve_provider_key",
]

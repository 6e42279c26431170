# ai_model_toolkit/ai_model_toolkit/__init__.py
import logging
import os

from dotenv import load_dotenv

# Library code only logs; applications configure handlers.
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Load .env from the working directory so vendor API keys are available
# before any model is built.
dotenv_path = os.path.join(os.getcwd(), ".env")
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)


# Expose key components for easy import
from .client import ChatClient  # noqa: E402
from .config import (  # noqa: E402
    ModelSettings,
    create_chat_model,
    create_embedding_model,
)
from .documents import Document, MetadataMode  # noqa: E402
from .embeddings import (  # noqa: E402
    BaseEmbeddingModel,
    Embedding,
    EmbeddingOptions,
    EmbeddingRequest,
    EmbeddingResponse,
)
from .exceptions import (  # noqa: E402
    ConfigurationError,
    FilterExpressionError,
    ModelToolkitError,
    NonTransientError,
    PreconditionError,
    ProviderError,
    RetryExhaustedError,
    ToolError,
    ToolLoopLimitError,
    TransientError,
    UnsupportedFeatureError,
)
from .messages import (  # noqa: E402
    AssistantMessage,
    Media,
    Message,
    MessageType,
    Prompt,
    SystemMessage,
    ToolCall,
    ToolResponse,
    ToolResponseMessage,
    UserMessage,
)
from .models import ModelInfo, get_model_info, list_models  # noqa: E402
from .options import ChatOptions, merge_options  # noqa: E402
from .providers import BaseChatModel, resolve_provider_key  # noqa: E402
from .responses import ChatResponse, Generation, Usage  # noqa: E402
from .retry import RetryPolicy  # noqa: E402
from .tools import BaseTool, ToolCallback, ToolFactory  # noqa: E402
from .vectorstores import SearchRequest, SimpleVectorStore, VectorStore  # noqa: E402

__all__ = [
    "ChatClient",
    "ModelSettings",
    "RetryPolicy",
    "create_chat_model",
    "create_embedding_model",
    "Document",
    "MetadataMode",
    "BaseEmbeddingModel",
    "Embedding",
    "EmbeddingOptions",
    "EmbeddingRequest",
    "EmbeddingResponse",
    "ModelToolkitError",
    "ConfigurationError",
    "FilterExpressionError",
    "NonTransientError",
    "PreconditionError",
    "ProviderError",
    "RetryExhaustedError",
    "ToolError",
    "ToolLoopLimitError",
    "TransientError",
    "UnsupportedFeatureError",
    "AssistantMessage",
    "Media",
    "Message",
    "MessageType",
    "Prompt",
    "SystemMessage",
    "ToolCall",
    "ToolResponse",
    "ToolResponseMessage",
    "UserMessage",
    "ModelInfo",
    "get_model_info",
    "list_models",
    "ChatOptions",
    "merge_options",
    "BaseChatModel",
    "resolve_provider_key",
    "ChatResponse",
    "Generation",
    "Usage",
    "BaseTool",
    "ToolCallback",
    "ToolFactory",
    "SearchRequest",
    "SimpleVectorStore",
    "VectorStore",
]

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("ai_model_toolkit")
except PackageNotFoundError:
    __version__ = "0.0.0-unknown"

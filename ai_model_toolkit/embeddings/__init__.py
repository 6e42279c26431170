from ._base import BaseEmbeddingModel, estimate_tokens
from .models import (
    Embedding,
    EmbeddingOptions,
    EmbeddingRequest,
    EmbeddingResponse,
    EmbeddingResponseMetadata,
)

__all__ = [
    "BaseEmbeddingModel",
    "estimate_tokens",
    "Embedding",
    "EmbeddingOptions",
    "EmbeddingRequest",
    "EmbeddingResponse",
    "EmbeddingResponseMetadata",
]

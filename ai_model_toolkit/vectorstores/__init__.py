from . import filters
from .base import SearchRequest, VectorStore
from .filters import Expression, ExpressionType, Group, Key, Value
from .simple import DISTANCE_FIELD_NAME, SimpleVectorStore, cosine_similarity

__all__ = [
    "VectorStore",
    "SearchRequest",
    "SimpleVectorStore",
    "DISTANCE_FIELD_NAME",
    "cosine_similarity",
    "filters",
    "Expression",
    "ExpressionType",
    "Group",
    "Key",
    "Value",
]

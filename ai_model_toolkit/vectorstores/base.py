"""Vendor-neutral vector store interface."""

from __future__ import annotations

import abc
from typing import Any, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from ..documents import Document
from .filters import Filter, to_filter


class SearchRequest(BaseModel):
    """A similarity search.

    Attributes:
        query: Text whose embedding is compared with the stored documents.
        top_k: Maximum number of documents returned.
        similarity_threshold: Minimum similarity (0 accepts everything,
            1 only exact matches).
        filter_expression: Metadata filter, parsed or as text
            (``"genre == 'drama' && year >= 2020"``).
    """

    query: str
    top_k: int = Field(default=4, ge=0)
    similarity_threshold: float = Field(default=0.0, ge=0.0, le=1.0)
    filter_expression: Any = None

    def parsed_filter(self) -> Optional[Filter]:
        """The filter as an expression tree, or ``None`` when unfiltered.

        Raises:
            FilterExpressionError: A text filter does not parse.
        """
        return to_filter(self.filter_expression)


class VectorStore(abc.ABC):
    """Stores documents with their embeddings and finds the closest ones.

    Example::

        store = SimpleVectorStore(embedding_model)
        await store.add(documents)
        hits = await store.similarity_search(
            SearchRequest(query="space operas", top_k=3, filter_expression="year >= 2020")
        )
    """

    @abc.abstractmethod
    async def add(self, documents: Sequence[Document]) -> None:
        """Embed (where needed) and store *documents*, replacing equal ids."""

    @abc.abstractmethod
    async def delete(self, ids: Sequence[str]) -> bool:
        """Remove the documents with *ids*; ``True`` if any was removed."""

    @abc.abstractmethod
    async def _search(self, request: SearchRequest) -> List[Document]:
        """Run a normalised search request."""

    async def similarity_search(
        self, request: Union[SearchRequest, str]
    ) -> List[Document]:
        """Documents most similar to the query, most similar first.

        A plain string is searched with the default ``top_k`` and no filter.
        Each returned document carries its ``distance`` in metadata.
        """
        if isinstance(request, str):
            request = SearchRequest(query=request)
        return await self._search(request)

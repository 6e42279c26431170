"""In-memory vector store with JSON persistence."""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Dict, List, Sequence, Union

from ..documents import Document
from ..embeddings._base import BaseEmbeddingModel
from ..exceptions import PreconditionError, ProviderError
from .base import SearchRequest, VectorStore
from .filters import evaluate

logger = logging.getLogger(__name__)

DISTANCE_FIELD_NAME = "distance"


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between *a* and *b*.

    Raises:
        PreconditionError: The vectors differ in length or one has zero norm.
    """
    if len(a) != len(b):
        raise PreconditionError(
            f"Vectors must have the same length ({len(a)} != {len(b)})."
        )
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        raise PreconditionError("Cosine similarity is undefined for zero vectors.")
    return dot / norm


class SimpleVectorStore(VectorStore):
    """Keeps documents in a dict and ranks them by cosine similarity.

    Suitable for tests and small corpora; every search scans all documents.
    """

    def __init__(self, embedding_model: BaseEmbeddingModel) -> None:
        self.embedding_model = embedding_model
        self.store: Dict[str, Document] = {}

    async def add(self, documents: Sequence[Document]) -> None:
        pending = [d for d in documents if d.embedding is None]
        if pending:
            vectors = await self.embedding_model.embed_documents(pending)
            if len(vectors) != len(pending):
                raise ProviderError(
                    f"Embedding model returned {len(vectors)} vector(s) for "
                    f"{len(pending)} document(s); nothing was added."
                )
            embedded = {
                d.id: d.model_copy(update={"embedding": v})
                for d, v in zip(pending, vectors)
            }
        else:
            embedded = {}
        for document in documents:
            self.store[document.id] = embedded.get(document.id) or document.model_copy(
                deep=True
            )
        logger.debug(
            "Added %d document(s) (%d embedded); store holds %d",
            len(documents),
            len(pending),
            len(self.store),
        )

    async def delete(self, ids: Sequence[str]) -> bool:
        removed = [doc_id for doc_id in ids if self.store.pop(doc_id, None) is not None]
        return bool(removed)

    async def _search(self, request: SearchRequest) -> List[Document]:
        expression = request.parsed_filter()
        if request.top_k == 0 or not self.store:
            return []
        query = await self.embedding_model.embed(request.query)

        scored = []
        for document in self.store.values():
            if document.embedding is None:
                continue
            if expression is not None and not evaluate(expression, document.metadata):
                continue
            similarity = cosine_similarity(query, document.embedding)
            if similarity >= request.similarity_threshold:
                scored.append((similarity, document))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        results = []
        for similarity, document in scored[: request.top_k]:
            metadata = dict(document.metadata)
            metadata[DISTANCE_FIELD_NAME] = 1.0 - similarity
            results.append(document.model_copy(update={"metadata": metadata}))
        return results

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: Union[str, Path]) -> None:
        """Write every document, embedding included, to *path* as JSON."""
        payload = {
            doc_id: document.model_dump(mode="json")
            for doc_id, document in self.store.items()
        }
        Path(path).write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logger.info("Saved %d document(s) to %s", len(payload), path)

    def load(self, path: Union[str, Path]) -> None:
        """Replace the store's contents with the documents saved at *path*."""
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        self.store = {
            doc_id: Document.model_validate(data) for doc_id, data in payload.items()
        }
        logger.info("Loaded %d document(s) from %s", len(self.store), path)

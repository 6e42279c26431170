"""Unit tests for SimpleVectorStore: ranking, thresholds, metadata filters,
deletion and JSON persistence."""

from __future__ import annotations

from typing import Any, Dict, List

import pytest
import pytest_asyncio

from ai_model_toolkit.documents import Document
from ai_model_toolkit.embeddings import (
    BaseEmbeddingModel,
    Embedding,
    EmbeddingOptions,
    EmbeddingResponse,
)
from ai_model_toolkit.exceptions import (
    FilterExpressionError,
    PreconditionError,
    ProviderError,
)
from ai_model_toolkit.vectorstores import (
    DISTANCE_FIELD_NAME,
    SearchRequest,
    SimpleVectorStore,
    cosine_similarity,
)
from ai_model_toolkit.vectorstores import filters as f

pytestmark = pytest.mark.asyncio

_VECTORS = {
    "cat": [1.0, 0.0, 0.0],
    "dog": [0.0, 1.0, 0.0],
}


class _KeywordEmbeddingModel(BaseEmbeddingModel):
    """Looks texts up in a fixed table; unknown texts point along z."""

    DEFAULT_MODEL = "keyword-embed"

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.embedded: List[str] = []

    def _build_request(self, inputs: List[str], options: EmbeddingOptions) -> Dict[str, Any]:
        return {"input": inputs}

    async def _call_api(self, request: Dict[str, Any]) -> Any:
        self.embedded.extend(request["input"])
        return request["input"]

    def _to_response(self, raw: Any) -> EmbeddingResponse:
        return EmbeddingResponse(
            results=[
                Embedding(output=_VECTORS.get(text, [0.0, 0.0, 1.0]), index=i)
                for i, text in enumerate(raw)
            ]
        )


class _EmptyFirstEmbeddingModel(_KeywordEmbeddingModel):
    """Returns no body for the first request, then behaves normally."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.calls = 0

    async def _call_api(self, request: Dict[str, Any]) -> Any:
        self.calls += 1
        if self.calls == 1:
            return None
        return await super()._call_api(request)


def _corpus() -> List[Document]:
    return [
        Document(
            id="a",
            content="A cat story",
            metadata={"genre": "drama", "year": 2021},
            embedding=[1.0, 0.0, 0.0],
        ),
        Document(
            id="b",
            content="A cat and a dog",
            metadata={"genre": "comedy", "year": 2019},
            embedding=[0.8, 0.6, 0.0],
        ),
        Document(
            id="c",
            content="A dog story",
            metadata={"genre": "drama", "year": 2010},
            embedding=[0.0, 1.0, 0.0],
        ),
    ]


@pytest.fixture
def embedding_model() -> _KeywordEmbeddingModel:
    return _KeywordEmbeddingModel()


@pytest_asyncio.fixture
async def store(embedding_model: _KeywordEmbeddingModel) -> SimpleVectorStore:
    vector_store = SimpleVectorStore(embedding_model)
    await vector_store.add(_corpus())
    return vector_store


class TestCosineSimilarity:
    def test_values(self) -> None:
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == 1.0
        assert cosine_similarity([1.0, 0.0], [0.0, 2.0]) == 0.0
        assert cosine_similarity([1.0, 0.0], [-3.0, 0.0]) == -1.0

    def test_length_mismatch(self) -> None:
        with pytest.raises(PreconditionError, match="same length"):
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])

    def test_zero_vector(self) -> None:
        with pytest.raises(PreconditionError):
            cosine_similarity([0.0, 0.0], [1.0, 0.0])


class TestAdd:
    async def test_missing_embeddings_are_computed(
        self, embedding_model: _KeywordEmbeddingModel
    ) -> None:
        vector_store = SimpleVectorStore(embedding_model)
        document = Document(id="x", content="dog")

        await vector_store.add([document])

        assert vector_store.store["x"].embedding == [0.0, 1.0, 0.0]
        assert document.embedding is None
        assert embedding_model.embedded == ["dog"]

    async def test_existing_embeddings_are_kept(
        self, store: SimpleVectorStore, embedding_model: _KeywordEmbeddingModel
    ) -> None:
        assert embedding_model.embedded == []
        assert store.store["b"].embedding == [0.8, 0.6, 0.0]

    async def test_same_id_replaces(self, store: SimpleVectorStore) -> None:
        await store.add(
            [Document(id="a", content="Replaced", embedding=[1.0, 0.0, 0.0])]
        )
        assert len(store.store) == 3
        assert store.store["a"].content == "Replaced"

    async def test_missing_vectors_add_nothing(self) -> None:
        vector_store = SimpleVectorStore(_EmptyFirstEmbeddingModel())

        with pytest.raises(ProviderError, match=r"0 vector\(s\) for 1 document"):
            await vector_store.add([Document(id="x", content="cat")])

        assert vector_store.store == {}
        await vector_store.add([Document(id="y", content="dog")])
        results = await vector_store.similarity_search("dog")
        assert [d.id for d in results] == ["y"]


class TestSearch:
    async def test_most_similar_first(self, store: SimpleVectorStore) -> None:
        hits = await store.similarity_search(SearchRequest(query="cat", top_k=2))

        assert [d.id for d in hits] == ["a", "b"]
        assert hits[0].metadata[DISTANCE_FIELD_NAME] == 0.0
        assert hits[1].metadata[DISTANCE_FIELD_NAME] == pytest.approx(0.2)

    async def test_distance_not_written_to_store(self, store: SimpleVectorStore) -> None:
        await store.similarity_search("cat")
        assert DISTANCE_FIELD_NAME not in store.store["a"].metadata

    async def test_plain_string_query(self, store: SimpleVectorStore) -> None:
        hits = await store.similarity_search("dog")
        assert [d.id for d in hits] == ["c", "b", "a"]

    async def test_similarity_threshold(self, store: SimpleVectorStore) -> None:
        hits = await store.similarity_search(
            SearchRequest(query="cat", similarity_threshold=0.5)
        )
        assert [d.id for d in hits] == ["a", "b"]

    async def test_threshold_is_inclusive(self, store: SimpleVectorStore) -> None:
        hits = await store.similarity_search(
            SearchRequest(query="cat", similarity_threshold=1.0)
        )
        assert [d.id for d in hits] == ["a"]

    async def test_text_filter(self, store: SimpleVectorStore) -> None:
        hits = await store.similarity_search(
            SearchRequest(query="cat", filter_expression="genre == 'drama'")
        )
        assert [d.id for d in hits] == ["a", "c"]

    async def test_parsed_filter(self, store: SimpleVectorStore) -> None:
        request = SearchRequest(
            query="dog",
            filter_expression=f.and_(f.eq("genre", "drama"), f.gte("year", 2020)),
        )
        hits = await store.similarity_search(request)
        assert [d.id for d in hits] == ["a"]

    async def test_invalid_filter_raises_before_embedding(
        self, store: SimpleVectorStore, embedding_model: _KeywordEmbeddingModel
    ) -> None:
        with pytest.raises(FilterExpressionError):
            await store.similarity_search(
                SearchRequest(query="cat", filter_expression="genre ==")
            )
        assert embedding_model.embedded == []

    async def test_zero_top_k(
        self, store: SimpleVectorStore, embedding_model: _KeywordEmbeddingModel
    ) -> None:
        assert await store.similarity_search(SearchRequest(query="cat", top_k=0)) == []
        assert embedding_model.embedded == []

    async def test_empty_store(self, embedding_model: _KeywordEmbeddingModel) -> None:
        assert await SimpleVectorStore(embedding_model).similarity_search("cat") == []

    def test_request_validation(self) -> None:
        with pytest.raises(ValueError):
            SearchRequest(query="q", similarity_threshold=1.5)
        with pytest.raises(ValueError):
            SearchRequest(query="q", top_k=-1)


    async def test_documents_without_embedding_are_skipped(
        self, store: SimpleVectorStore
    ) -> None:
        store.store["z"] = Document(id="z", content="unembedded")

        results = await store.similarity_search(SearchRequest(query="cat", top_k=10))

        assert "z" not in [d.id for d in results]
        assert len(results) == 3


class TestDelete:
    async def test_delete_reports_removal(self, store: SimpleVectorStore) -> None:
        assert await store.delete(["a", "missing"]) is True
        assert await store.delete(["a"]) is False
        assert sorted(store.store) == ["b", "c"]


class TestPersistence:
    async def test_save_and_load(
        self,
        store: SimpleVectorStore,
        embedding_model: _KeywordEmbeddingModel,
        tmp_path: Any,
    ) -> None:
        path = tmp_path / "store.json"
        store.save(path)

        restored = SimpleVectorStore(embedding_model)
        restored.load(path)

        assert restored.store == store.store
        hits = await restored.similarity_search(SearchRequest(query="cat", top_k=1))
        assert hits[0].id == "a"

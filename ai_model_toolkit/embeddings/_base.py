"""BaseEmbeddingModel ABC: batching, batch ceilings, retry and dimensions."""

from __future__ import annotations

import abc
import logging
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Type, Union

from ..documents import Document, MetadataMode
from ..exceptions import PreconditionError
from ..models import get_model_info
from ..retry import RetryPolicy, RetrySupport
from .models import EmbeddingOptions, EmbeddingRequest, EmbeddingResponse

logger = logging.getLogger(__name__)

# Rough token estimate used for batch ceilings.
_CHARS_PER_TOKEN = 4

_PROBE_TEXT = "Hello World"


def estimate_tokens(text: str) -> int:
    """Approximate token count of *text* (4 characters per token, minimum 1)."""
    return max(1, -(-len(text) // _CHARS_PER_TOKEN))


class BaseEmbeddingModel(RetrySupport, abc.ABC):
    """Abstract base for embedding model adapters.

    Subclasses map a batch of texts to a vendor request, submit it, and map
    the vendor response; this class enforces the batch ceilings, merges
    options, applies the retry policy and splits documents into batches.
    """

    OPTIONS_CLASS: ClassVar[Type[EmbeddingOptions]] = EmbeddingOptions
    DEFAULT_MODEL: ClassVar[Optional[str]] = None
    API_ENV_VAR: ClassVar[Optional[str]] = None
    DEFAULT_MAX_BATCH_TOKENS: ClassVar[int] = 8191
    DEFAULT_MAX_BATCH_ITEMS: ClassVar[int] = 2048

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        default_options: Union[EmbeddingOptions, Dict[str, Any], None] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 180.0,
        metadata_mode: MetadataMode = MetadataMode.EMBED,
        max_batch_tokens: Optional[int] = None,
        max_batch_items: Optional[int] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.metadata_mode = metadata_mode
        self.max_batch_tokens = max_batch_tokens or self.DEFAULT_MAX_BATCH_TOKENS
        self.max_batch_items = max_batch_items or self.DEFAULT_MAX_BATCH_ITEMS
        self._default_options = self._merge(
            self.OPTIONS_CLASS(model=self.DEFAULT_MODEL), default_options
        )
        self._dimensions: Optional[int] = None

    @property
    def default_options(self) -> EmbeddingOptions:
        return self._default_options.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Capability interface: every adapter implements these
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def _build_request(
        self, inputs: List[str], options: EmbeddingOptions
    ) -> Dict[str, Any]:
        """Map a batch of texts and merged options to a vendor request."""

    @abc.abstractmethod
    async def _call_api(self, request: Dict[str, Any]) -> Any:
        """Submit *request* once and return the raw vendor response."""

    @abc.abstractmethod
    def _to_response(self, raw: Any) -> EmbeddingResponse:
        """Map a raw vendor response."""

    # ------------------------------------------------------------------
    # Options and ceilings
    # ------------------------------------------------------------------

    def _merge(
        self,
        base: EmbeddingOptions,
        override: Union[EmbeddingOptions, Dict[str, Any], None],
    ) -> EmbeddingOptions:
        if override is None:
            return base
        if isinstance(override, EmbeddingOptions):
            values = override.model_dump(exclude_none=True)
        elif isinstance(override, dict):
            values = {k: v for k, v in override.items() if v is not None}
        else:
            raise PreconditionError(
                f"Cannot merge embedding options of type {type(override).__name__}."
            )
        merged = base.model_dump(exclude_none=True)
        merged.update(values)
        return self.OPTIONS_CLASS(
            **{k: v for k, v in merged.items() if k in self.OPTIONS_CLASS.model_fields}
        )

    def check_batch(self, inputs: Sequence[str]) -> None:
        """Raise :class:`PreconditionError` if *inputs* break the batch ceilings."""
        if not inputs:
            raise PreconditionError("Embedding request must contain at least one input.")
        if len(inputs) > self.max_batch_items:
            raise PreconditionError(
                f"Embedding batch of {len(inputs)} inputs exceeds the limit of "
                f"{self.max_batch_items}."
            )
        tokens = sum(estimate_tokens(text) for text in inputs)
        if tokens > self.max_batch_tokens:
            raise PreconditionError(
                f"Embedding batch of ~{tokens} tokens exceeds the limit of "
                f"{self.max_batch_tokens}."
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def call(self, request: EmbeddingRequest) -> EmbeddingResponse:
        """Embed one batch.

        The batch ceilings are checked before any provider call; a violation
        raises :class:`PreconditionError` and is never retried.
        """
        self.check_batch(request.inputs)
        options = self._merge(self._default_options, request.options)
        payload = self._build_request(list(request.inputs), options)

        raw = await self._with_retry(lambda: self._call_api(payload), "embedding")
        if raw is None:
            logger.warning(
                "No embeddings returned for request of %d input(s)",
                len(request.inputs),
            )
            return EmbeddingResponse()
        return self._to_response(raw)

    async def embed(self, text: str) -> List[float]:
        response = await self.call(EmbeddingRequest(inputs=[text]))
        return response.result.output if response.result else []

    async def embed_all(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        response = await self.call(EmbeddingRequest(inputs=list(texts)))
        return [e.output for e in sorted(response.results, key=lambda e: e.index)]

    async def embed_document(self, document: Document) -> List[float]:
        return await self.embed(document.formatted_content(self.metadata_mode))

    def batch_documents(self, documents: Sequence[Document]) -> List[List[Document]]:
        """Split *documents* into batches that respect both ceilings.

        Raises:
            PreconditionError: A single document exceeds the token ceiling.
        """
        batches: List[List[Document]] = []
        current: List[Document] = []
        current_tokens = 0
        for document in documents:
            tokens = estimate_tokens(document.formatted_content(self.metadata_mode))
            if tokens > self.max_batch_tokens:
                raise PreconditionError(
                    f"Document {document.id} has ~{tokens} tokens, more than the "
                    f"batch limit of {self.max_batch_tokens}."
                )
            if current and (
                current_tokens + tokens > self.max_batch_tokens
                or len(current) >= self.max_batch_items
            ):
                batches.append(current)
                current, current_tokens = [], 0
            current.append(document)
            current_tokens += tokens
        if current:
            batches.append(current)
        return batches

    async def embed_documents(self, documents: Sequence[Document]) -> List[List[float]]:
        """Embed *documents* in as few ceiling-respecting batches as possible.

        Vectors are returned in document order.
        """
        vectors: List[List[float]] = []
        for batch in self.batch_documents(documents):
            texts = [d.formatted_content(self.metadata_mode) for d in batch]
            vectors.extend(await self.embed_all(texts))
        return vectors

    async def dimensions(self) -> int:
        """Vector length of the configured model, from the catalog or a probe call."""
        if self._dimensions is None:
            model = self._default_options.model
            info = get_model_info(model) if model else None
            if self._default_options.dimensions:
                self._dimensions = self._default_options.dimensions
            elif info is not None and info.dimensions:
                self._dimensions = info.dimensions
            else:
                logger.debug("Probing embedding dimensions for model %s", model)
                self._dimensions = len(await self.embed(_PROBE_TEXT))
        return self._dimensions

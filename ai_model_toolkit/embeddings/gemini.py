"""Google Gemini embeddings adapter using the google-genai SDK."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..providers.gemini import create_genai_client
from ._base import BaseEmbeddingModel
from .models import (
    Embedding,
    EmbeddingOptions,
    EmbeddingResponse,
    EmbeddingResponseMetadata,
)

logger = logging.getLogger(__name__)


class GeminiEmbeddingModel(BaseEmbeddingModel):
    """Embedding model for Google Gemini."""

    DEFAULT_MODEL = "text-embedding-004"
    API_ENV_VAR = "GOOGLE_API_KEY"
    DEFAULT_MAX_BATCH_ITEMS = 100

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._client: Any = None  # Lazy-created

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = create_genai_client(self)
        return self._client

    def _status_code(self, error: Exception) -> Optional[int]:
        code = getattr(error, "code", None)
        if isinstance(code, int):
            return code
        return super()._status_code(error)

    def _build_request(
        self, inputs: List[str], options: EmbeddingOptions
    ) -> Dict[str, Any]:
        from google.genai import types

        config_args: Dict[str, Any] = {}
        if options.dimensions:
            config_args["output_dimensionality"] = options.dimensions
        for unsupported in ("encoding_format", "user"):
            if getattr(options, unsupported) is not None:
                logger.debug("Dropping unsupported param for Gemini: %s", unsupported)
        return {
            "model": options.model,
            "contents": inputs,
            "config": types.EmbedContentConfig(**config_args),
        }

    async def _call_api(self, request: Dict[str, Any]) -> Any:
        return await self._get_client().aio.models.embed_content(**request)

    def _to_response(self, raw: Any) -> EmbeddingResponse:
        embeddings = [
            Embedding(output=list(item.values or []), index=i)
            for i, item in enumerate(getattr(raw, "embeddings", None) or [])
        ]
        return EmbeddingResponse(
            results=embeddings,
            metadata=EmbeddingResponseMetadata(model=self._default_options.model),
        )

"""OpenAI-compatible embeddings adapters (OpenAI, MiniMax, ZhiPu, Mistral, Ollama)."""

from __future__ import annotations

import array
import base64
import logging
from typing import Any, ClassVar, Dict, List, Optional

from ..providers.minimax import MiniMaxChatModel
from ..providers.mistral import MistralChatModel
from ..providers.ollama import OllamaChatModel
from ..providers.openai import create_async_openai, is_openai_transport_error
from ..providers.zhipuai import ZhiPuAiChatModel
from ..responses import Usage
from ._base import BaseEmbeddingModel
from .models import (
    Embedding,
    EmbeddingOptions,
    EmbeddingResponse,
    EmbeddingResponseMetadata,
)

logger = logging.getLogger(__name__)


def _decode_vector(value: Any) -> List[float]:
    # encoding_format="base64" returns little-endian float32 bytes.
    if isinstance(value, str):
        return array.array("f", base64.b64decode(value)).tolist()
    return list(value)


class OpenAIEmbeddingModel(BaseEmbeddingModel):
    """Embedding model for OpenAI and OpenAI-compatible ``/embeddings`` endpoints."""

    DEFAULT_MODEL = "text-embedding-3-small"
    API_ENV_VAR = "OPENAI_API_KEY"
    DEFAULT_BASE_URL: ClassVar[Optional[str]] = None
    REQUIRES_API_KEY: ClassVar[bool] = True

    def __init__(self, *, base_url: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(base_url=base_url or self.DEFAULT_BASE_URL, **kwargs)
        self._async_client: Any = None  # Lazy-created

    def _get_client(self) -> Any:
        if self._async_client is None:
            self._async_client = create_async_openai(self)
        return self._async_client

    def _is_transport_error(self, error: Exception) -> bool:
        return is_openai_transport_error(error)

    def _build_request(
        self, inputs: List[str], options: EmbeddingOptions
    ) -> Dict[str, Any]:
        request: Dict[str, Any] = {"input": inputs}
        request.update(options.model_dump(exclude_none=True))
        return request

    async def _call_api(self, request: Dict[str, Any]) -> Any:
        return await self._get_client().embeddings.create(**request)

    def _to_response(self, raw: Any) -> EmbeddingResponse:
        data = getattr(raw, "data", None) or []
        embeddings = [
            Embedding(
                output=_decode_vector(item.embedding),
                index=getattr(item, "index", i),
            )
            for i, item in enumerate(data)
        ]
        usage = getattr(raw, "usage", None)
        return EmbeddingResponse(
            results=embeddings,
            metadata=EmbeddingResponseMetadata(
                model=getattr(raw, "model", None),
                usage=Usage(
                    prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                    total_tokens=getattr(usage, "total_tokens", 0) or 0,
                )
                if usage is not None
                else None,
            ),
        )


class MiniMaxEmbeddingModel(OpenAIEmbeddingModel):
    DEFAULT_MODEL = "embo-01"
    API_ENV_VAR = MiniMaxChatModel.API_ENV_VAR
    DEFAULT_BASE_URL = MiniMaxChatModel.DEFAULT_BASE_URL


class ZhiPuAiEmbeddingModel(OpenAIEmbeddingModel):
    DEFAULT_MODEL = "embedding-2"
    API_ENV_VAR = ZhiPuAiChatModel.API_ENV_VAR
    DEFAULT_BASE_URL = ZhiPuAiChatModel.DEFAULT_BASE_URL
    # ZhiPu embeds one text per request.
    DEFAULT_MAX_BATCH_ITEMS = 1


class MistralEmbeddingModel(OpenAIEmbeddingModel):
    DEFAULT_MODEL = "mistral-embed"
    API_ENV_VAR = MistralChatModel.API_ENV_VAR
    DEFAULT_BASE_URL = MistralChatModel.DEFAULT_BASE_URL


class OllamaEmbeddingModel(OpenAIEmbeddingModel):
    DEFAULT_MODEL = "nomic-embed-text"
    API_ENV_VAR = OllamaChatModel.API_ENV_VAR
    DEFAULT_BASE_URL = OllamaChatModel.DEFAULT_BASE_URL
    REQUIRES_API_KEY = False

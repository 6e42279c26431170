from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..responses import Usage


class EmbeddingOptions(BaseModel):
    """Portable embedding options. ``None`` means "let the provider decide"."""

    model_config = ConfigDict(extra="forbid")

    model: Optional[str] = None
    dimensions: Optional[int] = None
    encoding_format: Optional[str] = None
    user: Optional[str] = None


class EmbeddingRequest(BaseModel):
    inputs: List[str]
    options: Optional[EmbeddingOptions] = None


class Embedding(BaseModel):
    output: List[float]
    index: int


class EmbeddingResponseMetadata(BaseModel):
    model: Optional[str] = None
    usage: Optional[Usage] = None


class EmbeddingResponse(BaseModel):
    results: List[Embedding] = Field(default_factory=list)
    metadata: EmbeddingResponseMetadata = Field(
        default_factory=EmbeddingResponseMetadata
    )

    @property
    def result(self) -> Optional[Embedding]:
        return self.results[0] if self.results else None

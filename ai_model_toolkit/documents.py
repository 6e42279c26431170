"""Documents embedded by embedding models and stored by vector stores."""

from __future__ import annotations

import enum
import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

_TEXT_TEMPLATE = "{metadata}\n\n{content}"


class MetadataMode(str, enum.Enum):
    """Which metadata entries accompany the content when it is formatted."""

    ALL = "all"
    EMBED = "embed"
    INFERENCE = "inference"
    NONE = "none"


class Document(BaseModel):
    """A piece of text plus metadata, optionally with its embedding."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    embedding: Optional[List[float]] = None
    excluded_embed_metadata_keys: List[str] = Field(default_factory=list)
    excluded_inference_metadata_keys: List[str] = Field(default_factory=list)

    def formatted_content(self, mode: MetadataMode = MetadataMode.ALL) -> str:
        """Content prefixed with ``key: value`` metadata lines allowed by *mode*."""
        if mode is MetadataMode.NONE:
            return self.content
        excluded = set()
        if mode is MetadataMode.EMBED:
            excluded = set(self.excluded_embed_metadata_keys)
        elif mode is MetadataMode.INFERENCE:
            excluded = set(self.excluded_inference_metadata_keys)
        lines = [
            f"{key}: {value}"
            for key, value in self.metadata.items()
            if key not in excluded
        ]
        if not lines:
            return self.content
        return _TEXT_TEMPLATE.format(metadata="\n".join(lines), content=self.content)

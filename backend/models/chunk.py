"""Chunk data models."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import numpy as np

from models.document import DocumentType


@dataclass(frozen=True)
class ChunkMetadata:
    """Provenance of a chunk within its source document."""
    document_id: str
    chunk_index: int
    filename: str
    document_type: DocumentType
    word_count: int
    created_at: datetime
    page_number: Optional[int] = None  # Best-effort proportional estimate


@dataclass(frozen=True)
class Chunk:
    """Represents an embedded document chunk for retrieval."""
    chunk_id: str  # Format: "{document_id}_chunk_{chunk_index}"
    content: str
    embedding: np.ndarray
    metadata: ChunkMetadata
    context_header: Optional[str] = None

    @property
    def document_id(self) -> str:
        return self.metadata.document_id

    @property
    def dimension(self) -> int:
        return int(self.embedding.shape[0])


@dataclass
class SearchResult:
    """Chunk with similarity score and rank from retrieval."""
    chunk: Chunk
    similarity: float
    rank: int = 0

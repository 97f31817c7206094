"""Result models returned by the RAG services."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from models.chunk import SearchResult
from models.document import DocumentType


@dataclass
class EmbeddingFailure:
    """A single text that could not be embedded."""
    index: int
    error: str


@dataclass
class BatchEmbeddingResult:
    """Vectors aligned with the submitted texts; failed positions hold None."""
    vectors: List[Optional[np.ndarray]]
    failures: List[EmbeddingFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for vector in self.vectors if vector is not None)

    @property
    def complete(self) -> bool:
        return not self.failures


@dataclass
class SearchOptions:
    """Filters and limits for a search."""
    document_id: Optional[str] = None
    document_types: Optional[List[DocumentType]] = None
    max_results: int = 5
    min_similarity: float = 0.7

    def __post_init__(self):
        if self.max_results <= 0:
            raise ValueError("max_results must be positive")
        if not -1.0 <= self.min_similarity <= 1.0:
            raise ValueError("min_similarity must be between -1.0 and 1.0")
        if self.document_types:
            self.document_types = [DocumentType.parse(t) for t in self.document_types]


@dataclass
class IndexResult:
    """Outcome of processing one document."""
    success: bool
    document_id: Optional[str]
    chunks_created: int
    processing_time: int  # milliseconds
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class SearchResponse:
    """Outcome of a search over the index."""
    success: bool
    query: str
    results: List[SearchResult]
    total_documents: int
    search_time: int  # milliseconds
    strategy: str = "embedding"
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class IndexStats:
    """Aggregate statistics over the indexed documents."""
    total_documents: int
    total_chunks: int
    document_types: Dict[str, int]
    average_chunks_per_document: float

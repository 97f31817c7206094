"""Data models for the document RAG service."""
from .document import Document, DocumentIndexEntry, DocumentType
from .chunk import Chunk, ChunkMetadata, SearchResult
from .results import (
    BatchEmbeddingResult,
    EmbeddingFailure,
    IndexResult,
    IndexStats,
    SearchOptions,
    SearchResponse,
)

__all__ = [
    "Document",
    "DocumentIndexEntry",
    "DocumentType",
    "Chunk",
    "ChunkMetadata",
    "SearchResult",
    "BatchEmbeddingResult",
    "EmbeddingFailure",
    "IndexResult",
    "IndexStats",
    "SearchOptions",
    "SearchResponse",
]

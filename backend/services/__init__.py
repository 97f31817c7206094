"""Services for the document RAG subsystem."""
from .errors import (
    RAGError,
    ValidationError,
    EmbeddingProviderError,
    DimensionMismatchError,
    OperationCancelledError,
)
from .cancellation import CancellationToken
from .chunking_engine import ChunkingEngine
from .embedding_provider import (
    EmbeddingProvider,
    GeminiEmbeddingProvider,
    HuggingFaceEmbeddingProvider,
    TaskType,
    create_embedding_provider,
)
from .embedding_client import EmbeddingClient
from .vector_index import VectorIndex
from .search_engine import SearchEngine, EmbeddingSearchEngine, KeywordSearchEngine, cosine_similarity
from .rag_coordinator import RagCoordinator

__all__ = ['RAGError', 'ValidationError', 'EmbeddingProviderError', 'DimensionMismatchError', 'OperationCancelledError', 'CancellationToken', 'ChunkingEngine', 'EmbeddingProvider', 'GeminiEmbeddingProvider', 'HuggingFaceEmbeddingProvider', 'TaskType', 'create_embedding_provider', 'EmbeddingClient', 'VectorIndex', 'SearchEngine', 'EmbeddingSearchEngine', 'KeywordSearchEngine', 'cosine_similarity', 'RagCoordinator']

"""Coordinator for document ingestion and retrieval."""
import math
import time
import uuid
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from config import (
    MAX_DOCUMENT_CHARS,
    MAX_RESULTS,
    MIN_SIMILARITY,
    PARTIAL_INGESTION,
    EMBED_WITH_CONTEXT_HEADER,
)
from models.chunk import Chunk, ChunkMetadata, SearchResult
from models.document import Document, DocumentIndexEntry, DocumentType
from models.results import IndexResult, IndexStats, SearchOptions, SearchResponse
from services.cancellation import CancellationToken
from services.chunking_engine import ChunkingEngine
from services.embedding_client import EmbeddingClient
from services.embedding_provider import TaskType
from services.errors import (
    EmbeddingProviderError,
    OperationCancelledError,
    ValidationError,
)
from services.locks import KeyedLock, ReadWriteLock
from services.search_engine import (
    EmbeddingSearchEngine,
    RankingQuery,
    SearchEngine,
    build_filter,
)
from services.vector_index import VectorIndex

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n---\n\n"
SHORT_TEXT_WARNING_CHARS = 100


class RagCoordinator:
    """Owns the document registry and runs the ingestion and query flows.

    Ingestion is all-or-nothing: a document either has every chunk embedded
    and indexed together with its registry entry, or nothing about it is
    left behind. Instances are independent; nothing is shared globally.
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        chunking_engine: Optional[ChunkingEngine] = None,
        vector_index: Optional[VectorIndex] = None,
        search_engine: Optional[SearchEngine] = None,
        fallback_engine: Optional[SearchEngine] = None,
        partial_ingestion: bool = PARTIAL_INGESTION,
        embed_with_context_header: bool = EMBED_WITH_CONTEXT_HEADER,
        max_document_chars: int = MAX_DOCUMENT_CHARS
    ):
        """
        Initialize the coordinator.

        Args:
            embedding_client: Client used for document and query embeddings
            chunking_engine: Splits document text (default settings when None)
            vector_index: Chunk store (a fresh empty index when None)
            search_engine: Primary ranking strategy (embedding similarity when None)
            fallback_engine: Strategy used when the query cannot be embedded
            partial_ingestion: Index the embedded subset instead of failing the document
            embed_with_context_header: Prefix embedded texts with filename and part number
            max_document_chars: Upper bound on document text length
        """
        self.embedding_client = embedding_client
        self.chunking_engine = chunking_engine or ChunkingEngine()
        self.vector_index = vector_index if vector_index is not None else VectorIndex()
        self.search_engine = search_engine or EmbeddingSearchEngine()
        self.fallback_engine = fallback_engine
        self.partial_ingestion = partial_ingestion
        self.embed_with_context_header = embed_with_context_header
        self.max_document_chars = max_document_chars

        self._documents: Dict[str, DocumentIndexEntry] = {}
        self._index_lock = ReadWriteLock()
        self._document_locks = KeyedLock()

        logger.info("Initialized RagCoordinator")

    # Ingestion

    def process(
        self,
        document: Document,
        cancellation: Optional[CancellationToken] = None
    ) -> IndexResult:
        """
        Chunk, embed and index a document.

        Args:
            document: Plain text plus filename/type metadata
            cancellation: Optional token; a cancelled call leaves no index state

        Returns:
            IndexResult with the document id and ingestion statistics
        """
        start_time = time.time()
        token = cancellation or CancellationToken()
        document_id = document.document_id
        warnings: List[str] = []

        try:
            warnings.extend(self._validate(document))
            document_type = DocumentType.parse(document.document_type)
            document_id = document_id or self._generate_document_id()

            with self._document_locks.locked(document_id):
                if document_id in self._documents:
                    raise ValidationError(
                        f"Document {document_id} is already indexed; remove it before re-processing",
                        {"document_id": document_id}
                    )

                token.raise_if_cancelled()
                texts = self.chunking_engine.split(document.text, document_type)
                if not texts:
                    raise ValidationError("No meaningful text chunks could be created from the document.")

                logger.info(f"Processing {len(texts)} chunks for {document.filename}...")

                headers = [self._context_header(document.filename, i, len(texts)) for i in range(len(texts))]
                embedding_inputs = texts
                if self.embed_with_context_header:
                    embedding_inputs = [f"{h}\n{t}" for h, t in zip(headers, texts)]

                batch = self.embedding_client.embed_batch(embedding_inputs, TaskType.DOCUMENT, token)
                warnings.extend(f"Embedding error: {f.error}" for f in batch.failures)
                if batch.succeeded == 0:
                    raise EmbeddingProviderError(
                        "Failed to generate embeddings for document chunks.",
                        details={"failures": [f.error for f in batch.failures]}
                    )
                if batch.failures and not self.partial_ingestion:
                    # A document is indexed with all of its chunks or not at all
                    raise EmbeddingProviderError(
                        f"{len(batch.failures)} of {len(texts)} chunks failed to embed; "
                        "document was not indexed",
                        details={"failures": [f.error for f in batch.failures]}
                    )

                embedded = [
                    (text, header, vector)
                    for text, header, vector in zip(texts, headers, batch.vectors)
                    if vector is not None
                ]
                chunks = self._build_chunks(document_id, document, document_type, embedded)

                token.raise_if_cancelled()
                self._commit(document_id, document, document_type, chunks)

        except (ValidationError, EmbeddingProviderError, OperationCancelledError) as e:
            # DimensionMismatchError and unexpected errors propagate
            logger.warning(f"Document processing failed for {document.filename}: {e.message}")
            return IndexResult(
                success=False,
                document_id=document_id,
                chunks_created=0,
                processing_time=self._elapsed_ms(start_time),
                warnings=warnings,
                error=e.message,
                error_code=e.code
            )

        processing_time = self._elapsed_ms(start_time)
        logger.info(f"Document processed: {len(chunks)} chunks in {processing_time}ms")

        return IndexResult(
            success=True,
            document_id=document_id,
            chunks_created=len(chunks),
            processing_time=processing_time,
            warnings=warnings
        )

    def _validate(self, document: Document) -> List[str]:
        """Reject unusable documents; return non-fatal warnings."""
        if not document.filename or not document.filename.strip():
            raise ValidationError("Document filename is required")

        try:
            DocumentType.parse(document.document_type)
        except ValueError as e:
            raise ValidationError(str(e))

        text = document.text or ""
        if not text.strip():
            raise ValidationError("Document text is empty")
        if len(text.strip()) <= self.chunking_engine.min_chunk_length:
            raise ValidationError(
                f"Document text is too short (must be longer than "
                f"{self.chunking_engine.min_chunk_length} characters)"
            )
        if len(text) > self.max_document_chars:
            raise ValidationError(
                f"Document is too large. Maximum size is {self.max_document_chars} characters."
            )
        if document.total_pages is not None and document.total_pages < 0:
            raise ValidationError("total_pages cannot be negative")

        warnings = []
        if "\ufffd" in text:
            warnings.append("Text may have encoding issues. Some characters might not display correctly.")
        if len(text) < SHORT_TEXT_WARNING_CHARS:
            warnings.append("Document contains very little text content.")
        return warnings

    def _build_chunks(self, document_id, document, document_type, embedded) -> List[Chunk]:
        created_at = datetime.now(timezone.utc)
        total = len(embedded)
        chunks = []
        for index, (text, header, vector) in enumerate(embedded):
            chunks.append(Chunk(
                chunk_id=f"{document_id}_chunk_{index}",
                content=text,
                embedding=vector,
                metadata=ChunkMetadata(
                    document_id=document_id,
                    chunk_index=index,
                    filename=document.filename,
                    document_type=document_type,
                    word_count=len(text.split()),
                    created_at=created_at,
                    page_number=self.estimate_page_number(index, total, document.total_pages)
                ),
                context_header=header if self.embed_with_context_header else None
            ))
        return chunks

    def _commit(self, document_id, document, document_type, chunks) -> None:
        """Insert chunks and register the document as one step for readers."""
        with self._index_lock.write_locked():
            self.vector_index.insert_all(chunks)
            self._documents[document_id] = DocumentIndexEntry(
                document_id=document_id,
                filename=document.filename,
                document_type=document_type,
                total_chunks=len(chunks),
                indexed_at=datetime.now(timezone.utc),
                metadata=document.source_metadata()
            )

    # Query

    def search(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        cancellation: Optional[CancellationToken] = None
    ) -> SearchResponse:
        """
        Find the chunks most relevant to a query.

        Empty or below-threshold result sets are successful searches. Only a
        query that cannot be embedded (with no fallback strategy) fails.

        Args:
            query: Natural language query
            options: Filters and limits (configured defaults when None)
            cancellation: Optional token checked before and after embedding

        Returns:
            SearchResponse with ranked results
        """
        start_time = time.time()
        token = cancellation or CancellationToken()
        options = options or SearchOptions(max_results=MAX_RESULTS, min_similarity=MIN_SIMILARITY)
        engine = self.search_engine
        warnings: List[str] = []

        with self._index_lock.read_locked():
            total_documents = len(self._documents)
            candidates = list(self.vector_index.iterate(
                predicate=build_filter(options),
                document_id=options.document_id
            ))

        try:
            if not query or not query.strip():
                raise ValidationError("Query cannot be empty")
            token.raise_if_cancelled()

            if not candidates:
                warnings.append("No documents match the search criteria.")
                return SearchResponse(
                    success=True,
                    query=query,
                    results=[],
                    total_documents=total_documents,
                    search_time=self._elapsed_ms(start_time),
                    strategy=engine.name,
                    warnings=warnings
                )

            ranking_query = RankingQuery(text=query)
            if engine.requires_embedding:
                try:
                    ranking_query.vector = self.embedding_client.embed_one(query, TaskType.QUERY, token)
                except EmbeddingProviderError as e:
                    if self.fallback_engine is None:
                        raise
                    logger.warning(f"Query embedding failed, using {self.fallback_engine.name} search: {e.message}")
                    warnings.append(f"Embedding unavailable ({e.message}); used {self.fallback_engine.name} search")
                    engine = self.fallback_engine

            token.raise_if_cancelled()
            results = engine.rank(ranking_query, candidates, options)

        except (ValidationError, EmbeddingProviderError, OperationCancelledError) as e:
            logger.error(f"Search failed: {e.message}")
            return SearchResponse(
                success=False,
                query=query,
                results=[],
                total_documents=total_documents,
                search_time=self._elapsed_ms(start_time),
                strategy=engine.name,
                warnings=warnings,
                error=f"Search failed: {e.message}",
                error_code=e.code
            )

        search_time = self._elapsed_ms(start_time)
        logger.info(f"Search completed: {len(results)} results in {search_time}ms")

        return SearchResponse(
            success=True,
            query=query,
            results=results,
            total_documents=total_documents,
            search_time=search_time,
            strategy=engine.name,
            warnings=warnings
        )

    @staticmethod
    def context_string(results: List[SearchResult]) -> str:
        """Render ranked results as a prompt-ready context block, most relevant first."""
        sections = []
        for position, result in enumerate(sorted(results, key=lambda r: r.rank), start=1):
            metadata = result.chunk.metadata
            sections.append(
                f"[Source {position}: {metadata.filename} ({metadata.document_type.value.upper()}) "
                f"- Similarity: {result.similarity * 100:.1f}%]\n{result.chunk.content}"
            )
        return CONTEXT_SEPARATOR.join(sections)

    # Registry

    def remove(self, document_id: str) -> bool:
        """Remove a document and all of its chunks. Returns False if unknown."""
        with self._document_locks.locked(document_id):
            with self._index_lock.write_locked():
                if document_id not in self._documents:
                    return False
                removed = self.vector_index.delete_by_document(document_id)
                del self._documents[document_id]

        logger.info(f"Document {document_id} removed: {removed} chunks deleted")
        return True

    def get_document(self, document_id: str) -> Optional[DocumentIndexEntry]:
        return self._documents.get(document_id)

    def list_documents(self) -> List[DocumentIndexEntry]:
        with self._index_lock.read_locked():
            return list(self._documents.values())

    def stats(self) -> IndexStats:
        with self._index_lock.read_locked():
            documents = list(self._documents.values())
            total_chunks = self.vector_index.size()

        document_types: Dict[str, int] = {}
        for entry in documents:
            document_types[entry.document_type.value] = document_types.get(entry.document_type.value, 0) + 1

        return IndexStats(
            total_documents=len(documents),
            total_chunks=total_chunks,
            document_types=document_types,
            average_chunks_per_document=total_chunks / len(documents) if documents else 0.0
        )

    def clear(self) -> None:
        """Remove every document and chunk."""
        with self._index_lock.write_locked():
            self.vector_index.clear()
            self._documents.clear()
        logger.info("All documents and chunks cleared")

    # Helpers

    @staticmethod
    def estimate_page_number(chunk_index: int, total_chunks: int, total_pages: Optional[int]) -> Optional[int]:
        """Proportional page estimate; a hint only, not an exact location."""
        if not total_pages or total_pages <= 1 or total_chunks <= 0:
            return None
        return math.ceil((chunk_index + 1) / total_chunks * total_pages)

    @staticmethod
    def _context_header(filename: str, index: int, total: int) -> str:
        return f"Document: {filename}\nPart {index + 1}/{total}"

    @staticmethod
    def _generate_document_id() -> str:
        return f"doc_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.time() - start_time) * 1000)

"""In-memory vector index of embedded chunks."""
import logging
import threading
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from models.chunk import Chunk
from services.errors import DimensionMismatchError, ValidationError

logger = logging.getLogger(__name__)

ChunkFilter = Callable[[Chunk], bool]


class VectorIndex:
    """Store chunk records and iterate over them with optional filters.

    Writers serialize on a lock and publish fresh copies of the internal
    mappings; readers iterate whichever snapshot was current when they
    started, so they never observe a partially applied insert or delete.
    Chunks iterate in insertion order.
    """

    def __init__(self, dimension: Optional[int] = None):
        """
        Initialize an empty index.

        Args:
            dimension: Expected embedding length; established by the first insert when None
        """
        self._write_lock = threading.Lock()
        self._chunks: Dict[str, Chunk] = {}
        self._by_document: Dict[str, Tuple[str, ...]] = {}
        self._dimension = dimension
        self._version = 0

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    @property
    def version(self) -> int:
        """Incremented by every successful mutation."""
        return self._version

    def insert_all(self, chunks: List[Chunk]) -> None:
        """
        Insert chunks atomically: either all of them become visible or none.

        Raises:
            ValidationError: If the list is empty or a chunk id already exists
            DimensionMismatchError: If any embedding length differs from the index's
        """
        if not chunks:
            raise ValidationError("Chunks list cannot be empty")

        with self._write_lock:
            dimension = self._dimension if self._dimension is not None else chunks[0].dimension
            seen = set()
            for chunk in chunks:
                if chunk.dimension != dimension:
                    logger.error(
                        f"Rejected chunk {chunk.chunk_id}: dimension {chunk.dimension}, "
                        f"index expects {dimension}"
                    )
                    raise DimensionMismatchError(dimension, chunk.dimension, f"chunk {chunk.chunk_id}")
                if chunk.chunk_id in self._chunks or chunk.chunk_id in seen:
                    raise ValidationError(f"Duplicate chunk id: {chunk.chunk_id}")
                seen.add(chunk.chunk_id)

            new_chunks = dict(self._chunks)
            new_by_document = dict(self._by_document)
            for chunk in chunks:
                new_chunks[chunk.chunk_id] = chunk
                new_by_document[chunk.document_id] = (
                    new_by_document.get(chunk.document_id, ()) + (chunk.chunk_id,)
                )

            self._publish(new_chunks, new_by_document)
            self._dimension = dimension

        logger.debug(f"Inserted {len(chunks)} chunks (index size {len(new_chunks)})")

    def delete_by_document(self, document_id: str) -> int:
        """
        Remove every chunk of a document atomically.

        Returns:
            Number of chunks removed
        """
        with self._write_lock:
            chunk_ids = self._by_document.get(document_id)
            if not chunk_ids:
                return 0

            new_chunks = dict(self._chunks)
            for chunk_id in chunk_ids:
                del new_chunks[chunk_id]
            new_by_document = dict(self._by_document)
            del new_by_document[document_id]

            self._publish(new_chunks, new_by_document)

        logger.debug(f"Deleted {len(chunk_ids)} chunks of document {document_id}")
        return len(chunk_ids)

    def clear(self) -> None:
        """Remove all chunks. The established dimension is kept."""
        with self._write_lock:
            self._publish({}, {})

    def iterate(
        self,
        predicate: Optional[ChunkFilter] = None,
        document_id: Optional[str] = None
    ) -> Iterator[Chunk]:
        """
        Lazily yield chunks from the snapshot current at call time.

        Args:
            predicate: Optional filter applied to every chunk
            document_id: Restrict to one document using the per-document grouping
        """
        chunks, by_document = self._chunks, self._by_document
        if document_id is not None:
            candidates: Iterable[Chunk] = (chunks[cid] for cid in by_document.get(document_id, ()))
        else:
            candidates = chunks.values()
        return self._filtered(candidates, predicate)

    @staticmethod
    def _filtered(candidates: Iterable[Chunk], predicate: Optional[ChunkFilter]) -> Iterator[Chunk]:
        for chunk in candidates:
            if predicate is None or predicate(chunk):
                yield chunk

    def get(self, chunk_id: str) -> Optional[Chunk]:
        return self._chunks.get(chunk_id)

    def count_for_document(self, document_id: str) -> int:
        return len(self._by_document.get(document_id, ()))

    def document_ids(self) -> List[str]:
        return list(self._by_document)

    def size(self) -> int:
        return len(self._chunks)

    def __len__(self) -> int:
        return self.size()

    def _publish(self, chunks: Dict[str, Chunk], by_document: Dict[str, Tuple[str, ...]]) -> None:
        # Rebinding the attributes is the atomic step readers observe
        self._chunks = MappingProxyType(chunks)
        self._by_document = MappingProxyType(by_document)
        self._version += 1

"""Chunking engine with document-type aware boundary splitting."""
import logging
import re
from typing import List, Optional

from models.document import DocumentType
from config import CHUNK_SIZE, CHUNK_OVERLAP, MIN_CHUNK_LENGTH

logger = logging.getLogger(__name__)

# Boundary patterns, one per document type
PAGE_BREAK = re.compile(r"\n\s*\n\s*\n")
PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


class ChunkingEngine:
    """Splits plain text into ordered, overlapping chunks."""

    def __init__(
        self,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
        min_chunk_length: int = MIN_CHUNK_LENGTH
    ):
        """
        Initialize ChunkingEngine.

        Args:
            chunk_size: Maximum chunk size in characters
            chunk_overlap: Approximate overlap between neighbouring chunks in characters
            min_chunk_length: Chunks whose trimmed length is not above this are dropped
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError(
                f"Overlap ({chunk_overlap}) must be non-negative and less than "
                f"chunk size ({chunk_size})"
            )

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.min_chunk_length = min_chunk_length

    def split(
        self,
        text: str,
        document_type: DocumentType,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None
    ) -> List[str]:
        """
        Split text into chunks along natural boundaries for the document type.

        PDFs are split on page-like breaks (three or more line breaks), falling
        back to sentences when the text has none. DOC files are split on
        paragraphs and TXT files on sentences. Units are accumulated greedily;
        each new chunk is seeded with the trailing words of the previous one.
        A unit longer than the chunk size becomes a chunk of its own, unsplit.

        Args:
            text: Plain text to split
            document_type: Hint selecting the boundary strategy
            chunk_size: Overrides the engine's maximum chunk size
            chunk_overlap: Overrides the engine's overlap

        Returns:
            Chunk strings in order of appearance
        """
        max_chars = self.chunk_size if chunk_size is None else chunk_size
        overlap = self.chunk_overlap if chunk_overlap is None else chunk_overlap
        if max_chars <= 0 or overlap < 0 or overlap >= max_chars:
            raise ValueError("Invalid chunk size or overlap")

        if not text or not text.strip():
            return []

        document_type = DocumentType.parse(document_type)
        units, joiner = self._boundary_units(text, document_type)
        chunks = self._accumulate(units, joiner, max_chars, overlap)

        meaningful = [c for c in chunks if len(c.strip()) > self.min_chunk_length]
        if len(meaningful) < len(chunks):
            logger.debug(f"Dropped {len(chunks) - len(meaningful)} fragments below minimum length")

        logger.debug(
            f"Split {len(text)} characters of {document_type.value} text into {len(meaningful)} chunks"
        )
        return meaningful

    def _boundary_units(self, text: str, document_type: DocumentType):
        """Return (units, joiner) for the document type."""
        if document_type == DocumentType.PDF:
            pages = PAGE_BREAK.split(text)
            if len(pages) > 1:
                return self._clean(pages), "\n\n"
            return self._clean(SENTENCE_BREAK.split(text)), " "

        if document_type == DocumentType.DOC:
            return self._clean(PARAGRAPH_BREAK.split(text)), "\n\n"

        return self._clean(SENTENCE_BREAK.split(text)), " "

    @staticmethod
    def _clean(units: List[str]) -> List[str]:
        return [u.strip() for u in units if u and u.strip()]

    def _accumulate(self, units: List[str], joiner: str, max_chars: int, overlap: int) -> List[str]:
        """Greedily pack units into chunks no longer than max_chars."""
        chunks: List[str] = []
        seed = ""  # overlap carried over from the previous chunk
        parts: List[str] = []

        for unit in units:
            if len(unit) > max_chars:
                # Never truncate content: oversized units stand alone
                if parts:
                    chunks.append(self._assemble(seed, parts, joiner))
                chunks.append(unit)
                seed = self._tail_words(unit, overlap)
                parts = []
                continue

            if len(self._assemble(seed, parts + [unit], joiner)) <= max_chars:
                parts.append(unit)
                continue

            budget = min(overlap, max_chars - len(unit) - len(joiner))
            if parts:
                closed = self._assemble(seed, parts, joiner)
                chunks.append(closed)
                seed = self._tail_words(closed, budget)
            else:
                # Only carried-over text so far; shrink it so the unit fits
                seed = self._tail_words(seed, budget)
            parts = [unit]

        if parts:
            chunks.append(self._assemble(seed, parts, joiner))

        return chunks

    @staticmethod
    def _assemble(seed: str, parts: List[str], joiner: str) -> str:
        return joiner.join(([seed] if seed else []) + parts)

    @staticmethod
    def _tail_words(text: str, max_chars: int) -> str:
        """Trailing whole words of text whose joined length fits in max_chars."""
        if max_chars <= 0:
            return ""

        selected: List[str] = []
        length = 0
        for word in reversed(text.split()):
            added = len(word) + (1 if selected else 0)
            if length + added > max_chars:
                break
            selected.append(word)
            length += added

        return " ".join(reversed(selected))

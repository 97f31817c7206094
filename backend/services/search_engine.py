"""Ranking strategies for semantic and keyword search."""
import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np

from models.chunk import Chunk, SearchResult
from models.results import SearchOptions
from services.errors import DimensionMismatchError, ValidationError

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset([
    'the', 'is', 'at', 'which', 'on', 'and', 'a', 'to', 'are', 'as', 'was', 'will',
    'an', 'be', 'by', 'for', 'from', 'has', 'he', 'in', 'it', 'its', 'of', 'that',
    'with', 'have', 'this', 'would', 'his', 'her', 'or', 'had', 'but', 'words',
    'not', 'what', 'all', 'were', 'they', 'we', 'when', 'your', 'can', 'said',
    'there', 'each', 'she', 'do', 'how', 'their', 'if', 'up', 'out', 'many',
    'then', 'them', 'these', 'so', 'some', 'make', 'like', 'into', 'him', 'time',
    'two', 'more', 'very', 'after', 'long', 'than', 'first', 'been', 'call',
    'who', 'now', 'find', 'down', 'day', 'did', 'get', 'come', 'made', 'may', 'part'
])


def cosine_similarity(a, b) -> float:
    """
    Cosine similarity of two vectors; 0.0 when either has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatchError(a.shape[0], b.shape[0], "cosine similarity")

    magnitude = np.linalg.norm(a) * np.linalg.norm(b)
    if magnitude == 0:
        return 0.0
    return float(np.dot(a, b) / magnitude)


def build_filter(options: SearchOptions):
    """Predicate matching the document type filter of the options, or None."""
    if not options.document_types:
        return None
    allowed = set(options.document_types)
    return lambda chunk: chunk.metadata.document_type in allowed


@dataclass
class RankingQuery:
    """What a ranking strategy gets to see of the query."""
    text: str
    vector: Optional[np.ndarray] = None


class SearchEngine(ABC):
    """Ranking interface shared by every search strategy."""

    name = "base"
    requires_embedding = False

    @abstractmethod
    def score(self, query: RankingQuery, candidates: List[Chunk]) -> List[float]:
        """Similarity of every candidate to the query, in candidate order."""

    def rank(
        self,
        query: RankingQuery,
        candidates: Iterable[Chunk],
        options: SearchOptions
    ) -> List[SearchResult]:
        """
        Score, threshold, sort and truncate candidates.

        Sorting is stable, so equal scores keep candidate (insertion) order.
        Ranks start at 1.

        Args:
            query: Query text and, for embedding strategies, its vector
            candidates: Pre-filtered chunks in insertion order
            options: Similarity threshold and result limit

        Returns:
            At most options.max_results results, most similar first
        """
        candidates = list(candidates)
        if not candidates:
            return []

        scores = self.score(query, candidates)
        matches = [
            SearchResult(chunk=chunk, similarity=score)
            for chunk, score in zip(candidates, scores)
            if score >= options.min_similarity
        ]
        matches.sort(key=lambda r: r.similarity, reverse=True)
        ranked = matches[:options.max_results]
        for position, result in enumerate(ranked, start=1):
            result.rank = position

        logger.debug(
            f"{self.name} ranking: {len(candidates)} candidates, "
            f"{len(matches)} above {options.min_similarity}, returning {len(ranked)}"
        )
        return ranked


class EmbeddingSearchEngine(SearchEngine):
    """Ranks chunks by cosine similarity between query and chunk embeddings."""

    name = "embedding"
    requires_embedding = True

    def score(self, query: RankingQuery, candidates: List[Chunk]) -> List[float]:
        if query.vector is None:
            raise ValidationError("Embedding search requires a query vector")

        vector = np.asarray(query.vector, dtype=np.float64)
        for chunk in candidates:
            if chunk.dimension != vector.shape[0]:
                raise DimensionMismatchError(chunk.dimension, vector.shape[0], "query vector")

        matrix = np.vstack([chunk.embedding for chunk in candidates]).astype(np.float64)
        magnitudes = np.linalg.norm(matrix, axis=1) * np.linalg.norm(vector)
        dots = matrix @ vector
        with np.errstate(divide="ignore", invalid="ignore"):
            similarities = np.where(magnitudes == 0, 0.0, dots / magnitudes)
        return [float(s) for s in similarities]


class KeywordSearchEngine(SearchEngine):
    """Term-overlap ranking used when the query cannot be embedded.

    Scores combine the share of query terms present in the chunk, a
    log-frequency term weight and a bonus for exact or partial phrase
    matches, clamped to [0, 1]. Much weaker than embedding search.
    """

    name = "keyword"

    def score(self, query: RankingQuery, candidates: List[Chunk]) -> List[float]:
        query_text = query.text.lower()
        query_terms = self.tokenize(query_text)
        return [self._similarity(query_text, query_terms, chunk.content.lower()) for chunk in candidates]

    def _similarity(self, query_text: str, query_terms: List[str], content: str) -> float:
        content_terms = self.tokenize(content)
        if not query_terms or not content_terms:
            return 0.0

        frequencies = {}
        for term in content_terms:
            frequencies[term] = frequencies.get(term, 0) + 1

        term_score = 0.0
        found = 0
        for term in query_terms:
            frequency = frequencies.get(term, 0)
            if frequency:
                found += 1
                term_score += math.log(1 + frequency) * (len(query_terms) / len(content_terms))

        base_score = found / len(query_terms)
        phrase_bonus = self._phrase_bonus(query_text, content)
        score = base_score * 0.7 + term_score * 0.2 + phrase_bonus * 0.1
        return max(0.0, min(1.0, score))

    @staticmethod
    def _phrase_bonus(query: str, content: str) -> float:
        if query in content:
            return 1.0

        words = query.split()
        if len(words) < 2:
            return 0.0

        longest = 0
        for i in range(len(words) - 1):
            for j in range(i + 2, len(words) + 1):
                phrase = " ".join(words[i:j])
                if phrase in content:
                    longest = max(longest, len(phrase))
        return longest / len(query)

    @staticmethod
    def tokenize(text: str) -> List[str]:
        words = re.sub(r"[^\w\s]", " ", text.lower()).split()
        return [w for w in words if len(w) > 2 and w not in STOP_WORDS]

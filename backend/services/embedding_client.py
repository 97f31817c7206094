"""Rate-limited, retrying client around an embedding provider."""
import time
import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Sequence

import numpy as np

from config import (
    EMBEDDING_BATCH_SIZE,
    EMBEDDING_BATCH_DELAY,
    EMBEDDING_MAX_RETRIES,
    EMBEDDING_INITIAL_DELAY,
    EMBEDDING_MAX_DELAY,
    EMBEDDING_TIMEOUT,
)
from models.results import BatchEmbeddingResult, EmbeddingFailure
from services.cancellation import CancellationToken
from services.embedding_provider import EmbeddingProvider, TaskType
from services.errors import EmbeddingProviderError, ValidationError

logger = logging.getLogger(__name__)

# Seconds between cancellation and deadline checks while waiting on calls
WAIT_SLICE = 0.05


class EmbeddingClient:
    """Embeds single texts and batches through an EmbeddingProvider.

    Batches are processed in groups of ``batch_size`` concurrent provider
    calls with ``batch_delay`` seconds of cooldown between groups. Every call
    is bounded by ``timeout``; timeouts and transient provider errors are
    retried with exponential backoff up to ``max_retries`` attempts. One
    failing text never aborts the rest of its batch.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        batch_size: int = EMBEDDING_BATCH_SIZE,
        batch_delay: float = EMBEDDING_BATCH_DELAY,
        max_retries: int = EMBEDDING_MAX_RETRIES,
        initial_delay: float = EMBEDDING_INITIAL_DELAY,
        max_delay: float = EMBEDDING_MAX_DELAY,
        timeout: float = EMBEDDING_TIMEOUT
    ):
        """
        Initialize the embedding client.

        Args:
            provider: Embedding provider to call
            batch_size: Maximum number of provider calls in flight
            batch_delay: Cooldown in seconds between groups of a batch
            max_retries: Attempts per text before it counts as failed
            initial_delay: First backoff delay in seconds
            max_delay: Upper bound for the backoff delay
            timeout: Deadline in seconds for a single provider call
        """
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if max_retries <= 0:
            raise ValueError("max_retries must be positive")

        self.provider = provider
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(
            max_workers=batch_size, thread_name_prefix="embedding"
        )

        logger.info(
            f"Initialized EmbeddingClient (batch_size={batch_size}, "
            f"max_retries={max_retries}, timeout={timeout}s)"
        )

    def embed_one(
        self,
        text: str,
        task_type: TaskType = TaskType.QUERY,
        cancellation: Optional[CancellationToken] = None
    ) -> np.ndarray:
        """
        Generate an embedding for a single text.

        Raises:
            ValidationError: If text is empty
            EmbeddingProviderError: If the provider fails after all retries
            OperationCancelledError: If cancelled while waiting
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        token = cancellation or CancellationToken()
        vectors, errors = self._embed_group([text], [0], task_type, token)
        if 0 in errors:
            raise errors[0]
        return vectors[0]

    def embed_batch(
        self,
        texts: Sequence[str],
        task_type: TaskType = TaskType.DOCUMENT,
        cancellation: Optional[CancellationToken] = None
    ) -> BatchEmbeddingResult:
        """
        Generate embeddings for many texts.

        Failed texts are reported by index instead of raising, so the caller
        decides whether a partial result is acceptable.

        Raises:
            OperationCancelledError: If cancelled between groups or retries
        """
        token = cancellation or CancellationToken()
        vectors: List[Optional[np.ndarray]] = [None] * len(texts)
        failures: List[EmbeddingFailure] = []

        for start in range(0, len(texts), self.batch_size):
            token.raise_if_cancelled()
            indices = list(range(start, min(start + self.batch_size, len(texts))))

            # Empty texts are rejected locally rather than sent to the provider
            valid = []
            for index in indices:
                if texts[index] and texts[index].strip():
                    valid.append(index)
                else:
                    failures.append(EmbeddingFailure(index=index, error="Text cannot be empty"))

            group_vectors, group_errors = self._embed_group(texts, valid, task_type, token)
            for index, vector in group_vectors.items():
                vectors[index] = vector
            for index, error in group_errors.items():
                message = f"Error processing text {index}: {error.message}"
                logger.error(message)
                failures.append(EmbeddingFailure(index=index, error=message))

            if start + self.batch_size < len(texts):
                token.sleep(self.batch_delay)  # Respect provider rate limits

        failures.sort(key=lambda f: f.index)
        result = BatchEmbeddingResult(vectors=vectors, failures=failures)
        logger.info(f"Embedded {result.succeeded}/{len(texts)} texts ({len(failures)} failed)")
        return result

    def _embed_group(
        self,
        texts: Sequence[str],
        indices: List[int],
        task_type: TaskType,
        token: CancellationToken
    ):
        """
        Embed texts[i] for each i in indices concurrently, retrying transient failures.

        The timeout of a call runs from the moment a worker starts it, so calls
        queued behind other callers' work are not charged for the wait.

        Returns:
            (vectors by index, EmbeddingProviderError by index)
        """
        vectors: Dict[int, np.ndarray] = {}
        errors: Dict[int, EmbeddingProviderError] = {}
        pending = list(indices)
        delay = self.initial_delay

        for attempt in range(1, self.max_retries + 1):
            if not pending:
                break
            token.raise_if_cancelled()

            started: Dict[int, float] = {}
            futures = {
                index: self._executor.submit(self._timed_call, started, index, texts[index], task_type)
                for index in pending
            }
            expired = self._wait_for(futures, started, token)

            retry = []
            for index, future in futures.items():
                if index in expired:
                    error = EmbeddingProviderError(
                        f"Embedding request timeout after {self.timeout}s", transient=True
                    )
                else:
                    try:
                        vectors[index] = self._to_vector(future.result())
                        continue
                    except EmbeddingProviderError as e:
                        error = e
                    except Exception as e:
                        error = EmbeddingProviderError(
                            f"Unexpected embedding error: {str(e)}",
                            details={"error_type": type(e).__name__}
                        )

                errors[index] = error
                if error.transient:
                    retry.append(index)

            pending = retry
            if pending and attempt < self.max_retries:
                logger.warning(
                    f"{len(pending)} embedding calls failed transiently on attempt "
                    f"{attempt}/{self.max_retries}. Retrying in {delay}s..."
                )
                token.sleep(delay)
                delay = min(delay * 2, self.max_delay)
                for index in pending:
                    del errors[index]

        return vectors, errors

    def _timed_call(self, started: Dict[int, float], index: int, text: str, task_type: TaskType):
        started[index] = time.monotonic()
        return self.provider.embed(text, task_type)

    def _wait_for(self, futures: Dict[int, Future], started: Dict[int, float], token: CancellationToken):
        """
        Wait until every future is done or has run longer than the timeout.

        Raises:
            OperationCancelledError: If the token is cancelled while waiting

        Returns:
            Indices of the calls that timed out
        """
        expired = set()
        waiting = dict(futures)

        while waiting:
            wait(waiting.values(), timeout=WAIT_SLICE, return_when=FIRST_COMPLETED)

            if token.cancelled:
                for future in waiting.values():
                    future.cancel()
                token.raise_if_cancelled()

            now = time.monotonic()
            for index, future in list(waiting.items()):
                if future.done():
                    del waiting[index]
                elif index in started and now - started[index] >= self.timeout:
                    # The worker stays busy until the provider call returns
                    expired.add(index)
                    del waiting[index]

        return expired

    @staticmethod
    def _to_vector(values) -> np.ndarray:
        vector = np.asarray(values, dtype=np.float64)
        if vector.ndim != 1 or vector.size == 0 or not np.all(np.isfinite(vector)):
            raise EmbeddingProviderError("Invalid embedding response")
        return vector

    def close(self) -> None:
        """Release worker threads."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    def warmup(self) -> bool:
        """
        Warm up the provider with a dummy query to avoid cold start delays.

        Returns:
            True if warmup successful, False otherwise
        """
        try:
            logger.info("Warming up embedding provider...")
            start_time = time.time()

            self.embed_one("warmup query")

            elapsed = time.time() - start_time
            logger.info(f"Embedding provider warmup completed in {elapsed:.1f}s")
            return True

        except EmbeddingProviderError as e:
            logger.error(f"Embedding provider warmup failed: {e.message}")
            return False

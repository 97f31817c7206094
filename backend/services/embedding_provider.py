"""Embedding provider integrations over HTTP."""
import time
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from config import (
    EMBEDDING_PROVIDER,
    EMBEDDING_MODEL,
    GEMINI_EMBEDDING_MODEL,
    HUGGINGFACE_EMBEDDING_MODEL,
    EMBEDDING_OUTPUT_DIMENSIONALITY,
    EMBEDDING_TIMEOUT,
    GEMINI_API_KEY,
    HUGGINGFACE_API_KEY,
)
from services.errors import EmbeddingProviderError

logger = logging.getLogger(__name__)

# Status codes worth retrying, besides 5xx
TRANSIENT_STATUS_CODES = {408, 425, 429}


class TaskType(str, Enum):
    """How an embedded text will be used."""
    DOCUMENT = "document"
    QUERY = "query"


class EmbeddingProvider(ABC):
    """Capability that turns one text into one embedding vector."""

    @abstractmethod
    def embed(self, text: str, task_type: TaskType = TaskType.DOCUMENT) -> List[float]:
        """
        Embed a single text.

        Raises:
            EmbeddingProviderError: With transient=True for retryable failures
        """


class HTTPEmbeddingProvider(EmbeddingProvider):
    """Shared request handling for JSON-over-HTTP embedding APIs."""

    name = "http"

    def __init__(self, api_key: str, model_name: str, timeout: float = EMBEDDING_TIMEOUT):
        self.api_key = api_key
        self.model_name = model_name
        self.timeout = timeout

    def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Any:
        """
        Send one request and map failures to EmbeddingProviderError.

        Returns:
            Decoded JSON body of a 200 response
        """
        start_time = time.time()

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException:
            raise EmbeddingProviderError(
                f"{self.name} request timeout after {self.timeout}s", transient=True
            )
        except httpx.RequestError as e:
            raise EmbeddingProviderError(f"{self.name} network error: {str(e)}", transient=True)

        elapsed = time.time() - start_time

        if response.status_code == 200:
            logger.debug(f"{self.name} embedding request completed in {elapsed:.2f}s")
            return response.json()

        if response.status_code in (401, 403):
            logger.error(f"Authentication failed for {self.name} embedding API")
            raise EmbeddingProviderError(
                "Invalid API key", transient=False, status_code=response.status_code
            )

        transient = response.status_code in TRANSIENT_STATUS_CODES or response.status_code >= 500
        error_msg = f"{self.name} API request failed with status {response.status_code}: {response.text}"
        if transient:
            logger.warning(error_msg)
        else:
            logger.error(error_msg)
        raise EmbeddingProviderError(error_msg, transient=transient, status_code=response.status_code)

    @staticmethod
    def _as_vector(values: Any, source: str) -> List[float]:
        if not isinstance(values, list) or not values:
            raise EmbeddingProviderError(f"Invalid embedding response from {source}")
        try:
            return [float(v) for v in values]
        except (TypeError, ValueError):
            raise EmbeddingProviderError(f"Invalid embedding response from {source}")


class GeminiEmbeddingProvider(HTTPEmbeddingProvider):
    """Google Generative Language API embeddings (text-embedding-004 by default)."""

    name = "gemini"
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    TASK_TYPES = {
        TaskType.DOCUMENT: "RETRIEVAL_DOCUMENT",
        TaskType.QUERY: "RETRIEVAL_QUERY",
    }

    def __init__(
        self,
        api_key: str = GEMINI_API_KEY,
        model_name: str = GEMINI_EMBEDDING_MODEL,
        output_dimensionality: Optional[int] = EMBEDDING_OUTPUT_DIMENSIONALITY,
        timeout: float = EMBEDDING_TIMEOUT
    ):
        if not api_key:
            raise ValueError("GEMINI_API_KEY environment variable is required")

        super().__init__(api_key, model_name, timeout)
        self.output_dimensionality = output_dimensionality
        self.api_url = f"{self.BASE_URL}/models/{model_name}:embedContent"

        logger.info(f"Initialized GeminiEmbeddingProvider with model: {model_name}")

    def embed(self, text: str, task_type: TaskType = TaskType.DOCUMENT) -> List[float]:
        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json"
        }
        payload: Dict[str, Any] = {
            "model": f"models/{self.model_name}",
            "content": {"parts": [{"text": text}]},
            "taskType": self.TASK_TYPES[TaskType(task_type)],
        }
        if self.output_dimensionality:
            payload["outputDimensionality"] = self.output_dimensionality

        body = self._post(self.api_url, headers, payload)
        embedding = body.get("embedding") if isinstance(body, dict) else None
        return self._as_vector((embedding or {}).get("values"), self.name)


class HuggingFaceEmbeddingProvider(HTTPEmbeddingProvider):
    """Hugging Face Inference API feature extraction."""

    name = "huggingface"

    def __init__(
        self,
        api_key: str = HUGGINGFACE_API_KEY,
        model_name: str = HUGGINGFACE_EMBEDDING_MODEL,
        timeout: float = EMBEDDING_TIMEOUT,
        query_prefix: str = "",
        document_prefix: str = ""
    ):
        """
        Initialize the Hugging Face provider.

        Args:
            api_key: Hugging Face API key
            model_name: Model identifier
            timeout: Request timeout in seconds
            query_prefix: Prepended to query texts (e.g. "query: " for E5 models)
            document_prefix: Prepended to document texts (e.g. "passage: ")
        """
        if not api_key:
            raise ValueError("HUGGINGFACE_API_KEY environment variable is required")

        super().__init__(api_key, model_name, timeout)
        self.prefixes = {
            TaskType.QUERY: query_prefix,
            TaskType.DOCUMENT: document_prefix,
        }
        self.api_url = f"https://api-inference.huggingface.co/models/{model_name}"

        logger.info(f"Initialized HuggingFaceEmbeddingProvider with model: {model_name}")

    def embed(self, text: str, task_type: TaskType = TaskType.DOCUMENT) -> List[float]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "inputs": [self.prefixes[TaskType(task_type)] + text],
            "options": {
                "wait_for_model": True  # Wait for model to load if sleeping
            }
        }

        body = self._post(self.api_url, headers, payload)
        # Batched input yields [[...]]; some pipelines return the bare vector
        if isinstance(body, list) and body and isinstance(body[0], list):
            body = body[0]
        return self._as_vector(body, self.name)


def create_embedding_provider(provider: str = EMBEDDING_PROVIDER) -> EmbeddingProvider:
    """Build the configured embedding provider."""
    provider = provider.lower()
    if provider == "gemini":
        return GeminiEmbeddingProvider(model_name=EMBEDDING_MODEL)
    if provider == "huggingface":
        return HuggingFaceEmbeddingProvider(model_name=EMBEDDING_MODEL)
    raise ValueError(f"Unknown embedding provider: {provider}")

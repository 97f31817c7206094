"""Error types raised by the RAG services."""
from typing import Any, Dict, Optional


class RAGError(Exception):
    """Base error with structured error information."""

    code = "RAG_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(RAGError):
    """Input rejected before any embedding call was made."""

    code = "VALIDATION_ERROR"


class EmbeddingProviderError(RAGError):
    """Embedding provider call failed."""

    code = "EMBEDDING_PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        transient: bool = False,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = dict(details or {})
        details.setdefault("transient", transient)
        if status_code is not None:
            details.setdefault("status_code", status_code)
        super().__init__(message, details)
        self.transient = transient
        self.status_code = status_code


class DimensionMismatchError(RAGError):
    """Embedding vector length differs from the one established by the index."""

    code = "DIMENSION_MISMATCH"

    def __init__(self, expected: int, actual: int, context: str = "embedding"):
        super().__init__(
            f"Dimension mismatch for {context}: expected {expected}, got {actual}",
            {"expected": expected, "actual": actual}
        )
        self.expected = expected
        self.actual = actual


class OperationCancelledError(RAGError):
    """Operation was cancelled through its cancellation token."""

    code = "CANCELLED"

"""Cooperative cancellation for ingestion and search."""
import threading
from typing import Optional

from services.errors import OperationCancelledError


class CancellationToken:
    """Thread-safe flag that long-running operations poll between steps."""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "Operation was cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self.reason or "Operation was cancelled")

    def sleep(self, seconds: float) -> None:
        """Sleep for up to `seconds`, raising early if cancelled meanwhile."""
        if seconds > 0:
            self._event.wait(seconds)
        self.raise_if_cancelled()

"""
Cooperative cancellation for analysis jobs
"""
import threading
from typing import Optional

from utils.exceptions import AnalysisCancelledError


class CancellationToken:
    """
    Flag shared between the caller and a running pipeline

    The pipeline polls it between steps and between sentiment batches;
    work already inside a step always finishes.
    """

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "Analysis cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelledError(self.reason or "Analysis cancelled")


def check_cancelled(token: Optional[CancellationToken]) -> None:
    """No-op when no token was passed in."""
    if token is not None:
        token.raise_if_cancelled()

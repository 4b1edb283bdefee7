"""
Error types raised by the analysis pipeline

LLM errors are recoverable (retried, then replaced by fallback results).
Data, persistence and cancellation errors are fatal for a job.
"""
from typing import Any, Dict, Optional


class AnalysisError(Exception):
    """Base class for every pipeline error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class LLMServiceError(AnalysisError):
    """The generative endpoint failed, was rate limited or returned nothing usable."""


class LLMTimeoutError(LLMServiceError):
    """An LLM call did not finish inside the request timeout."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            f"Request timeout after {timeout_seconds}s",
            {"timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds


class LLMUnavailableError(LLMServiceError):
    """No LLM is configured; callers go straight to their fallback."""


class DataError(AnalysisError):
    """Comments could not be loaded or there is nothing to analyse."""


class PersistenceError(AnalysisError):
    """The result store rejected the save; nothing was written."""


class AnalysisCancelledError(AnalysisError):
    """The job was cancelled between two pipeline steps."""

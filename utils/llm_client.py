"""
Gemini LLM client used for sentiment classification and summary writing.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Dict

import google.generativeai as genai

from config.settings import settings
from utils.exceptions import LLMServiceError, LLMTimeoutError, LLMUnavailableError
from utils.logger import get_logger

logger = get_logger(__name__)

# Low temperature keeps sentiment labels consistent between batches
SENTIMENT_GENERATION_CONFIG = {
    "temperature": 0.1,
    "top_p": 0.8,
    "top_k": 40,
    "max_output_tokens": 2048,
}

SUMMARY_GENERATION_CONFIG = {
    "temperature": 0.3,
    "top_p": 0.9,
    "top_k": 40,
    "max_output_tokens": 1024,
}


class LLMClient:
    """Wrapper that handles Gemini text generation."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        generation_config: Dict[str, Any] | None = None,
        request_timeout: float | None = None,
    ):
        self.api_key = api_key or settings.GEMINI_API_KEY
        self.model_name = model or settings.GEMINI_MODEL
        self.generation_config = generation_config or dict(SENTIMENT_GENERATION_CONFIG)
        self.request_timeout = request_timeout or settings.LLM_REQUEST_TIMEOUT
        self.model = None

        if not self.api_key:
            # Analyzers fall back to rule-based output when generate() is unavailable
            logger.warning("GEMINI_API_KEY is not set; LLM calls will use fallback results.")
            return

        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(
            model_name=self.model_name,
            generation_config=genai.types.GenerationConfig(**self.generation_config),
        )

    def generate(self, prompt: str) -> str:
        """Generate raw text from the Gemini model."""
        if self.model is None:
            raise LLMUnavailableError("Gemini API key is required. Set GEMINI_API_KEY environment variable.")

        try:
            response = self.model.generate_content(
                prompt,
                request_options={"timeout": self.request_timeout},
            )
        except Exception as exc:
            raise LLMServiceError(f"Gemini request failed: {exc}") from exc
        return getattr(response, "text", "") or ""


def generate_with_timeout(llm_client: Any, prompt: str, timeout_seconds: float) -> str:
    """
    Call llm_client.generate(prompt) and give up after timeout_seconds.

    The call runs on its own worker thread so any client, including ones
    without a native timeout, is bounded. A timed-out call is abandoned and
    raises LLMTimeoutError.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="llm-call")
    future = executor.submit(llm_client.generate, prompt)
    try:
        return future.result(timeout=timeout_seconds)
    except FuturesTimeoutError as exc:
        future.cancel()
        raise LLMTimeoutError(timeout_seconds) from exc
    finally:
        executor.shutdown(wait=False)


def is_rate_limit_error(error: BaseException) -> bool:
    """Classify an exception as a rate-limit/quota error from its message."""
    error_str = str(error)
    return (
        "429" in error_str or
        "quota" in error_str.lower() or
        "rate limit" in error_str.lower() or
        "ResourceExhausted" in error_str
    )

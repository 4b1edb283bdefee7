"""
LLM-based sentiment and emotion classification for preprocessed comments
"""
import json
import random
import re
import time
from typing import Any, Dict, List, Optional, Tuple

from models.comment import Comment
from models.analysis import (
    Sentiment,
    EmotionScore,
    SentimentResult,
    SentimentSummary,
    ProcessingMetrics,
    ValidationResult,
    BatchSentimentResult,
    AdvancedSentimentResult,
)
from layer_2_sentiment.fallback import create_fallback_result
from utils.llm_client import LLMClient, generate_with_timeout, is_rate_limit_error
from utils.exceptions import LLMServiceError, LLMUnavailableError
from utils.cancellation import CancellationToken, check_cancelled
from config.settings import settings
from utils.logger import get_logger

logger = get_logger(__name__)

VALID_EMOTIONS = ["joy", "anger", "sadness", "fear", "surprise", "disgust", "trust", "anticipation"]
MAX_EMOTIONS = 3
DEFAULT_CONFIDENCE = 0.5

BATCH_SENTIMENT_PROMPT = """You are an expert sentiment analysis AI. Analyze the sentiment and emotions of the following comments with high accuracy.

For each comment, provide:
1. Sentiment: POSITIVE, NEGATIVE, or NEUTRAL (be precise - neutral should only be used for truly ambiguous content)
2. Confidence: A score from 0.0 to 1.0 (be conservative - only use high confidence for clear sentiment)
3. Emotions: Up to 3 primary emotions with scores from this list: joy, anger, sadness, fear, surprise, disgust, trust, anticipation

Guidelines:
- Consider context, sarcasm, and implied meaning
- Account for emojis and internet slang
- Be consistent across similar comments
- Higher confidence for clear emotional language
- Lower confidence for subtle or mixed sentiment

Comments to analyze:
{comments}

Respond with one JSON object per line in this exact format:
{{"commentIndex": 1, "sentiment": "POSITIVE", "confidence": 0.85, "emotions": [{{"name": "joy", "score": 0.8}}]}}

No additional text or formatting."""

SINGLE_SENTIMENT_PROMPT = """Analyze this single comment for sentiment and emotions with high precision:

Comment: "{comment}"

Provide detailed analysis considering:
- Explicit emotional language
- Implicit sentiment through context
- Sarcasm or irony detection
- Cultural and linguistic nuances

Respond in JSON format:
{{"sentiment": "POSITIVE|NEGATIVE|NEUTRAL", "confidence": 0.85, "emotions": [{{"name": "emotion", "score": 0.8}}]}}"""


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def normalize_sentiment(value: Any) -> Sentiment:
    """Case-insensitive sentiment label; anything unknown is NEUTRAL"""
    if isinstance(value, str):
        try:
            return Sentiment(value.strip().upper())
        except ValueError:
            pass
    return Sentiment.NEUTRAL


def normalize_emotions(emotions: Any) -> List[EmotionScore]:
    """Keep known emotion names, clamp scores and return the top 3 by score"""
    if not isinstance(emotions, list):
        return []

    normalized = []
    for emotion in emotions:
        if not isinstance(emotion, dict):
            continue
        name = emotion.get("name")
        if not isinstance(name, str) or name.lower() not in VALID_EMOTIONS:
            continue
        score = _as_number(emotion.get("score")) or 0.0
        normalized.append(EmotionScore(name=name.lower(), score=_clamp(score)))

    normalized.sort(key=lambda e: e.score, reverse=True)
    return normalized[:MAX_EMOTIONS]


def result_from_payload(payload: Dict[str, Any]) -> SentimentResult:
    """Build a SentimentResult from one decoded response object"""
    confidence = _as_number(payload.get("confidence"))
    if confidence is None:
        confidence = DEFAULT_CONFIDENCE
    return SentimentResult(
        sentiment=normalize_sentiment(payload.get("sentiment")),
        confidence=_clamp(confidence),
        emotions=normalize_emotions(payload.get("emotions")),
    )


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if "```" in cleaned:
        cleaned = re.sub(r'```(?:json)?', '', cleaned)
    return cleaned.strip()


def summarize_results(results: List[SentimentResult]) -> SentimentSummary:
    """Per-class fractions and mean confidence over all results"""
    if not results:
        return SentimentSummary()

    total = len(results)
    counts = {"positive": 0, "negative": 0, "neutral": 0}
    for result in results:
        counts[result.sentiment.value.lower()] += 1

    return SentimentSummary(
        total_analyzed=total,
        average_confidence=sum(r.confidence for r in results) / total,
        sentiment_distribution={key: count / total for key, count in counts.items()},
    )


class SentimentAnalyzer:
    """Classify comment sentiment and emotions in batches using the LLM"""

    def __init__(self, llm_client: Optional[LLMClient] = None):
        """
        Initialize analyzer

        Args:
            llm_client: LLM client instance (creates new one if not provided)
        """
        self.llm_client = llm_client or LLMClient()
        self.batch_size = settings.SENTIMENT_BATCH_SIZE
        self.max_retries = settings.LLM_RETRY_ATTEMPTS
        self.retry_delay = settings.LLM_RETRY_DELAY_BASE
        self.rate_limit_multiplier = settings.LLM_RATE_LIMIT_MULTIPLIER
        self.retry_jitter = settings.LLM_RETRY_JITTER
        self.request_timeout = settings.LLM_REQUEST_TIMEOUT
        self.batch_delay = settings.LLM_BATCH_DELAY

    # ------------------------------------------------------------------ #
    # Batch processing
    # ------------------------------------------------------------------ #
    def analyze_batch_sentiment(
        self,
        comments: List[Comment],
        cancel_token: Optional[CancellationToken] = None
    ) -> BatchSentimentResult:
        """
        Analyze sentiment for every comment, batch by batch

        Args:
            comments: Valid comments from the preprocessor
            cancel_token: Checked before every batch

        Returns:
            BatchSentimentResult with exactly one result per comment, in order
        """
        start_time = time.time()
        metrics = ProcessingMetrics()

        if not comments:
            logger.info("No comments to analyze")
            return BatchSentimentResult(results=[], summary=SentimentSummary(), metrics=metrics)

        batches = [
            comments[i:i + self.batch_size]
            for i in range(0, len(comments), self.batch_size)
        ]
        logger.info(f"Analyzing sentiment of {len(comments)} comments in {len(batches)} batches of {self.batch_size}")

        results: List[SentimentResult] = []
        for batch_idx, batch in enumerate(batches, 1):
            check_cancelled(cancel_token)

            batch_label = f"sentiment_batch_{batch_idx}"
            batch_results, retries = self._process_batch_with_retry(batch, batch_label)
            metrics.retry_count += retries
            results.extend(batch_results)

            # Add delay between batches (except for the last one)
            if batch_idx < len(batches):
                time.sleep(self.batch_delay)

        metrics.batch_count = len(batches)
        metrics.fallback_count = sum(1 for r in results if r.is_fallback)
        metrics.total_processing_time = time.time() - start_time

        summary = summarize_results(results)
        logger.info(
            f"Sentiment analysis finished: {len(results)} results, "
            f"avg confidence {summary.average_confidence:.2f}, "
            f"{metrics.fallback_count} fallback, {metrics.retry_count} retries"
        )
        return BatchSentimentResult(results=results, summary=summary, metrics=metrics)

    def _process_batch_with_retry(
        self,
        comments: List[Comment],
        batch_label: str
    ) -> Tuple[List[SentimentResult], int]:
        """
        Run one batch through the LLM with retry logic and exponential backoff

        Returns:
            (results aligned with comments, number of retried attempts)
        """
        prompt = self._build_batch_prompt(comments)
        retries = 0

        for attempt in range(1, self.max_retries + 1):
            try:
                started = time.time()
                raw_response = generate_with_timeout(self.llm_client, prompt, self.request_timeout)
                logger.debug(f"{batch_label} answered in {time.time() - started:.2f}s")

                results = self._parse_batch_response(raw_response, comments)

                validation = self._validate_batch_results(results, comments)
                if not validation.is_valid and validation.quality_score < 0.5:
                    logger.warning(
                        f"Low quality results for {batch_label} (score: {validation.quality_score:.2f}): "
                        f"{'; '.join(validation.issues)}"
                    )
                return results, retries

            except LLMUnavailableError as e:
                logger.warning(f"LLM unavailable for {batch_label}, using fallback sentiment: {e}")
                return self._create_fallback_results(comments, str(e)), retries

            except Exception as e:
                error_str = str(e)

                if attempt < self.max_retries:
                    delay = self._backoff_delay(attempt, is_rate_limit_error(e))
                    logger.warning(
                        f"Error analyzing {batch_label} (attempt {attempt}/{self.max_retries}): {error_str}. "
                        f"Waiting {delay:.2f}s before retry..."
                    )
                    retries += 1
                    time.sleep(delay)
                else:
                    # Max retries reached, use fallback
                    logger.error(
                        f"Max retries reached for {batch_label}. Using fallback sentiment. "
                        f"Error: {error_str}"
                    )
                    return self._create_fallback_results(comments, error_str), retries

        return self._create_fallback_results(comments, "no attempts made"), retries

    def _backoff_delay(self, attempt: int, is_rate_limit: bool) -> float:
        """base × 2^(attempt-1) plus jitter; the base is multiplied for rate limits"""
        base_delay = self.retry_delay * self.rate_limit_multiplier if is_rate_limit else self.retry_delay
        return base_delay * (2 ** (attempt - 1)) + random.uniform(0, self.retry_jitter)

    def _build_batch_prompt(self, comments: List[Comment]) -> str:
        comments_block = "\n".join(
            f'{index}. "{comment.text}"'
            for index, comment in enumerate(comments, 1)
        )
        return BATCH_SENTIMENT_PROMPT.format(comments=comments_block)

    def _parse_batch_response(self, raw_response: str, comments: List[Comment]) -> List[SentimentResult]:
        """
        Parse the model answer into one result per comment

        Accepts one JSON object per line or a single JSON array. Lines that do
        not decode, are not objects or carry a non-integral or out-of-range commentIndex are
        dropped. Comments left without a result get the fallback.
        """
        cleaned = strip_code_fences(raw_response or "")
        parsed: Dict[int, SentimentResult] = {}

        for payload in self._decode_payloads(cleaned):
            if not isinstance(payload, dict):
                logger.debug(f"Dropping non-object sentiment entry: {payload!r}")
                continue

            comment_index = payload.get("commentIndex")
            if isinstance(comment_index, bool) or not isinstance(comment_index, (int, float)):
                logger.debug(f"Dropping sentiment entry without commentIndex: {payload!r}")
                continue
            if isinstance(comment_index, float) and not comment_index.is_integer():
                logger.debug(f"Dropping sentiment entry with non-integral commentIndex {comment_index}")
                continue

            position = int(comment_index) - 1  # 1-indexed in the prompt
            if position < 0 or position >= len(comments):
                logger.debug(f"Dropping sentiment entry with out-of-range commentIndex {comment_index}")
                continue

            parsed[position] = result_from_payload(payload)

        results = []
        for position, comment in enumerate(comments):
            if position in parsed:
                results.append(parsed[position])
            else:
                results.append(create_fallback_result(comment.text, "missing from model response"))

        missing = len(comments) - len(parsed)
        if missing:
            logger.warning(f"Model response had no usable result for {missing}/{len(comments)} comments, used fallback")
        return results

    @staticmethod
    def _decode_payloads(text: str) -> List[Any]:
        if not text:
            return []

        try:
            data = json.loads(text)
            if isinstance(data, list):
                return data
            return [data]
        except json.JSONDecodeError:
            pass

        payloads = []
        for line in text.split("\n"):
            line = line.strip().rstrip(",")
            if not line:
                continue
            try:
                payloads.append(json.loads(line))
            except json.JSONDecodeError:
                logger.debug(f"Failed to parse sentiment response line: {line[:100]}")
        return payloads

    def _create_fallback_results(self, comments: List[Comment], reason: str) -> List[SentimentResult]:
        return [create_fallback_result(comment.text, reason) for comment in comments]

    def _validate_batch_results(self, results: List[SentimentResult], comments: List[Comment]) -> ValidationResult:
        """Quality checks for one batch (logged, never changes the results)"""
        issues = []
        recommendations = []
        quality_score = 1.0

        if len(results) != len(comments):
            issues.append(f"Result count mismatch: expected {len(comments)}, got {len(results)}")
            quality_score -= 0.5

        if not results:
            return ValidationResult(is_valid=False, issues=issues, quality_score=max(0.0, quality_score))

        confidences = [r.confidence for r in results]
        avg_confidence = sum(confidences) / len(confidences)
        low_confidence_count = sum(1 for c in confidences if c < 0.3)

        if avg_confidence < 0.5:
            issues.append(f"Low average confidence: {avg_confidence:.2f}")
            recommendations.append("Consider using more specific prompts or preprocessing comments")
            quality_score -= 0.2

        if low_confidence_count > len(results) * 0.4:
            issues.append(f"{low_confidence_count} results have very low confidence (<0.3)")
            recommendations.append("Review low-confidence results manually")
            quality_score -= 0.1

        max_sentiment_ratio = self._max_sentiment_ratio(results)
        if max_sentiment_ratio > 0.95:
            issues.append(f"Extremely skewed sentiment distribution: {max_sentiment_ratio:.2f}")
            recommendations.append("Verify comment diversity and analysis accuracy")
            quality_score -= 0.15

        with_emotions = sum(1 for r in results if r.emotions)
        if with_emotions < len(results) * 0.7:
            issues.append(f"{len(results) - with_emotions} results missing emotion data")
            recommendations.append("Improve emotion detection in prompts")
            quality_score -= 0.1

        return ValidationResult(
            is_valid=not issues,
            issues=issues,
            quality_score=max(0.0, quality_score),
            recommendations=recommendations,
        )

    @staticmethod
    def _max_sentiment_ratio(results: List[SentimentResult]) -> float:
        counts = {sentiment: 0 for sentiment in Sentiment}
        for result in results:
            counts[result.sentiment] += 1
        return max(counts.values()) / len(results)

    # ------------------------------------------------------------------ #
    # Run-level validation
    # ------------------------------------------------------------------ #
    def validate_results(self, results: List[SentimentResult]) -> ValidationResult:
        """
        Quality score for a whole run of sentiment results

        Args:
            results: Results of analyze_batch_sentiment

        Returns:
            ValidationResult; the score is scaled by the mean confidence
        """
        if not results:
            return ValidationResult(
                is_valid=False,
                issues=["No results to validate"],
                quality_score=0.0,
                recommendations=["Ensure comments are provided for analysis"],
            )

        issues = []
        recommendations = []
        quality_score = 1.0
        total = len(results)

        low_confidence_ratio = sum(1 for r in results if r.confidence < 0.3) / total
        if low_confidence_ratio > 0.5:
            issues.append("More than 50% of results have low confidence scores")
            recommendations.append("Consider improving comment preprocessing or using more specific prompts")
            quality_score -= 0.3

        if self._max_sentiment_ratio(results) > 0.9:
            issues.append("Sentiment distribution is highly skewed - may indicate analysis issues")
            recommendations.append("Review comment diversity and analysis methodology")
            quality_score -= 0.2

        without_emotions = sum(1 for r in results if not r.emotions)
        if without_emotions > total * 0.3:
            issues.append("More than 30% of results lack emotion data")
            recommendations.append("Enhance emotion detection in analysis prompts")
            quality_score -= 0.1

        emotion_scores = [e.score for r in results for e in r.emotions]
        avg_emotion_score = sum(emotion_scores) / len(emotion_scores) if emotion_scores else 0.0
        if avg_emotion_score < 0.3:
            issues.append("Emotion scores are consistently low")
            recommendations.append("Review emotion detection thresholds")
            quality_score -= 0.05

        invalid_confidence_count = sum(1 for r in results if r.confidence < 0 or r.confidence > 1)
        if invalid_confidence_count:
            issues.append(f"{invalid_confidence_count} results have invalid confidence scores")
            quality_score -= 0.2

        average_confidence = sum(r.confidence for r in results) / total
        quality_score = max(0.0, quality_score * average_confidence)

        if quality_score < 0.7:
            recommendations.append("Consider manual review of results")
        if quality_score < 0.5:
            recommendations.append("Results may need significant improvement - consider reprocessing")

        return ValidationResult(
            is_valid=not issues,
            issues=issues,
            quality_score=quality_score,
            recommendations=recommendations,
        )

    # ------------------------------------------------------------------ #
    # Advanced processing
    # ------------------------------------------------------------------ #
    def analyze_with_advanced_processing(
        self,
        comments: List[Comment],
        enable_validation: bool = True,
        confidence_threshold: float = 0.5,
        retry_low_confidence: bool = True,
        cancel_token: Optional[CancellationToken] = None
    ) -> AdvancedSentimentResult:
        """
        Batch analysis followed by single-comment retries of low-confidence results

        A retried result replaces the batch result only when its confidence is
        higher. A failed retry keeps the batch result and counts as a fallback.
        """
        start_time = time.time()
        batch_result = self.analyze_batch_sentiment(comments, cancel_token=cancel_token)
        results = list(batch_result.results)
        metrics = batch_result.metrics

        if retry_low_confidence:
            low_confidence_indices = [
                index for index, result in enumerate(results)
                if result.confidence < confidence_threshold
            ]

            if low_confidence_indices:
                logger.info(f"Retrying {len(low_confidence_indices)} low confidence results")

            for index in low_confidence_indices:
                try:
                    retry_result = self.analyze_single_comment(comments[index])
                except Exception as e:
                    logger.warning(f"Retry failed for comment {index}: {e}")
                    metrics.fallback_count += 1
                    continue

                if retry_result.confidence > results[index].confidence:
                    results[index] = retry_result
                    metrics.improved_count += 1

        if enable_validation:
            validation = self.validate_results(results)
            if not validation.is_valid:
                logger.info(f"Sentiment validation issues: {'; '.join(validation.issues)}")
        else:
            validation = ValidationResult(is_valid=True)

        metrics.total_processing_time = time.time() - start_time

        return AdvancedSentimentResult(
            results=results,
            summary=summarize_results(results),
            validation=validation,
            metrics=metrics,
        )

    def analyze_single_comment(self, comment: Comment) -> SentimentResult:
        """
        Classify one comment with the single-comment prompt

        Raises:
            LLMServiceError: The call failed, timed out or returned no JSON object
        """
        prompt = SINGLE_SENTIMENT_PROMPT.format(comment=comment.text)
        raw_response = generate_with_timeout(self.llm_client, prompt, self.request_timeout)

        cleaned = strip_code_fences(raw_response or "")
        match = re.search(r'\{.*\}', cleaned, re.DOTALL)
        if not match:
            raise LLMServiceError("Single comment response contained no JSON object")

        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise LLMServiceError(f"Invalid JSON in single comment response: {e}") from e

        if not isinstance(payload, dict):
            raise LLMServiceError("Single comment response is not a JSON object")

        return result_from_payload(payload)

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #
    def get_processing_stats(self) -> Dict[str, Any]:
        return {
            "batch_size": self.batch_size,
            "max_retries": self.max_retries,
            "retry_delay": self.retry_delay,
            "rate_limit_multiplier": self.rate_limit_multiplier,
            "retry_jitter": self.retry_jitter,
            "request_timeout": self.request_timeout,
        }

    def update_processing_config(
        self,
        batch_size: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None
    ) -> None:
        """
        Change batching/retry settings; out-of-range values are ignored

        Bounds: batch_size 1-50, max_retries 1-10, retry_delay 0.1-10 seconds.
        """
        if batch_size is not None:
            if 1 <= batch_size <= 50:
                self.batch_size = batch_size
            else:
                logger.warning(f"Ignoring batch_size {batch_size} (allowed 1-50)")

        if max_retries is not None:
            if 1 <= max_retries <= 10:
                self.max_retries = max_retries
            else:
                logger.warning(f"Ignoring max_retries {max_retries} (allowed 1-10)")

        if retry_delay is not None:
            if 0.1 <= retry_delay <= 10:
                self.retry_delay = retry_delay
            else:
                logger.warning(f"Ignoring retry_delay {retry_delay} (allowed 0.1-10s)")

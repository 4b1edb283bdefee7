"""
Rule-based sentiment used when the LLM is unavailable or gave no answer for a comment
"""
from typing import Optional

from models.analysis import Sentiment, SentimentResult, EmotionScore
from utils.logger import get_logger

logger = get_logger(__name__)

POSITIVE_WORDS = ["good", "great", "awesome", "love", "like", "amazing", "excellent", "fantastic", "wonderful"]
NEGATIVE_WORDS = ["bad", "hate", "terrible", "awful", "horrible", "disgusting", "stupid", "worst"]

FALLBACK_BASE_CONFIDENCE = 0.3
FALLBACK_MAX_CONFIDENCE = 0.6
CONFIDENCE_PER_HIT = 0.1


def create_fallback_result(text: str, reason: Optional[str] = None) -> SentimentResult:
    """
    Keyword-count sentiment for one comment

    Each listed word found in the text counts once. The side with more hits
    wins; a tie (including no hits) stays NEUTRAL at the base confidence.

    Args:
        text: Comment text
        reason: Why the fallback was needed (logged only)

    Returns:
        SentimentResult flagged as fallback
    """
    lowered = (text or "").lower()
    positive_count = sum(1 for word in POSITIVE_WORDS if word in lowered)
    negative_count = sum(1 for word in NEGATIVE_WORDS if word in lowered)

    sentiment = Sentiment.NEUTRAL
    confidence = FALLBACK_BASE_CONFIDENCE

    if positive_count > negative_count:
        sentiment = Sentiment.POSITIVE
        confidence = min(FALLBACK_MAX_CONFIDENCE, FALLBACK_BASE_CONFIDENCE + positive_count * CONFIDENCE_PER_HIT)
    elif negative_count > positive_count:
        sentiment = Sentiment.NEGATIVE
        confidence = min(FALLBACK_MAX_CONFIDENCE, FALLBACK_BASE_CONFIDENCE + negative_count * CONFIDENCE_PER_HIT)

    confidence = round(confidence, 2)

    emotions = []
    if sentiment == Sentiment.POSITIVE:
        emotions.append(EmotionScore(name="joy", score=confidence))
    elif sentiment == Sentiment.NEGATIVE:
        emotions.append(EmotionScore(name="anger", score=confidence))

    logger.debug(
        f"Fallback sentiment {sentiment.value} ({confidence:.2f}) for comment '{lowered[:50]}'"
        + (f" - reason: {reason}" if reason else "")
    )

    return SentimentResult(
        sentiment=sentiment,
        confidence=confidence,
        emotions=emotions,
        is_fallback=True,
    )

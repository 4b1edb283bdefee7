"""
Sentiment, theme and summary data models
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple

from models.comment import Comment


class Sentiment(str, Enum):
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"


def dominant_sentiment(counts: Dict["Sentiment", int]) -> "Sentiment":
    """
    Majority class of a sentiment tally

    Ties resolve POSITIVE, then NEGATIVE, then NEUTRAL.
    """
    positive = counts.get(Sentiment.POSITIVE, 0)
    negative = counts.get(Sentiment.NEGATIVE, 0)
    neutral = counts.get(Sentiment.NEUTRAL, 0)
    max_count = max(positive, negative, neutral)
    if max_count == positive:
        return Sentiment.POSITIVE
    if max_count == negative:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


# ---------------------------------------------------------------------------
# Sentiment
# ---------------------------------------------------------------------------
@dataclass
class EmotionScore:
    name: str
    score: float


@dataclass
class SentimentResult:
    """Sentiment of one comment, index-aligned with the analysed comments"""
    sentiment: Sentiment
    confidence: float
    emotions: List[EmotionScore] = field(default_factory=list)
    is_fallback: bool = False


@dataclass
class SentimentSummary:
    total_analyzed: int = 0
    average_confidence: float = 0.0
    # Fractions in [0, 1], keys: positive / negative / neutral
    sentiment_distribution: Dict[str, float] = field(
        default_factory=lambda: {"positive": 0.0, "negative": 0.0, "neutral": 0.0}
    )


@dataclass
class ProcessingMetrics:
    total_processing_time: float = 0.0
    batch_count: int = 0
    retry_count: int = 0  # Failed LLM attempts that were retried
    fallback_count: int = 0  # Results produced without the model
    improved_count: int = 0  # Low-confidence results replaced by a better single-comment answer


@dataclass
class ValidationResult:
    is_valid: bool
    issues: List[str] = field(default_factory=list)
    quality_score: float = 1.0
    recommendations: List[str] = field(default_factory=list)


@dataclass
class BatchSentimentResult:
    results: List[SentimentResult]
    summary: SentimentSummary
    metrics: ProcessingMetrics = field(default_factory=ProcessingMetrics)


@dataclass
class AdvancedSentimentResult:
    results: List[SentimentResult]
    summary: SentimentSummary
    validation: ValidationResult
    metrics: ProcessingMetrics


# ---------------------------------------------------------------------------
# Themes
# ---------------------------------------------------------------------------
@dataclass
class KeywordData:
    word: str
    frequency: int
    sentiment: Sentiment
    contexts: List[str]
    tfidf_score: float
    sentiment_score: float


@dataclass
class ThemeCluster:
    id: str
    name: str
    comments: List[Comment]
    sentiment: Sentiment
    frequency: int
    representative_comments: List[Comment]
    keywords: List[str]
    coherence_score: float


@dataclass
class ThemeSummary:
    total_themes: int = 0
    total_keywords: int = 0
    average_coherence: float = 0.0
    dominant_sentiment: Sentiment = Sentiment.NEUTRAL


@dataclass
class ThemeAnalysisResult:
    themes: List[ThemeCluster] = field(default_factory=list)
    keywords: List[KeywordData] = field(default_factory=list)
    summary: ThemeSummary = field(default_factory=ThemeSummary)


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------
@dataclass
class EmotionAnalysis:
    name: str
    prevalence: float  # Percentage of valid comments, one decimal
    description: str
    representative_comments: List[str] = field(default_factory=list)


@dataclass
class SummaryData:
    """Everything the summary generator needs from the earlier layers"""
    sentiment_breakdown: Dict[str, float]
    themes: List[ThemeCluster]
    keywords: List[KeywordData]
    total_comments: int
    filtered_comments: int

    @property
    def valid_comments(self) -> int:
        return self.total_comments - self.filtered_comments


@dataclass
class GeneratedSummary:
    summary: str
    emotions: List[EmotionAnalysis]
    key_insights: List[str]
    recommendations: List[str]
    quality_score: float
    word_count: int
    is_fallback: bool = False


@dataclass
class LengthCheck:
    word_count: int
    is_within_range: bool
    target_range: Tuple[int, int]


@dataclass
class SummaryValidation:
    is_valid: bool
    issues: List[str]
    quality_score: float
    recommendations: List[str]
    length_check: LengthCheck

"""
Narrative summary generation with retry, self-validation and template fallback
"""
import re
import time
from typing import Any, Dict, Optional, Tuple

from models.analysis import SummaryData, GeneratedSummary, EmotionAnalysis
from layer_4_summary.insights import (
    analyze_emotions,
    generate_key_insights,
    generate_recommendations,
    get_emotion_description,
    percent,
)
from layer_4_summary.summary_validator import validate_summary
from utils.llm_client import LLMClient, SUMMARY_GENERATION_CONFIG, generate_with_timeout
from utils.exceptions import LLMServiceError, LLMUnavailableError
from config.settings import settings
from utils.logger import get_logger

logger = get_logger(__name__)

MIN_RESPONSE_CHARS = 10
FALLBACK_QUALITY_SCORE = 0.4
EMPTY_QUALITY_SCORE = 0.5

EMPTY_SUMMARY_TEXT = (
    "No comments available for analysis. Consider encouraging audience engagement "
    "through questions or calls-to-action."
)

SUMMARY_PROMPT = """You are an expert content analyst. Generate a concise, insightful summary of audience sentiment based on the following comment analysis data.

ANALYSIS DATA:
- Total Comments Analyzed: {valid_comments}
- Sentiment Distribution: {positive}% positive, {negative}% negative, {neutral}% neutral
- Top Themes: {themes}
- Key Keywords: {keywords}

REQUIREMENTS:
1. Write exactly 3-5 sentences ({min_words}-{max_words} words)
2. Start with overall sentiment assessment
3. Highlight the most significant themes or patterns
4. Mention specific audience reactions or concerns
5. Use professional, actionable language
6. Focus on insights that help content creators understand their audience

EXAMPLE STRUCTURE:
"The audience response shows [overall sentiment] with [percentage] expressing [dominant reaction]. The most prominent themes include [key themes], indicating [audience insight]. [Specific pattern or concern]. This suggests [actionable insight for creator]."

Generate the summary now:"""


def clean_summary_text(text: str) -> str:
    """Strip markdown, collapse whitespace, capitalize and end with punctuation"""
    cleaned = re.sub(r'[*_`#]', '', text)
    cleaned = re.sub(r'\s+', ' ', cleaned).strip()
    cleaned = re.sub(r'([.!?])\s*([a-z])', r'\1 \2', cleaned)

    if cleaned:
        cleaned = cleaned[0].upper() + cleaned[1:]
    if cleaned and not re.search(r'[.!?]$', cleaned):
        cleaned += "."
    return cleaned


def count_words(text: str) -> int:
    return len(text.split())


class SummaryGenerator:
    """Write the narrative summary of a comment analysis"""

    def __init__(self, llm_client: Optional[LLMClient] = None):
        """
        Initialize generator

        Args:
            llm_client: LLM client instance (creates new one if not provided)
        """
        self.llm_client = llm_client or LLMClient(generation_config=dict(SUMMARY_GENERATION_CONFIG))
        self.max_retries = settings.SUMMARY_MAX_RETRIES
        self.retry_delay = settings.SUMMARY_RETRY_DELAY
        self.request_timeout = settings.LLM_REQUEST_TIMEOUT
        self.target_word_range: Tuple[int, int] = (settings.SUMMARY_MIN_WORDS, settings.SUMMARY_MAX_WORDS)
        self.max_summary_length = 500  # Characters
        self.min_quality_score = 0.6

    def generate_summary(self, summary_data: SummaryData) -> GeneratedSummary:
        """
        Generate the summary, emotions, insights and recommendations

        A result that fails validation is retried while attempts remain and
        returned as-is on the last attempt. If every attempt raises, the
        template summary is returned instead.

        Args:
            summary_data: Sentiment breakdown, themes, keywords and counts

        Returns:
            GeneratedSummary
        """
        if summary_data.total_comments == 0 or summary_data.valid_comments <= 0:
            logger.info("No valid comments, returning empty summary")
            return self.create_empty_summary()

        last_error = None
        for attempt in range(1, self.max_retries + 1):
            try:
                summary_text = self._generate_main_summary(summary_data)

                result = GeneratedSummary(
                    summary=summary_text,
                    emotions=analyze_emotions(summary_data),
                    key_insights=generate_key_insights(summary_data),
                    recommendations=generate_recommendations(summary_data),
                    quality_score=0.0,
                    word_count=count_words(summary_text),
                )

                validation = self.validate_summary(result, summary_data)
                result.quality_score = validation.quality_score

                if validation.is_valid or attempt == self.max_retries:
                    logger.info(
                        f"Summary generated on attempt {attempt}: {result.word_count} words, "
                        f"quality {result.quality_score:.2f}"
                    )
                    return result

                logger.warning(
                    f"Summary quality below threshold ({validation.quality_score:.2f}): "
                    f"{'; '.join(validation.issues)}. Retrying..."
                )
                time.sleep(self.retry_delay * attempt)

            except LLMUnavailableError as e:
                logger.warning(f"LLM unavailable, using fallback summary: {e}")
                return self.generate_fallback_summary(summary_data, str(e))

            except Exception as e:
                last_error = e
                if attempt < self.max_retries:
                    logger.warning(f"Summary generation attempt {attempt}/{self.max_retries} failed: {e}")
                    time.sleep(self.retry_delay * attempt)
                else:
                    logger.error(f"All {self.max_retries} summary attempts failed. Generating fallback summary.")

        return self.generate_fallback_summary(summary_data, str(last_error) if last_error else None)

    def _generate_main_summary(self, summary_data: SummaryData) -> str:
        prompt = self._build_summary_prompt(summary_data)
        text = (generate_with_timeout(self.llm_client, prompt, self.request_timeout) or "").strip()

        if len(text) < MIN_RESPONSE_CHARS:
            raise LLMServiceError("Empty or invalid AI response")

        return clean_summary_text(text)

    def _build_summary_prompt(self, summary_data: SummaryData) -> str:
        breakdown = summary_data.sentiment_breakdown
        top_themes = ", ".join(
            f'"{theme.name}" ({theme.frequency} comments, {theme.sentiment.value.lower()} sentiment)'
            for theme in summary_data.themes[:3]
        )
        top_keywords = ", ".join(kw.word for kw in summary_data.keywords[:5])

        return SUMMARY_PROMPT.format(
            valid_comments=summary_data.valid_comments,
            positive=percent(breakdown.get("positive", 0.0)),
            negative=percent(breakdown.get("negative", 0.0)),
            neutral=percent(breakdown.get("neutral", 0.0)),
            themes=top_themes,
            keywords=top_keywords,
            min_words=self.target_word_range[0],
            max_words=self.target_word_range[1],
        )

    def validate_summary(self, summary: GeneratedSummary, summary_data: SummaryData):
        return validate_summary(
            summary,
            summary_data,
            target_word_range=self.target_word_range,
            min_quality_score=self.min_quality_score,
        )

    def create_empty_summary(self) -> GeneratedSummary:
        return GeneratedSummary(
            summary=EMPTY_SUMMARY_TEXT,
            emotions=[],
            key_insights=["No comment data available for analysis"],
            recommendations=[
                "Encourage audience engagement",
                "Ask questions in your content",
                "Use calls-to-action to prompt responses",
            ],
            quality_score=EMPTY_QUALITY_SCORE,
            word_count=15,
        )

    def generate_fallback_summary(self, summary_data: SummaryData, error_message: Optional[str] = None) -> GeneratedSummary:
        """Template summary built only from the numbers (no model call)"""
        valid_comments = summary_data.valid_comments
        if valid_comments <= 0:
            return self.create_empty_summary()

        breakdown = summary_data.sentiment_breakdown
        positive = breakdown.get("positive", 0.0)
        negative = breakdown.get("negative", 0.0)
        neutral = breakdown.get("neutral", 0.0)
        positive_percent, negative_percent, neutral_percent = percent(positive), percent(negative), percent(neutral)

        dominant = "mixed"
        if positive > 0.5:
            dominant = "positive"
        elif negative > 0.4:
            dominant = "negative"
        elif neutral > 0.5:
            dominant = "neutral"

        top_theme = summary_data.themes[0].name if summary_data.themes else "general discussion"

        summary_text = (
            f"The audience response shows {dominant} sentiment with {positive_percent}% positive, "
            f"{negative_percent}% negative, and {neutral_percent}% neutral reactions across "
            f"{valid_comments} comments. The most prominent theme is \"{top_theme}\" which indicates "
            f"key areas of audience interest. This analysis provides insights into how your content "
            f"resonates with viewers."
        )

        emotions = []
        if positive > 0.3:
            emotions.append(EmotionAnalysis(
                name="satisfaction",
                prevalence=float(positive_percent),
                description=get_emotion_description("satisfaction"),
            ))
        if negative > 0.2:
            emotions.append(EmotionAnalysis(
                name="concern",
                prevalence=float(negative_percent),
                description=get_emotion_description("concern"),
            ))

        logger.warning(f"Using fallback summary generation due to error: {error_message}")

        return GeneratedSummary(
            summary=summary_text,
            emotions=emotions[:3],
            key_insights=[
                f"{dominant.capitalize()} audience sentiment detected",
                f'"{top_theme}" is the primary discussion topic',
            ],
            recommendations=[
                "Continue creating similar content" if dominant == "positive" else "Address audience concerns",
                "Monitor comment patterns for content optimization",
            ],
            quality_score=FALLBACK_QUALITY_SCORE,
            word_count=count_words(summary_text),
            is_fallback=True,
        )

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #
    def get_configuration(self) -> Dict[str, Any]:
        return {
            "max_retries": self.max_retries,
            "retry_delay": self.retry_delay,
            "target_word_range": self.target_word_range,
            "max_summary_length": self.max_summary_length,
            "min_quality_score": self.min_quality_score,
        }

    def update_configuration(
        self,
        target_word_range: Optional[Tuple[int, int]] = None,
        max_summary_length: Optional[int] = None,
        min_quality_score: Optional[float] = None
    ) -> None:
        """Apply the values that pass their sanity checks; others are ignored"""
        if target_word_range is not None:
            low, high = target_word_range
            if low > 0 and high > low:
                self.target_word_range = (low, high)
            else:
                logger.warning(f"Ignoring target_word_range {target_word_range}")

        if max_summary_length is not None:
            if max_summary_length > 100:
                self.max_summary_length = max_summary_length
            else:
                logger.warning(f"Ignoring max_summary_length {max_summary_length} (must be > 100)")

        if min_quality_score is not None:
            if 0 <= min_quality_score <= 1:
                self.min_quality_score = min_quality_score
            else:
                logger.warning(f"Ignoring min_quality_score {min_quality_score} (allowed 0-1)")

"""
Unit tests for Layer 4: Summary Generation
Tests emotion inference, insights, validation, retries and fallback summaries
"""
import sys
import os
from unittest.mock import Mock, patch

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.comment import Comment
from models.analysis import (
    Sentiment,
    KeywordData,
    ThemeCluster,
    SummaryData,
    GeneratedSummary,
    EmotionAnalysis,
)
from layer_4_summary.insights import (
    analyze_emotions,
    generate_key_insights,
    generate_recommendations,
    infer_emotion_from_theme,
    round_half_up,
    percent,
)
from layer_4_summary.summary_validator import validate_summary
from layer_4_summary.summary_generator import SummaryGenerator, clean_summary_text, EMPTY_SUMMARY_TEXT
from utils.exceptions import LLMServiceError, LLMUnavailableError
from utils.logger import get_logger

logger = get_logger(__name__)

SLEEP_PATH = 'layer_4_summary.summary_generator.time.sleep'

GOOD_SUMMARY = " ".join(
    ["The audience response is strongly positive with 75% of viewers praising the editing."] * 6
)


def make_theme(name, sentiment, frequency, keywords):
    comments = [Comment(id=f"{name}_{i}", text=f"{name} comment {i}") for i in range(frequency)]
    return ThemeCluster(
        id=f"theme_{name}",
        name=name,
        comments=comments,
        sentiment=sentiment,
        frequency=frequency,
        representative_comments=comments[:3],
        keywords=keywords,
        coherence_score=0.6,
    )


def make_keyword(word, frequency):
    return KeywordData(
        word=word,
        frequency=frequency,
        sentiment=Sentiment.POSITIVE,
        contexts=[word],
        tfidf_score=0.2,
        sentiment_score=1.0,
    )


def positive_data():
    return SummaryData(
        sentiment_breakdown={"positive": 0.75, "negative": 0.125, "neutral": 0.125},
        themes=[make_theme("Editing & Music", Sentiment.POSITIVE, 4, ["love", "editing"])],
        keywords=[make_keyword("editing", 4)],
        total_comments=10,
        filtered_comments=2,
    )


def negative_data():
    return SummaryData(
        sentiment_breakdown={"positive": 0.2, "negative": 0.5, "neutral": 0.3},
        themes=[make_theme("Audio & Sound", Sentiment.NEGATIVE, 5, ["audio", "terrible"])],
        keywords=[make_keyword("audio", 5)],
        total_comments=20,
        filtered_comments=8,
    )


def empty_data():
    return SummaryData(
        sentiment_breakdown={"positive": 0.0, "negative": 0.0, "neutral": 0.0},
        themes=[],
        keywords=[],
        total_comments=0,
        filtered_comments=0,
    )


class TestInsights:
    """Test rule-based emotions, insights and recommendations"""

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.125 * 100, 1) == 12.5
        assert percent(0.125) == 13

    def test_infer_emotion(self):
        assert infer_emotion_from_theme(make_theme("a", Sentiment.POSITIVE, 2, ["love"])) == "joy"
        assert infer_emotion_from_theme(make_theme("b", Sentiment.POSITIVE, 2, ["edit"])) == "satisfaction"
        assert infer_emotion_from_theme(make_theme("c", Sentiment.NEGATIVE, 2, ["hate"])) == "anger"
        assert infer_emotion_from_theme(make_theme("d", Sentiment.NEGATIVE, 2, ["audio"])) == "frustration"
        assert infer_emotion_from_theme(make_theme("e", Sentiment.NEUTRAL, 2, ["question"])) == "curiosity"
        assert infer_emotion_from_theme(make_theme("f", Sentiment.NEUTRAL, 2, ["audio"])) is None

    def test_analyze_emotions(self):
        data = SummaryData(
            sentiment_breakdown={"positive": 0.5, "negative": 0.3, "neutral": 0.2},
            themes=[
                make_theme("Love", Sentiment.POSITIVE, 3, ["love"]),
                make_theme("Audio", Sentiment.NEGATIVE, 5, ["audio"]),
                make_theme("Misc", Sentiment.NEUTRAL, 2, ["random"]),
                make_theme("Great", Sentiment.POSITIVE, 1, ["great"]),
            ],
            keywords=[],
            total_comments=12,
            filtered_comments=0,
        )

        emotions = analyze_emotions(data)

        assert [e.name for e in emotions] == ["frustration", "joy"]
        assert emotions[0].prevalence == 41.7
        assert emotions[1].prevalence == 33.3
        assert emotions[1].description == "Positive excitement and happiness"
        assert len(emotions[1].representative_comments) <= 3

    def test_key_insights(self):
        insights = generate_key_insights(positive_data())
        assert insights[0] == "Strong positive reception with 75% positive sentiment"
        assert '"Editing & Music" is the dominant discussion topic (50% of comments)' in insights
        assert '"editing" appears 4 times, indicating strong audience focus' in insights

    def test_key_insights_heavy_filtering(self):
        insights = generate_key_insights(negative_data())
        assert insights[0].startswith("Significant negative feedback")
        assert "High spam/toxic content filtered (8 comments removed)" in insights

    def test_recommendations(self):
        recommendations = generate_recommendations(positive_data())
        assert recommendations == [
            "Leverage this positive momentum by creating similar content",
            'Expand on the "Editing & Music" topic that resonates well with your audience',
            "Encourage more audience engagement through questions or calls-to-action",
        ]

    def test_recommendations_are_capped(self):
        recommendations = generate_recommendations(negative_data())
        assert len(recommendations) == 3
        assert recommendations[0] == "Address the concerns raised in negative feedback"


class TestSummaryValidator:
    """Test quality scoring"""

    def _summary(self, text, emotions=None, insights=None, recommendations=None):
        return GeneratedSummary(
            summary=text,
            emotions=emotions if emotions is not None else [EmotionAnalysis("joy", 50.0, "")],
            key_insights=insights if insights is not None else ["insight"],
            recommendations=recommendations if recommendations is not None else ["do this"],
            quality_score=0.0,
            word_count=len(text.split()),
        )

    def test_good_summary_is_valid(self):
        validation = validate_summary(self._summary(GOOD_SUMMARY), positive_data())
        assert validation.is_valid is True
        assert validation.quality_score == 1.0
        assert validation.length_check.is_within_range is True

    def test_short_summary_penalties(self):
        validation = validate_summary(self._summary("Too short summary here."), positive_data())
        assert validation.is_valid is False
        assert validation.quality_score == pytest.approx(0.4)
        assert validation.length_check.word_count == 4

    def test_emotion_prevalence_over_100(self):
        emotions = [EmotionAnalysis("joy", 60.0, ""), EmotionAnalysis("anger", 50.0, "")]
        validation = validate_summary(self._summary(GOOD_SUMMARY, emotions=emotions), positive_data())
        assert "Emotion prevalence percentages exceed 100%" in validation.issues
        assert validation.quality_score == pytest.approx(0.8)

    def test_missing_parts(self):
        validation = validate_summary(
            self._summary(GOOD_SUMMARY, emotions=[], insights=[], recommendations=[]), positive_data()
        )
        assert validation.quality_score == pytest.approx(0.65)
        assert validation.is_valid is False


class TestSummaryGenerator:
    """Test summary generation with retries and fallback"""

    def test_clean_summary_text(self):
        assert clean_summary_text("**great** results\n\n`shown` here") == "Great results shown here."
        assert clean_summary_text("Done!") == "Done!"

    def test_empty_input_returns_empty_summary(self):
        llm = Mock()
        generator = SummaryGenerator(llm_client=llm)
        result = generator.generate_summary(empty_data())
        assert result.summary == EMPTY_SUMMARY_TEXT
        assert result.quality_score == 0.5
        llm.generate.assert_not_called()

    def test_valid_first_attempt(self):
        llm = Mock()
        llm.generate.return_value = GOOD_SUMMARY
        generator = SummaryGenerator(llm_client=llm)

        result = generator.generate_summary(positive_data())

        assert llm.generate.call_count == 1
        assert result.quality_score == 1.0
        assert result.word_count == 78
        assert result.is_fallback is False
        assert result.emotions[0].name == "joy"
        assert result.emotions[0].prevalence == 50.0

    def test_retry_when_validation_fails(self):
        llm = Mock()
        llm.generate.side_effect = ["Too short summary here.", GOOD_SUMMARY]
        generator = SummaryGenerator(llm_client=llm)

        with patch(SLEEP_PATH) as mock_sleep:
            result = generator.generate_summary(positive_data())

        assert llm.generate.call_count == 2
        assert result.quality_score == 1.0
        mock_sleep.assert_called_once_with(generator.retry_delay * 1)

    def test_last_attempt_returned_even_if_invalid(self):
        llm = Mock()
        llm.generate.return_value = "Too short summary here."
        generator = SummaryGenerator(llm_client=llm)

        with patch(SLEEP_PATH):
            result = generator.generate_summary(positive_data())

        assert llm.generate.call_count == generator.max_retries
        assert result.is_fallback is False
        assert result.quality_score < generator.min_quality_score

    def test_fallback_when_every_attempt_fails(self):
        llm = Mock()
        llm.generate.side_effect = LLMServiceError("server error")
        generator = SummaryGenerator(llm_client=llm)

        with patch(SLEEP_PATH):
            result = generator.generate_summary(positive_data())

        assert llm.generate.call_count == generator.max_retries
        assert result.is_fallback is True
        assert result.quality_score == 0.4
        assert "positive sentiment with 75% positive" in result.summary
        assert '"Editing & Music"' in result.summary
        assert result.emotions[0].name == "satisfaction"

    def test_too_short_response_is_an_error(self):
        llm = Mock()
        llm.generate.return_value = "ok"
        generator = SummaryGenerator(llm_client=llm)

        with patch(SLEEP_PATH):
            result = generator.generate_summary(positive_data())

        assert result.is_fallback is True

    def test_unavailable_llm_goes_straight_to_fallback(self):
        llm = Mock()
        llm.generate.side_effect = LLMUnavailableError("Gemini API key is required")
        generator = SummaryGenerator(llm_client=llm)

        with patch(SLEEP_PATH) as mock_sleep:
            result = generator.generate_summary(negative_data())

        assert llm.generate.call_count == 1
        assert result.is_fallback is True
        assert "negative sentiment" in result.summary
        assert [e.name for e in result.emotions] == ["concern"]
        mock_sleep.assert_not_called()

    def test_prompt_contains_numbers(self):
        generator = SummaryGenerator(llm_client=Mock())
        prompt = generator._build_summary_prompt(positive_data())
        assert "Total Comments Analyzed: 8" in prompt
        assert "75% positive, 13% negative, 13% neutral" in prompt
        assert '"Editing & Music" (4 comments, positive sentiment)' in prompt
        assert "Key Keywords: editing" in prompt

    def test_update_configuration(self):
        generator = SummaryGenerator(llm_client=Mock())
        generator.update_configuration(target_word_range=(50, 100), max_summary_length=50, min_quality_score=1.5)
        config = generator.get_configuration()
        assert config["target_word_range"] == (50, 100)
        assert config["max_summary_length"] == 500
        assert config["min_quality_score"] == 0.6


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))

"""
Unit tests for Layer 2: Sentiment Analysis
Tests response parsing, retry/backoff, fallback sentiment and validation
"""
import sys
import os
import json
import threading
from unittest.mock import Mock, patch

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.comment import Comment
from models.analysis import Sentiment, SentimentResult, EmotionScore
from layer_2_sentiment.fallback import create_fallback_result
from layer_2_sentiment.sentiment_analyzer import (
    SentimentAnalyzer,
    normalize_sentiment,
    normalize_emotions,
    summarize_results,
)
from utils.cancellation import CancellationToken
from utils.llm_client import LLMClient, generate_with_timeout
from utils.exceptions import LLMServiceError, LLMTimeoutError, LLMUnavailableError, AnalysisCancelledError
from utils.logger import get_logger

logger = get_logger(__name__)

SLEEP_PATH = 'layer_2_sentiment.sentiment_analyzer.time.sleep'


def make_comments(*texts):
    return [Comment(id=f"c{i}", text=text) for i, text in enumerate(texts, 1)]


def response_line(index, sentiment, confidence, emotions=None):
    return json.dumps({
        "commentIndex": index,
        "sentiment": sentiment,
        "confidence": confidence,
        "emotions": emotions if emotions is not None else [{"name": "joy", "score": 0.7}],
    })


def make_analyzer(llm):
    analyzer = SentimentAnalyzer(llm_client=llm)
    analyzer.max_retries = 3
    analyzer.batch_size = 10
    return analyzer


class TestFallbackSentiment:
    """Test keyword-based fallback"""

    def test_positive_word(self):
        result = create_fallback_result("This video is amazing")
        assert result.sentiment == Sentiment.POSITIVE
        assert result.confidence >= 0.3
        assert result.is_fallback is True
        assert result.emotions[0].name == "joy"

    def test_negative_words(self):
        result = create_fallback_result("terrible and awful audio")
        assert result.sentiment == Sentiment.NEGATIVE
        assert result.confidence == 0.5
        assert result.emotions[0].name == "anger"

    def test_no_hits_is_neutral(self):
        result = create_fallback_result("posted on tuesday")
        assert result.sentiment == Sentiment.NEUTRAL
        assert result.confidence == 0.3
        assert result.emotions == []

    def test_confidence_is_capped(self):
        result = create_fallback_result("good great awesome love amazing excellent")
        assert result.confidence == 0.6


class TestNormalization:
    """Test response field normalization"""

    def test_normalize_sentiment(self):
        assert normalize_sentiment("positive") == Sentiment.POSITIVE
        assert normalize_sentiment(" Negative ") == Sentiment.NEGATIVE
        assert normalize_sentiment("delighted") == Sentiment.NEUTRAL
        assert normalize_sentiment(None) == Sentiment.NEUTRAL

    def test_normalize_emotions(self):
        emotions = normalize_emotions([
            {"name": "Joy", "score": 0.9},
            {"name": "boredom", "score": 0.8},
            {"name": "trust", "score": 1.7},
            {"name": "fear", "score": 0.1},
            {"name": "surprise", "score": 0.5},
        ])
        assert [e.name for e in emotions] == ["trust", "joy", "surprise"]
        assert emotions[0].score == 1.0

    def test_normalize_emotions_not_a_list(self):
        assert normalize_emotions("joy") == []

    def test_summarize_results(self):
        results = [
            SentimentResult(sentiment=Sentiment.POSITIVE, confidence=0.8),
            SentimentResult(sentiment=Sentiment.POSITIVE, confidence=0.6),
            SentimentResult(sentiment=Sentiment.NEGATIVE, confidence=0.4),
            SentimentResult(sentiment=Sentiment.NEUTRAL, confidence=0.2),
        ]
        summary = summarize_results(results)
        assert summary.total_analyzed == 4
        assert summary.average_confidence == pytest.approx(0.5)
        assert summary.sentiment_distribution == {"positive": 0.5, "negative": 0.25, "neutral": 0.25}


class TestResponseParsing:
    """Test tolerant parsing of model answers"""

    def test_line_delimited_response(self):
        analyzer = make_analyzer(Mock())
        comments = make_comments("great stuff", "awful audio")
        raw = response_line(1, "POSITIVE", 0.9) + "\n" + response_line(2, "negative", 0.8)

        results = analyzer._parse_batch_response(raw, comments)

        assert [r.sentiment for r in results] == [Sentiment.POSITIVE, Sentiment.NEGATIVE]
        assert not any(r.is_fallback for r in results)

    def test_fenced_json_array(self):
        analyzer = make_analyzer(Mock())
        comments = make_comments("great stuff", "awful audio")
        raw = "```json\n[" + response_line(2, "NEGATIVE", 0.7) + "," + response_line(1, "POSITIVE", 0.9) + "]\n```"

        results = analyzer._parse_batch_response(raw, comments)

        assert results[0].sentiment == Sentiment.POSITIVE
        assert results[1].sentiment == Sentiment.NEGATIVE

    def test_malformed_lines_are_dropped(self):
        analyzer = make_analyzer(Mock())
        comments = make_comments("great stuff", "awful audio", "posted today")
        raw = "\n".join([
            response_line(1, "POSITIVE", 0.9),
            "not json at all",
            "[1, 2, 3]",
            response_line(7, "NEGATIVE", 0.9),
            '{"sentiment": "NEGATIVE"}',
        ])

        results = analyzer._parse_batch_response(raw, comments)

        assert len(results) == 3
        assert results[0].is_fallback is False
        assert results[1].is_fallback is True
        assert results[2].is_fallback is True

    def test_empty_response_gives_fallback_for_every_comment(self):
        analyzer = make_analyzer(Mock())
        comments = make_comments("great stuff", "awful audio")
        results = analyzer._parse_batch_response("", comments)
        assert len(results) == 2
        assert all(r.is_fallback for r in results)

    def test_missing_confidence_defaults(self):
        analyzer = make_analyzer(Mock())
        comments = make_comments("great stuff")
        results = analyzer._parse_batch_response('{"commentIndex": 1, "sentiment": "POSITIVE"}', comments)
        assert results[0].confidence == 0.5
        assert results[0].emotions == []

    def test_fractional_comment_index_is_dropped(self):
        analyzer = make_analyzer(Mock())
        comments = make_comments("great stuff", "awful audio")
        raw = response_line(2, "NEGATIVE", 0.8) + "\n" + response_line(1.7, "POSITIVE", 0.9)

        results = analyzer._parse_batch_response(raw, comments)

        assert results[0].is_fallback is True
        assert results[1].sentiment == Sentiment.NEGATIVE
        assert results[1].is_fallback is False

    def test_integral_float_comment_index_is_accepted(self):
        analyzer = make_analyzer(Mock())
        comments = make_comments("great stuff")
        results = analyzer._parse_batch_response(response_line(1.0, "POSITIVE", 0.9), comments)
        assert results[0].sentiment == Sentiment.POSITIVE
        assert results[0].is_fallback is False


class TestBatchAnalysis:
    """Test batching, retry and fallback behaviour"""

    def test_empty_input(self):
        llm = Mock()
        analyzer = make_analyzer(llm)
        result = analyzer.analyze_batch_sentiment([])
        assert result.results == []
        assert result.summary.total_analyzed == 0
        llm.generate.assert_not_called()

    def test_successful_batch(self):
        llm = Mock()
        llm.generate.return_value = response_line(1, "POSITIVE", 0.9) + "\n" + response_line(2, "NEGATIVE", 0.8)
        analyzer = make_analyzer(llm)

        with patch(SLEEP_PATH):
            result = analyzer.analyze_batch_sentiment(make_comments("love it", "hate the music"))

        assert [r.sentiment for r in result.results] == [Sentiment.POSITIVE, Sentiment.NEGATIVE]
        assert result.metrics.retry_count == 0
        assert result.metrics.batch_count == 1
        assert result.metrics.fallback_count == 0
        assert result.summary.sentiment_distribution["positive"] == 0.5

    def test_fail_fail_succeed_records_two_retries(self):
        llm = Mock()
        success = response_line(1, "POSITIVE", 0.95) + "\n" + response_line(2, "NEUTRAL", 0.6)
        llm.generate.side_effect = [LLMServiceError("server error"), LLMServiceError("server error"), success]
        analyzer = make_analyzer(llm)

        with patch(SLEEP_PATH) as mock_sleep:
            result = analyzer.analyze_batch_sentiment(make_comments("nice", "posted today"))

        assert llm.generate.call_count == 3
        assert result.metrics.retry_count == 2
        assert result.results[0].sentiment == Sentiment.POSITIVE
        assert result.results[0].confidence == 0.95
        assert result.results[1].sentiment == Sentiment.NEUTRAL
        assert not any(r.is_fallback for r in result.results)
        assert mock_sleep.call_count == 2

    def test_all_attempts_fail_uses_fallback(self):
        llm = Mock()
        llm.generate.side_effect = LLMServiceError("server error")
        analyzer = make_analyzer(llm)

        with patch(SLEEP_PATH):
            result = analyzer.analyze_batch_sentiment(make_comments("this is amazing", "terrible sound"))

        assert llm.generate.call_count == 3
        assert result.metrics.retry_count == 2
        assert result.metrics.fallback_count == 2
        assert result.results[0].sentiment == Sentiment.POSITIVE
        assert result.results[1].sentiment == Sentiment.NEGATIVE

    def test_unavailable_llm_skips_retries(self):
        llm = Mock()
        llm.generate.side_effect = LLMUnavailableError("Gemini API key is required")
        analyzer = make_analyzer(llm)

        with patch(SLEEP_PATH) as mock_sleep:
            result = analyzer.analyze_batch_sentiment(make_comments("amazing", "ok then"))

        assert llm.generate.call_count == 1
        assert result.metrics.retry_count == 0
        assert all(r.is_fallback for r in result.results)
        mock_sleep.assert_not_called()

    def test_results_align_across_batches(self):
        llm = Mock()
        llm.generate.return_value = ""
        analyzer = make_analyzer(llm)
        comments = make_comments(*[f"comment number {i}" for i in range(25)])

        with patch(SLEEP_PATH) as mock_sleep:
            result = analyzer.analyze_batch_sentiment(comments)

        assert llm.generate.call_count == 3
        assert len(result.results) == 25
        assert result.metrics.batch_count == 3
        # Pause between batches, none after the last
        assert mock_sleep.call_count == 2

    def test_cancelled_before_first_batch(self):
        llm = Mock()
        analyzer = make_analyzer(llm)
        token = CancellationToken()
        token.cancel()

        with pytest.raises(AnalysisCancelledError):
            analyzer.analyze_batch_sentiment(make_comments("nice"), cancel_token=token)
        llm.generate.assert_not_called()

    def test_backoff_delay(self):
        analyzer = make_analyzer(Mock())
        analyzer.retry_delay = 1.0
        analyzer.rate_limit_multiplier = 5.0

        with patch('layer_2_sentiment.sentiment_analyzer.random.uniform', return_value=0.0):
            assert analyzer._backoff_delay(1, False) == 1.0
            assert analyzer._backoff_delay(3, False) == 4.0
            assert analyzer._backoff_delay(2, True) == 10.0

    def test_rate_limit_error_uses_longer_backoff(self):
        llm = Mock()
        success = response_line(1, "POSITIVE", 0.9)
        llm.generate.side_effect = [LLMServiceError("429 Resource has been exhausted (e.g. check quota)"), success]
        analyzer = make_analyzer(llm)
        analyzer.retry_delay = 1.0
        analyzer.rate_limit_multiplier = 5.0

        with patch.object(analyzer, '_backoff_delay', wraps=analyzer._backoff_delay) as backoff_spy, \
                patch('layer_2_sentiment.sentiment_analyzer.random.uniform', return_value=0.0), \
                patch(SLEEP_PATH) as mock_sleep:
            result = analyzer.analyze_batch_sentiment(make_comments("love it"))

        backoff_spy.assert_called_once_with(1, True)
        mock_sleep.assert_called_once_with(5.0)
        assert result.metrics.retry_count == 1
        assert result.results[0].is_fallback is False

    def test_ordinary_error_uses_base_backoff(self):
        llm = Mock()
        llm.generate.side_effect = [LLMServiceError("server error"), response_line(1, "POSITIVE", 0.9)]
        analyzer = make_analyzer(llm)
        analyzer.retry_delay = 1.0

        with patch.object(analyzer, '_backoff_delay', wraps=analyzer._backoff_delay) as backoff_spy, \
                patch('layer_2_sentiment.sentiment_analyzer.random.uniform', return_value=0.0), \
                patch(SLEEP_PATH) as mock_sleep:
            analyzer.analyze_batch_sentiment(make_comments("love it"))

        backoff_spy.assert_called_once_with(1, False)
        mock_sleep.assert_called_once_with(1.0)

    def test_slow_model_times_out_and_retries(self):
        release = threading.Event()
        llm = Mock()
        llm.generate.side_effect = lambda prompt: release.wait(0.5) and ""
        analyzer = make_analyzer(llm)
        analyzer.request_timeout = 0.05

        try:
            with patch(SLEEP_PATH):
                result = analyzer.analyze_batch_sentiment(make_comments("this is amazing", "terrible sound"))
        finally:
            release.set()

        assert llm.generate.call_count == 3
        assert result.metrics.retry_count == 2
        assert all(r.is_fallback for r in result.results)
        assert result.results[0].sentiment == Sentiment.POSITIVE

    def test_generate_with_timeout(self):
        release = threading.Event()
        slow = Mock()
        slow.generate.side_effect = lambda prompt: release.wait(0.5) and "late"

        try:
            with pytest.raises(LLMTimeoutError) as excinfo:
                generate_with_timeout(slow, "prompt", 0.05)
        finally:
            release.set()
        assert excinfo.value.timeout_seconds == 0.05

        fast = Mock()
        fast.generate.return_value = "answer"
        assert generate_with_timeout(fast, "prompt", 1.0) == "answer"

    def test_client_without_api_key_is_unavailable(self):
        with patch('utils.llm_client.settings.GEMINI_API_KEY', ''):
            client = LLMClient()

        assert client.model is None
        with pytest.raises(LLMUnavailableError):
            client.generate("prompt")

    def test_prompt_numbers_comments(self):
        analyzer = make_analyzer(Mock())
        prompt = analyzer._build_batch_prompt(make_comments("first", "second"))
        assert '1. "first"' in prompt
        assert '2. "second"' in prompt
        assert '"commentIndex": 1' in prompt


class TestValidation:
    """Test result validation"""

    def test_validate_empty(self):
        analyzer = make_analyzer(Mock())
        validation = analyzer.validate_results([])
        assert validation.is_valid is False
        assert validation.quality_score == 0.0

    def test_validate_healthy_results(self):
        analyzer = make_analyzer(Mock())
        results = [
            SentimentResult(Sentiment.POSITIVE, 0.9, [EmotionScore("joy", 0.8)]),
            SentimentResult(Sentiment.NEGATIVE, 0.9, [EmotionScore("anger", 0.7)]),
            SentimentResult(Sentiment.NEUTRAL, 0.9, [EmotionScore("trust", 0.6)]),
        ]
        validation = analyzer.validate_results(results)
        assert validation.is_valid is True
        assert validation.quality_score == pytest.approx(0.9)

    def test_validate_low_confidence_and_skew(self):
        analyzer = make_analyzer(Mock())
        results = [SentimentResult(Sentiment.NEUTRAL, 0.2) for _ in range(5)]
        validation = analyzer.validate_results(results)
        assert validation.is_valid is False
        assert any("low confidence" in issue for issue in validation.issues)
        assert any("skewed" in issue for issue in validation.issues)
        assert validation.quality_score < 0.5


class TestAdvancedProcessing:
    """Test low-confidence retries"""

    def test_low_confidence_result_is_improved(self):
        llm = Mock()
        batch = response_line(1, "NEUTRAL", 0.2) + "\n" + response_line(2, "POSITIVE", 0.9)
        single = '{"sentiment": "NEGATIVE", "confidence": 0.85, "emotions": [{"name": "sadness", "score": 0.6}]}'
        llm.generate.side_effect = [batch, single]
        analyzer = make_analyzer(llm)

        with patch(SLEEP_PATH):
            result = analyzer.analyze_with_advanced_processing(make_comments("hmm not sure", "love it"))

        assert result.results[0].sentiment == Sentiment.NEGATIVE
        assert result.results[0].confidence == 0.85
        assert result.results[1].sentiment == Sentiment.POSITIVE
        assert result.metrics.improved_count == 1
        assert llm.generate.call_count == 2

    def test_failed_retry_keeps_batch_result(self):
        llm = Mock()
        batch = response_line(1, "NEUTRAL", 0.2)
        llm.generate.side_effect = [batch, "no json here"]
        analyzer = make_analyzer(llm)

        with patch(SLEEP_PATH):
            result = analyzer.analyze_with_advanced_processing(make_comments("hmm"))

        assert result.results[0].confidence == 0.2
        assert result.metrics.improved_count == 0
        assert result.metrics.fallback_count == 1

    def test_retry_disabled(self):
        llm = Mock()
        llm.generate.return_value = response_line(1, "NEUTRAL", 0.2)
        analyzer = make_analyzer(llm)

        with patch(SLEEP_PATH):
            result = analyzer.analyze_with_advanced_processing(
                make_comments("hmm"), retry_low_confidence=False, enable_validation=False
            )

        assert llm.generate.call_count == 1
        assert result.validation.is_valid is True

    def test_single_comment_without_json_raises(self):
        llm = Mock()
        llm.generate.return_value = "I think it is positive"
        analyzer = make_analyzer(llm)
        with pytest.raises(LLMServiceError):
            analyzer.analyze_single_comment(Comment(id="c1", text="nice"))


class TestConfiguration:
    """Test processing configuration"""

    def test_update_processing_config(self):
        analyzer = make_analyzer(Mock())
        analyzer.update_processing_config(batch_size=20, max_retries=5, retry_delay=2.0)
        stats = analyzer.get_processing_stats()
        assert stats["batch_size"] == 20
        assert stats["max_retries"] == 5
        assert stats["retry_delay"] == 2.0

    def test_out_of_range_values_are_ignored(self):
        analyzer = make_analyzer(Mock())
        analyzer.update_processing_config(batch_size=100, max_retries=0, retry_delay=60)
        assert analyzer.batch_size == 10
        assert analyzer.max_retries == 3
        assert analyzer.retry_delay != 60


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))

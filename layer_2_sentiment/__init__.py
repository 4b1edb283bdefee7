"""
Layer 2: Sentiment Analysis
- Batched LLM sentiment + emotion classification
- Retry with exponential backoff and request timeout
- Rule-based fallback for missing or failed results
- Result quality validation
"""
from .fallback import create_fallback_result, POSITIVE_WORDS, NEGATIVE_WORDS
from .sentiment_analyzer import SentimentAnalyzer, summarize_results

__all__ = [
    'create_fallback_result',
    'POSITIVE_WORDS',
    'NEGATIVE_WORDS',
    'SentimentAnalyzer',
    'summarize_results',
]

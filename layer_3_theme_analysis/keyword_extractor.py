"""
TF-IDF keyword extraction with per-keyword sentiment and usage contexts
"""
import math
from collections import Counter, defaultdict
from typing import Dict, List, Sequence

from models.analysis import Sentiment, SentimentResult, KeywordData, dominant_sentiment
from layer_3_theme_analysis.theme_config import MIN_KEYWORD_FREQUENCY, MAX_CONTEXTS
from utils.logger import get_logger

logger = get_logger(__name__)

CONTEXT_WINDOW = 2  # Tokens on each side of a keyword occurrence


def sentiment_at(sentiment_results: Sequence[SentimentResult], index: int) -> Sentiment:
    """Sentiment of comment `index`, NEUTRAL when no result exists for it"""
    if index < len(sentiment_results) and sentiment_results[index] is not None:
        return sentiment_results[index].sentiment
    return Sentiment.NEUTRAL


def extract_keywords(
    token_lists: List[List[str]],
    sentiment_results: Sequence[SentimentResult],
    max_keywords: int
) -> List[KeywordData]:
    """
    Score every corpus term with TF-IDF and keep the strongest ones

    tf is the term's total count over the number of tokens in the corpus,
    idf is ln(documents / documents containing the term). Terms seen fewer
    than MIN_KEYWORD_FREQUENCY times or scoring 0 are dropped.

    Args:
        token_lists: Tokens of each comment (already stop-word filtered)
        sentiment_results: Sentiment per comment, index-aligned
        max_keywords: Cap on the number of keywords returned

    Returns:
        Keywords sorted by tfidf_score, highest first
    """
    total_documents = len(token_lists)
    total_tokens = sum(len(tokens) for tokens in token_lists)
    if total_documents == 0 or total_tokens == 0:
        return []

    term_frequencies: Counter = Counter()
    document_frequencies: Counter = Counter()
    term_sentiments: Dict[str, Counter] = defaultdict(Counter)
    term_contexts: Dict[str, List[str]] = defaultdict(list)

    for doc_index, tokens in enumerate(token_lists):
        sentiment = sentiment_at(sentiment_results, doc_index)

        for position, token in enumerate(tokens):
            term_frequencies[token] += 1

            contexts = term_contexts[token]
            if len(contexts) < MAX_CONTEXTS:
                start = max(0, position - CONTEXT_WINDOW)
                context = " ".join(tokens[start:position + CONTEXT_WINDOW + 1])
                if context not in contexts:
                    contexts.append(context)

        # One sentiment vote and one document count per comment containing the term
        for token in set(tokens):
            document_frequencies[token] += 1
            term_sentiments[token][sentiment] += 1

    keywords = []
    for term, frequency in term_frequencies.items():
        if frequency < MIN_KEYWORD_FREQUENCY or len(term) <= 2:
            continue

        tf = frequency / total_tokens
        idf = math.log(total_documents / document_frequencies[term])
        tfidf_score = tf * idf
        if tfidf_score <= 0:
            continue

        votes = term_sentiments[term]
        keyword_sentiment = dominant_sentiment(votes)
        sentiment_score = votes[keyword_sentiment] / sum(votes.values())

        keywords.append(KeywordData(
            word=term,
            frequency=frequency,
            sentiment=keyword_sentiment,
            contexts=list(term_contexts[term]),
            tfidf_score=tfidf_score,
            sentiment_score=sentiment_score,
        ))

    keywords.sort(key=lambda k: k.tfidf_score, reverse=True)
    logger.debug(f"Extracted {len(keywords)} keywords from {total_documents} comments, keeping {min(len(keywords), max_keywords)}")
    return keywords[:max_keywords]

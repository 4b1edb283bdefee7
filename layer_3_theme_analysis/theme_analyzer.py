"""
Theme analysis: keywords, clusters and per-theme metadata for one set of comments
"""
import random
import re
import string
from collections import Counter
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

from models.comment import Comment
from models.analysis import (
    SentimentResult,
    KeywordData,
    ThemeCluster,
    ThemeSummary,
    ThemeAnalysisResult,
    dominant_sentiment,
)
from layer_3_theme_analysis.theme_config import (
    ThemeConfig,
    STOP_WORDS,
    MIN_KEYWORD_FREQUENCY,
    MAX_THEME_KEYWORDS,
    MAX_REPRESENTATIVE_COMMENTS,
)
from layer_3_theme_analysis.keyword_extractor import extract_keywords
from layer_3_theme_analysis.theme_clusterer import cluster_comments, CommentCluster
from utils.text_similarity import tokenize
from utils.logger import get_logger

logger = get_logger(__name__)

_FIRST_LETTER = re.compile(r'\b\w')


def title_case(text: str) -> str:
    return _FIRST_LETTER.sub(lambda m: m.group(0).upper(), text)


class ThemeAnalyzer:
    """Group comments into themes and extract the keywords that drive them"""

    def __init__(self, config: Optional[ThemeConfig] = None):
        self.config = config or ThemeConfig.from_settings()

    def analyze_themes(
        self,
        comments: List[Comment],
        sentiment_results: Sequence[SentimentResult]
    ) -> ThemeAnalysisResult:
        """
        Extract keywords and themes from the valid comments

        Args:
            comments: Valid comments, in the order they were analysed
            sentiment_results: Sentiment per comment, index-aligned

        Returns:
            ThemeAnalysisResult (empty with NEUTRAL sentiment for no comments)
        """
        if not comments:
            logger.info("No comments to analyze for themes")
            return ThemeAnalysisResult()

        config = self.config
        token_lists = [tokenize(comment.text, STOP_WORDS) for comment in comments]

        keywords = extract_keywords(token_lists, sentiment_results, config.max_keywords)
        clusters = cluster_comments(token_lists, sentiment_results, config)
        themes = [
            self._build_theme(index, cluster, comments, keywords)
            for index, cluster in enumerate(clusters, 1)
        ]
        summary = self._calculate_summary(themes, keywords)

        logger.info(
            f"Theme analysis: {summary.total_themes} themes, {summary.total_keywords} keywords, "
            f"dominant sentiment {summary.dominant_sentiment.value}"
        )
        return ThemeAnalysisResult(themes=themes, keywords=keywords, summary=summary)

    def _build_theme(
        self,
        index: int,
        cluster: CommentCluster,
        comments: List[Comment],
        keywords: List[KeywordData]
    ) -> ThemeCluster:
        members = [comments[i] for i in cluster.indices]
        return ThemeCluster(
            id=f"theme_{index}",
            name=self.generate_theme_name(members, keywords),
            comments=members,
            sentiment=cluster.sentiment,
            frequency=len(members),
            representative_comments=self.select_representative_comments(members),
            keywords=self.extract_theme_keywords(members, keywords),
            coherence_score=cluster.coherence,
        )

    def generate_theme_name(self, comments: List[Comment], keywords: List[KeywordData]) -> str:
        """
        Name a theme after its most frequent tokens

        Top-3 tokens that are also global keywords win (best tfidf first);
        otherwise the two most frequent tokens are used.
        """
        word_frequencies = Counter()
        for comment in comments:
            word_frequencies.update(tokenize(comment.text, STOP_WORDS))

        top_words = [word for word, _ in word_frequencies.most_common(3)]

        relevant_keywords = [kw.word for kw in keywords if kw.word in top_words][:2]
        if relevant_keywords:
            return title_case(" & ".join(relevant_keywords))

        if top_words:
            return title_case(" & ".join(top_words[:2]))

        placeholder = "".join(random.choices(string.ascii_lowercase + string.digits, k=5))
        return f"Theme {placeholder}"

    def select_representative_comments(
        self,
        comments: List[Comment],
        max_count: int = MAX_REPRESENTATIVE_COMMENTS
    ) -> List[Comment]:
        """Most substantial comments: 0.7 x text length + 0.3 x likes"""
        if len(comments) <= max_count:
            return list(comments)
        scored = sorted(
            comments,
            key=lambda c: len(c.text) * 0.7 + c.like_count * 0.3,
            reverse=True
        )
        return scored[:max_count]

    def extract_theme_keywords(self, comments: List[Comment], keywords: List[KeywordData]) -> List[str]:
        """Global keywords found in the theme's text, best tfidf first"""
        theme_text = " ".join(comment.text.lower() for comment in comments)
        matching = [kw for kw in keywords if kw.word in theme_text]
        matching.sort(key=lambda kw: kw.tfidf_score, reverse=True)
        return [kw.word for kw in matching[:MAX_THEME_KEYWORDS]]

    @staticmethod
    def _calculate_summary(themes: List[ThemeCluster], keywords: List[KeywordData]) -> ThemeSummary:
        if not themes:
            return ThemeSummary(total_keywords=len(keywords))

        weighted = Counter()
        for theme in themes:
            weighted[theme.sentiment] += theme.frequency

        return ThemeSummary(
            total_themes=len(themes),
            total_keywords=len(keywords),
            average_coherence=sum(t.coherence_score for t in themes) / len(themes),
            dominant_sentiment=dominant_sentiment(weighted),
        )

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #
    @contextmanager
    def override_config(
        self,
        min_cluster_size: Optional[int] = None,
        max_clusters: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        max_keywords: Optional[int] = None
    ) -> Iterator[ThemeConfig]:
        """
        Temporarily replace the configuration inside a `with` block

        Values are clamped to their bounds. The previous configuration is
        restored when the block exits, whether or not it raised.
        """
        previous = self.config
        self.config = previous.with_overrides(
            min_cluster_size=min_cluster_size,
            max_clusters=max_clusters,
            similarity_threshold=similarity_threshold,
            max_keywords=max_keywords,
        )
        try:
            yield self.config
        finally:
            self.config = previous

    def analyze_themes_with_config(
        self,
        comments: List[Comment],
        sentiment_results: Sequence[SentimentResult],
        **overrides: Any
    ) -> ThemeAnalysisResult:
        """analyze_themes with a one-off configuration (see override_config)"""
        with self.override_config(**overrides):
            return self.analyze_themes(comments, sentiment_results)

    def get_configuration(self) -> Dict[str, Any]:
        return {
            "min_cluster_size": self.config.min_cluster_size,
            "max_clusters": self.config.max_clusters,
            "similarity_threshold": self.config.similarity_threshold,
            "min_keyword_frequency": MIN_KEYWORD_FREQUENCY,
            "max_keywords": self.config.max_keywords,
            "stop_words_count": len(STOP_WORDS),
        }

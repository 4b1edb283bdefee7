"""
Theme analysis configuration: stop words, clustering limits and their bounds
"""
from dataclasses import dataclass, replace
from typing import Optional

from config.settings import settings

# Keywords must appear at least this often across the corpus
MIN_KEYWORD_FREQUENCY = 2

# Corpora at or below this size keep singleton themes with meaningful tokens
SMALL_CORPUS_SIZE = 6

MAX_THEME_KEYWORDS = 5
MAX_REPRESENTATIVE_COMMENTS = 3
MAX_CONTEXTS = 5

# Bounds applied to overrides
MAX_CLUSTERS_RANGE = (1, 20)
SIMILARITY_THRESHOLD_RANGE = (0.1, 0.9)
MAX_KEYWORDS_RANGE = (10, 100)

STOP_WORDS = frozenset([
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "is", "are", "was", "were", "be", "been", "being", "have", "has", "had", "do", "does", "did",
    "will", "would", "could", "should", "may", "might", "can",
    "this", "that", "these", "those",
    "i", "you", "he", "she", "it", "we", "they", "me", "him", "her", "us", "them",
    "my", "your", "his", "its", "our", "their", "mine", "yours", "hers", "ours", "theirs",
    "am", "so", "very", "just", "now", "then", "here", "there",
    "where", "when", "why", "how", "what", "who", "which",
    "all", "any", "some", "no", "not", "only", "own", "other", "such", "same", "different",
    "new", "old", "first", "last", "long", "short", "high", "low", "big", "small", "large", "little",
    "good", "bad", "right", "wrong", "true", "false",
])


def _clamp(value, low, high):
    return max(low, min(high, value))


@dataclass(frozen=True)
class ThemeConfig:
    """Clustering and keyword limits for one theme analysis run"""
    min_cluster_size: int = 2
    max_clusters: int = 10
    similarity_threshold: float = 0.15
    max_keywords: int = 50

    @classmethod
    def from_settings(cls) -> "ThemeConfig":
        return cls(
            min_cluster_size=settings.THEME_MIN_CLUSTER_SIZE,
            max_clusters=settings.THEME_MAX_CLUSTERS,
            similarity_threshold=settings.THEME_SIMILARITY_THRESHOLD,
            max_keywords=settings.THEME_MAX_KEYWORDS,
        )

    def with_overrides(
        self,
        min_cluster_size: Optional[int] = None,
        max_clusters: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        max_keywords: Optional[int] = None
    ) -> "ThemeConfig":
        """
        Copy of this config with the given values clamped into their bounds

        None leaves a value unchanged.
        """
        changes = {}
        if min_cluster_size is not None:
            changes["min_cluster_size"] = max(1, min_cluster_size)
        if max_clusters is not None:
            changes["max_clusters"] = _clamp(max_clusters, *MAX_CLUSTERS_RANGE)
        if similarity_threshold is not None:
            changes["similarity_threshold"] = _clamp(similarity_threshold, *SIMILARITY_THRESHOLD_RANGE)
        if max_keywords is not None:
            changes["max_keywords"] = _clamp(max_keywords, *MAX_KEYWORDS_RANGE)
        return replace(self, **changes)

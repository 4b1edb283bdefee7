"""
Greedy similarity clustering of comments into themes
"""
from dataclasses import dataclass
from collections import Counter
from typing import List, Sequence, Set

import numpy as np

from models.analysis import Sentiment, SentimentResult, dominant_sentiment
from layer_3_theme_analysis.theme_config import ThemeConfig, SMALL_CORPUS_SIZE
from layer_3_theme_analysis.keyword_extractor import sentiment_at
from utils.text_similarity import jaccard_similarity
from utils.logger import get_logger

logger = get_logger(__name__)

SINGLETON_COHERENCE = 0.5


@dataclass
class CommentCluster:
    indices: List[int]  # Positions in the analysed comment list
    coherence: float
    sentiment: Sentiment


def build_similarity_matrix(token_sets: List[Set[str]]) -> np.ndarray:
    """
    Full pairwise Jaccard matrix (n x n, diagonal 1.0)

    Memory and time grow with n²; fine for one post's comments.
    """
    n = len(token_sets)
    matrix = np.eye(n, dtype=float)
    for i in range(n):
        for j in range(i + 1, n):
            similarity = jaccard_similarity(token_sets[i], token_sets[j])
            matrix[i, j] = similarity
            matrix[j, i] = similarity
    return matrix


def cluster_comments(
    token_lists: List[List[str]],
    sentiment_results: Sequence[SentimentResult],
    config: ThemeConfig
) -> List[CommentCluster]:
    """
    Single greedy pass over the comments

    Each unassigned comment seeds a cluster and takes every later unassigned
    comment at or above the similarity threshold. A seed left alone then
    takes later comments sharing a token with the same sentiment, or sharing
    two tokens. Clusters smaller than min_cluster_size are dropped (their
    comments stay assigned) unless the corpus is small and the seed has
    tokens. Stops once max_clusters clusters are kept.

    Returns:
        Clusters sorted by size, largest first
    """
    n = len(token_lists)
    if n == 0:
        return []

    token_sets = [set(tokens) for tokens in token_lists]
    matrix = build_similarity_matrix(token_sets)
    sentiments = [sentiment_at(sentiment_results, i) for i in range(n)]

    assigned = set()
    clusters: List[CommentCluster] = []

    for i in range(n):
        if i in assigned:
            continue

        members = [i]
        assigned.add(i)

        for j in range(i + 1, n):
            if j not in assigned and matrix[i, j] >= config.similarity_threshold:
                members.append(j)
                assigned.add(j)

        # Relaxed merge when nothing passed the threshold
        if len(members) == 1:
            for j in range(i + 1, n):
                if j in assigned:
                    continue
                shared_tokens = len(token_sets[i] & token_sets[j])
                same_sentiment = sentiments[i] == sentiments[j]
                if shared_tokens >= 1 and (same_sentiment or shared_tokens >= 2):
                    members.append(j)
                    assigned.add(j)

        keep_singleton = n <= SMALL_CORPUS_SIZE and len(token_lists[i]) > 0
        if len(members) >= config.min_cluster_size or keep_singleton:
            clusters.append(CommentCluster(
                indices=members,
                coherence=_coherence(matrix, members),
                sentiment=dominant_sentiment(Counter(sentiments[index] for index in members)),
            ))

        if len(clusters) >= config.max_clusters:
            break

    clusters.sort(key=lambda c: len(c.indices), reverse=True)
    logger.debug(f"Clustered {n} comments into {len(clusters)} clusters")
    return clusters


def _coherence(matrix: np.ndarray, members: List[int]) -> float:
    """Mean pairwise similarity of the members"""
    if len(members) < 2:
        return SINGLETON_COHERENCE
    sub_matrix = matrix[np.ix_(members, members)]
    upper = sub_matrix[np.triu_indices(len(members), k=1)]
    return float(upper.mean())

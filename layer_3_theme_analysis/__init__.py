"""
Layer 3: Theme Analysis
- TF-IDF keyword extraction with keyword sentiment and contexts
- Jaccard similarity clustering into themes
- Theme naming, representative comments and coherence
- Scoped configuration overrides
"""
from .theme_config import ThemeConfig, STOP_WORDS
from .keyword_extractor import extract_keywords
from .theme_clusterer import build_similarity_matrix, cluster_comments
from .theme_analyzer import ThemeAnalyzer

__all__ = [
    'ThemeConfig',
    'STOP_WORDS',
    'extract_keywords',
    'build_similarity_matrix',
    'cluster_comments',
    'ThemeAnalyzer',
]

"""
Layer 1: Comment Preprocessing
- Text cleaning and normalization
- Spam detection (length, caps, keywords, repetition, URLs, emoji)
- Toxicity detection (keywords, profanity, hate speech)
- Duplicate removal (Jaccard similarity)
"""
from .comment_preprocessor import CommentPreprocessor

__all__ = [
    'CommentPreprocessor',
]

"""
Rule-based comment cleaning, spam/toxicity detection and duplicate removal
"""
import re
from collections import Counter
from dataclasses import fields, replace
from typing import List, Set

import emoji

from models.comment import Comment, PreprocessedComment, FilterResult, FilterStats
from utils.text_similarity import jaccard_similarity, word_set
from utils.logger import get_logger

logger = get_logger(__name__)

MIN_COMMENT_LENGTH = 3
MAX_COMMENT_LENGTH = 5000
EXCESSIVE_CAPS_THRESHOLD = 0.7  # Share of uppercase letters
DUPLICATE_THRESHOLD = 0.9  # Jaccard similarity above which a comment is a duplicate
REPEATED_WORD_SHARE = 0.3  # One word taking more than 30% of the words
EMOJI_DENSITY_THRESHOLD = 0.5

SPAM_KEYWORDS = [
    "subscribe", "follow me", "check out my", "click here", "free money",
    "make money fast", "work from home", "get rich quick", "buy now",
    "limited time", "act now", "call now", "visit my channel",
]

TOXIC_KEYWORDS = [
    "hate", "stupid", "idiot", "moron", "loser", "pathetic", "disgusting",
    "trash", "garbage", "worthless", "useless", "kill yourself", "die",
]


def _comment_fields(comment: Comment) -> dict:
    return {f.name: getattr(comment, f.name) for f in fields(Comment)}


class CommentPreprocessor:
    """Clean, normalize and filter comments before any LLM work"""

    # Remove special characters but keep basic punctuation
    SPECIAL_CHARS_PATTERN = re.compile(r'[^\w\s.,!?@#-]')
    EXCESSIVE_PUNCTUATION_PATTERN = re.compile(r'[.,!?]{3,}')
    WHITESPACE_PATTERN = re.compile(r'\s+')

    CHAR_RUN_PATTERN = re.compile(r'(.)\1{4,}')
    URL_PATTERN = re.compile(
        r'(https?://[^\s]+|www\.[^\s]+|\b[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\b)',
        re.IGNORECASE
    )

    TOXIC_KEYWORD_PATTERN = re.compile(
        r'\b(?:' + '|'.join(re.escape(k) for k in TOXIC_KEYWORDS) + r')\b'
    )

    # Checked on the raw text: cleaning strips the symbols these rely on
    PROFANITY_PATTERNS = [
        re.compile(r'\*{3,}'),  # ***
        re.compile(r'@#\$%'),  # @#$%
        re.compile(r'f\*+k'),  # f**k variations
        re.compile(r'\b\w+\*+\w*\b'),  # words with asterisks
    ]

    HATE_SPEECH_PATTERNS = [
        re.compile(r'you\s+(should|need to|must)\s+(die|kill yourself)', re.IGNORECASE),
        re.compile(r'i\s+hate\s+you', re.IGNORECASE),
        re.compile(r'go\s+(die|kill yourself)', re.IGNORECASE),
        re.compile(r'\b(racist|sexist|homophobic)\b.*\b(slur|comment)\b', re.IGNORECASE),
    ]

    def preprocess_comments(self, comments: List[Comment]) -> FilterResult:
        """
        Clean every comment and split the input into valid/spam/toxic/duplicate

        Args:
            comments: Comments fetched from the comment store

        Returns:
            FilterResult whose four buckets always add up to len(comments)
        """
        try:
            return self._run(comments)
        except Exception as e:
            logger.error(f"Preprocessing failed, passing all {len(comments)} comments through: {e}", exc_info=True)
            passthrough = [self._as_valid(comment) for comment in comments]
            return FilterResult(
                filtered_comments=passthrough,
                filter_stats=FilterStats(total=len(comments), filtered=len(passthrough)),
            )

    def _run(self, comments: List[Comment]) -> FilterResult:
        # First pass: clean, normalize and flag every comment
        preprocessed = [self._preprocess_single_safely(comment) for comment in comments]

        # Second pass: duplicates among comments that are neither spam nor toxic
        duplicate_indices = self.detect_duplicates(preprocessed)

        result = FilterResult()
        for index, comment in enumerate(preprocessed):
            if comment.is_spam:
                result.spam_comments.append(
                    replace(comment, is_filtered=True, filter_reason=f"spam:{comment.spam_reasons[0]}")
                )
            elif comment.is_toxic:
                result.toxic_comments.append(
                    replace(comment, is_filtered=True, filter_reason=f"toxic:{comment.toxic_reasons[0]}")
                )
            elif index in duplicate_indices:
                result.duplicate_comments.append(
                    replace(comment, is_filtered=True, filter_reason="duplicate")
                )
            else:
                result.filtered_comments.append(comment)

        result.filter_stats = FilterStats(
            total=len(comments),
            spam=len(result.spam_comments),
            toxic=len(result.toxic_comments),
            duplicate=len(result.duplicate_comments),
            filtered=len(result.filtered_comments),
        )

        logger.info(
            f"Preprocessed {len(comments)} comments: {result.filter_stats.filtered} valid, "
            f"{result.filter_stats.spam} spam, {result.filter_stats.toxic} toxic, "
            f"{result.filter_stats.duplicate} duplicate"
        )
        return result

    def _preprocess_single_safely(self, comment: Comment) -> PreprocessedComment:
        try:
            return self.preprocess_single_comment(comment)
        except Exception as e:
            logger.warning(f"Could not preprocess comment {comment.id}, keeping it as valid: {e}")
            return self._as_valid(comment)

    def _as_valid(self, comment: Comment) -> PreprocessedComment:
        text = comment.text or ""
        return PreprocessedComment(
            **_comment_fields(comment),
            cleaned_text=text,
            normalized_text=text.lower(),
        )

    def preprocess_single_comment(self, comment: Comment) -> PreprocessedComment:
        """Clean, normalize and detect spam/toxicity for one comment"""
        raw_text = comment.text or ""
        cleaned_text = self.clean_text(raw_text)
        normalized_text = self.normalize_text(cleaned_text)

        spam_reasons = self.detect_spam(raw_text, cleaned_text, normalized_text)
        toxic_reasons = self.detect_toxicity(raw_text, normalized_text)

        return PreprocessedComment(
            **_comment_fields(comment),
            cleaned_text=cleaned_text,
            normalized_text=normalized_text,
            is_spam=bool(spam_reasons),
            is_toxic=bool(toxic_reasons),
            spam_reasons=spam_reasons,
            toxic_reasons=toxic_reasons,
        )

    def clean_text(self, text: str) -> str:
        """Collapse whitespace, strip special characters and excessive punctuation"""
        cleaned = self.WHITESPACE_PATTERN.sub(' ', text)
        cleaned = self.SPECIAL_CHARS_PATTERN.sub('', cleaned)
        cleaned = self.EXCESSIVE_PUNCTUATION_PATTERN.sub('...', cleaned)
        return cleaned.strip()

    def normalize_text(self, text: str) -> str:
        return self.WHITESPACE_PATTERN.sub(' ', text.lower()).strip()

    # ------------------------------------------------------------------ #
    # Spam
    # ------------------------------------------------------------------ #
    def detect_spam(self, raw_text: str, cleaned_text: str, normalized_text: str) -> List[str]:
        """Return the spam reasons that apply (empty list means not spam)"""
        reasons = []

        if len(cleaned_text) < MIN_COMMENT_LENGTH:
            reasons.append("too_short")

        if len(cleaned_text) > MAX_COMMENT_LENGTH:
            reasons.append("too_long")

        if self.calculate_caps_ratio(cleaned_text) > EXCESSIVE_CAPS_THRESHOLD:
            reasons.append("excessive_caps")

        if any(keyword in normalized_text for keyword in SPAM_KEYWORDS):
            reasons.append("spam_keywords")

        if self.has_excessive_repetition(normalized_text):
            reasons.append("excessive_repetition")

        if self.URL_PATTERN.search(cleaned_text):
            reasons.append("contains_urls")

        # Emoji are gone after cleaning, so density is measured on the raw text
        if self.has_excessive_emojis(raw_text):
            reasons.append("excessive_emojis")

        return reasons

    @staticmethod
    def calculate_caps_ratio(text: str) -> float:
        letters = re.sub(r'[^a-zA-Z]', '', text)
        if not letters:
            return 0.0
        upper_case_letters = re.sub(r'[^A-Z]', '', text)
        return len(upper_case_letters) / len(letters)

    def has_excessive_repetition(self, text: str) -> bool:
        """Character runs ("aaaaa", "!!!!!") or one word repeated across most of the comment"""
        if self.CHAR_RUN_PATTERN.search(text):
            return True

        words = text.split()
        if not words:
            return False

        word_counts = Counter(word for word in words if len(word) > 2)
        if not word_counts:
            return False

        max_word_count = max(word_counts.values())
        return max_word_count > 1 and max_word_count > len(words) * REPEATED_WORD_SHARE

    @staticmethod
    def has_excessive_emojis(text: str) -> bool:
        if not text:
            return False
        return emoji.emoji_count(text) > len(text) * EMOJI_DENSITY_THRESHOLD

    # ------------------------------------------------------------------ #
    # Toxicity
    # ------------------------------------------------------------------ #
    def detect_toxicity(self, raw_text: str, normalized_text: str) -> List[str]:
        """Return the toxicity reasons that apply (independent of spam)"""
        reasons = []

        if self.TOXIC_KEYWORD_PATTERN.search(normalized_text):
            reasons.append("toxic_keywords")

        lowered_raw = raw_text.lower()
        if any(pattern.search(lowered_raw) for pattern in self.PROFANITY_PATTERNS):
            reasons.append("excessive_profanity")

        if any(pattern.search(normalized_text) for pattern in self.HATE_SPEECH_PATTERNS):
            reasons.append("hate_speech_patterns")

        return reasons

    # ------------------------------------------------------------------ #
    # Duplicates
    # ------------------------------------------------------------------ #
    def detect_duplicates(self, comments: List[PreprocessedComment]) -> Set[int]:
        """
        Indices of comments that repeat an earlier comment

        Only comments that are neither spam nor toxic take part. The first
        occurrence is kept; later ones above DUPLICATE_THRESHOLD are marked.
        """
        candidates = [
            (index, word_set(comment.normalized_text))
            for index, comment in enumerate(comments)
            if not comment.is_spam and not comment.is_toxic
        ]

        duplicate_indices: Set[int] = set()
        for position, (i, words_i) in enumerate(candidates):
            if i in duplicate_indices:
                continue
            for j, words_j in candidates[position + 1:]:
                if j in duplicate_indices:
                    continue
                if jaccard_similarity(words_i, words_j) > DUPLICATE_THRESHOLD:
                    duplicate_indices.add(j)

        return duplicate_indices

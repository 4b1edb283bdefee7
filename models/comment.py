"""
Comment data models
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional
import json


@dataclass(frozen=True)
class Comment:
    """A social-media comment as fetched from the comment store"""
    id: str
    text: str
    author_name: str = ""
    published_at: Optional[datetime] = None
    like_count: int = 0
    is_filtered: bool = False
    filter_reason: Optional[str] = None
    post_id: Optional[str] = None  # Source item the comment belongs to

    def mark_filtered(self, reason: str) -> "Comment":
        """Return a copy flagged as filtered (the fetched comment is never mutated)"""
        return replace(self, is_filtered=True, filter_reason=reason)

    def to_dict(self) -> dict:
        """Convert comment to dictionary for storage"""
        return {
            "id": self.id,
            "text": self.text,
            "author_name": self.author_name,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "like_count": self.like_count,
            "is_filtered": self.is_filtered,
            "filter_reason": self.filter_reason,
            "post_id": self.post_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Comment":
        """Create comment from dictionary"""
        published_at = data.get("published_at")
        if isinstance(published_at, str):
            published_at = datetime.fromisoformat(published_at.replace("Z", "+00:00"))
        return cls(
            id=str(data["id"]),
            text=data.get("text") or "",
            author_name=data.get("author_name", ""),
            published_at=published_at,
            like_count=int(data.get("like_count") or 0),
            is_filtered=bool(data.get("is_filtered", False)),
            filter_reason=data.get("filter_reason"),
            post_id=data.get("post_id"),
        )

    def to_json(self) -> str:
        """Convert comment to JSON string"""
        return json.dumps(self.to_dict(), indent=2)


@dataclass(frozen=True)
class PreprocessedComment(Comment):
    """Comment plus the cleaning and spam/toxicity flags of the preprocessor"""
    cleaned_text: str = ""
    normalized_text: str = ""
    is_spam: bool = False
    is_toxic: bool = False
    spam_reasons: List[str] = field(default_factory=list)
    toxic_reasons: List[str] = field(default_factory=list)


@dataclass
class FilterStats:
    total: int = 0
    spam: int = 0
    toxic: int = 0
    duplicate: int = 0
    filtered: int = 0  # Comments that passed every filter

    @property
    def removed(self) -> int:
        return self.spam + self.toxic + self.duplicate


@dataclass
class FilterResult:
    """Four disjoint buckets produced by the preprocessor"""
    filtered_comments: List[PreprocessedComment] = field(default_factory=list)
    spam_comments: List[PreprocessedComment] = field(default_factory=list)
    toxic_comments: List[PreprocessedComment] = field(default_factory=list)
    duplicate_comments: List[PreprocessedComment] = field(default_factory=list)
    filter_stats: FilterStats = field(default_factory=FilterStats)

"""
Job progress and persisted analysis result models
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
import json
import uuid


class JobStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TOTAL_STEPS = 5  # preprocessing, sentiment, themes, summary, saving


@dataclass
class AnalysisStep:
    name: str
    description: str
    weight: float  # Share of the progress bar


@dataclass
class JobProgress:
    progress: int
    current_step: int
    step_description: str
    status: JobStatus = JobStatus.PROCESSING
    total_steps: int = TOTAL_STEPS
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class PrerequisiteValidation:
    valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class SentimentBreakdown:
    positive: float
    negative: float
    neutral: float
    confidence_score: float


@dataclass
class EmotionRecord:
    name: str
    percentage: float


@dataclass
class ThemeRecord:
    name: str
    frequency: int
    sentiment: str
    example_comments: List[str] = field(default_factory=list)


@dataclass
class KeywordRecord:
    word: str
    frequency: int
    sentiment: str
    contexts: List[str] = field(default_factory=list)


@dataclass
class AnalysisResult:
    """Aggregate written to the result store in one atomic save"""
    job_id: str
    post_id: str
    user_id: str
    total_comments: int
    filtered_comments: int
    summary: str
    sentiment_breakdown: SentimentBreakdown
    emotions: List[EmotionRecord] = field(default_factory=list)
    themes: List[ThemeRecord] = field(default_factory=list)
    keywords: List[KeywordRecord] = field(default_factory=list)
    quality_score: float = 0.0
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        """Convert result to dictionary for storage"""
        data = asdict(self)
        data["analyzed_at"] = self.analyzed_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisResult":
        """Create result from dictionary"""
        analyzed_at = datetime.fromisoformat(data["analyzed_at"])
        if analyzed_at.tzinfo is None:
            analyzed_at = analyzed_at.replace(tzinfo=timezone.utc)
        return cls(
            id=data["id"],
            job_id=data["job_id"],
            post_id=data["post_id"],
            user_id=data["user_id"],
            total_comments=data["total_comments"],
            filtered_comments=data["filtered_comments"],
            summary=data["summary"],
            sentiment_breakdown=SentimentBreakdown(**data["sentiment_breakdown"]),
            emotions=[EmotionRecord(**e) for e in data.get("emotions", [])],
            themes=[ThemeRecord(**t) for t in data.get("themes", [])],
            keywords=[KeywordRecord(**k) for k in data.get("keywords", [])],
            quality_score=data.get("quality_score", 0.0),
            analyzed_at=analyzed_at,
        )

    def to_json(self) -> str:
        """Convert result to JSON string"""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

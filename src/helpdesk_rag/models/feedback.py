"""Feedback and auto-learning models."""

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from helpdesk_rag.models.specialist import Specialist


class FeedbackStatus(StrEnum):
    """Review lifecycle of a feedback record."""

    NEW = "new"
    REVIEWED = "reviewed"
    APPLIED = "applied"
    DISMISSED = "dismissed"


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FeedbackRecord(BaseModel):
    """A thumbs-up/down on an answer, with optional correction."""

    id: str = Field(default_factory=_new_id)
    query: str
    response: str
    is_helpful: bool
    sources_used: list[str] = Field(default_factory=list)
    specialist: Specialist = Specialist.GENERAL
    extracted_keywords: list[str] = Field(default_factory=list)
    suggested_keywords: list[str] = Field(default_factory=list)
    correction: str | None = None
    comment: str | None = None
    target_item_id: str | None = None
    best_score: float = 0.0
    was_low_confidence: bool = False
    query_embedding: list[float] | None = None
    timestamp: datetime = Field(default_factory=_utcnow)
    status: FeedbackStatus = FeedbackStatus.NEW

    @property
    def reviewed(self) -> bool:
        return self.status in (FeedbackStatus.REVIEWED, FeedbackStatus.APPLIED)

    @property
    def applied(self) -> bool:
        return self.status == FeedbackStatus.APPLIED

    @property
    def dismissed(self) -> bool:
        return self.status == FeedbackStatus.DISMISSED


class KeywordSuggestion(BaseModel):
    """A keyword users keep asking for that a knowledge item lacks."""

    keyword: str
    frequency: int
    item_id: str | None = None
    related_queries: list[str] = Field(default_factory=list)
    was_auto_applied: bool = False
    applied_at: datetime | None = None


class FailurePattern(BaseModel):
    """A group of similar queries that keep failing."""

    id: str = Field(default_factory=_new_id)
    specialist: Specialist
    keywords: list[str]
    sample_queries: list[str] = Field(default_factory=list)
    failure_count: int = 0
    is_alerted: bool = False
    first_occurrence: datetime = Field(default_factory=_utcnow)
    last_occurrence: datetime = Field(default_factory=_utcnow)

    @property
    def description(self) -> str:
        return f"{self.specialist.value}: {' '.join(self.keywords)}"


class LearningStats(BaseModel):
    """Aggregate view of feedback and what the learner did with it."""

    total_feedback: int = 0
    positive_feedback: int = 0
    negative_feedback: int = 0
    unreviewed_count: int = 0
    low_confidence_count: int = 0
    auto_enriched_keywords: int = 0
    cached_successful_responses: int = 0
    top_suggestions: list[KeywordSuggestion] = Field(default_factory=list)
    failure_patterns: list[FailurePattern] = Field(default_factory=list)

    @property
    def satisfaction_rate(self) -> float:
        if not self.total_feedback:
            return 0.0
        return self.positive_feedback / self.total_feedback


class KeywordCounter(BaseModel):
    """How often a keyword was requested for a specific knowledge item."""

    item_id: str
    keyword: str
    count: int = 0
    applied: bool = False
    applied_at: datetime | None = None
    related_queries: list[str] = Field(default_factory=list)

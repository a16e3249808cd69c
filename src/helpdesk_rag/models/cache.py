"""Semantic cache models."""

from datetime import datetime

from pydantic import BaseModel, Field

from helpdesk_rag.models.specialist import Specialist


class CacheEntry(BaseModel):
    """A previously answered query and its response."""

    query_fingerprint: str
    query: str
    query_embedding: list[float] | None = None
    response: str
    specialist: Specialist
    sources: list[str] = Field(default_factory=list)
    use_count: int = 0
    created_at: datetime
    last_used_at: datetime


class CacheStats(BaseModel):
    """Counters for cache effectiveness."""

    hits: int = 0
    semantic_hits: int = 0
    misses: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

"""Feedback-driven learning: keyword enrichment, answer caching, failure alerts.

Three things happen when a user rates an answer:

- A negative rating with a correction counts each topic keyword of the query
  and correction against the item the correction should enrich. When a
  keyword has been asked for often enough it is written into that item's
  keyword field. This is the only automatic write back into the knowledge
  store, and it is idempotent.
- A positive rating of a high-confidence answer puts the answer in the
  semantic cache so the next near-identical question skips the model.
- Negative and low-confidence answers are grouped into failure patterns by
  keyword overlap. A pattern that keeps recurring raises one alert.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, Field

from helpdesk_rag.cache.semantic_cache import SemanticQueryCache
from helpdesk_rag.config import (
    get_confidence_floor,
    get_failure_threshold,
    get_keyword_threshold,
)
from helpdesk_rag.errors import InvalidTransitionError
from helpdesk_rag.models.feedback import (
    FailurePattern,
    FeedbackRecord,
    FeedbackStatus,
    KeywordCounter,
    KeywordSuggestion,
    LearningStats,
)
from helpdesk_rag.search.corpus import CorpusRegistry
from helpdesk_rag.search.text import extract_keywords, jaccard

logger = logging.getLogger(__name__)

PATTERN_SIMILARITY = 0.5
MAX_SAMPLE_QUERIES = 5
MAX_SUGGESTIONS = 20
DEFAULT_RETENTION_DAYS = 90

_TRANSITIONS: dict[FeedbackStatus, set[FeedbackStatus]] = {
    FeedbackStatus.NEW: {FeedbackStatus.REVIEWED, FeedbackStatus.DISMISSED},
    FeedbackStatus.REVIEWED: {FeedbackStatus.APPLIED, FeedbackStatus.DISMISSED},
    FeedbackStatus.APPLIED: set(),
    FeedbackStatus.DISMISSED: set(),
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _add_sample(samples: list[str], query: str) -> None:
    if query not in samples and len(samples) < MAX_SAMPLE_QUERIES:
        samples.append(query)


class LearnerState(BaseModel):
    """Everything the learner needs to survive a restart."""

    records: list[FeedbackRecord] = Field(default_factory=list)
    counters: list[KeywordCounter] = Field(default_factory=list)
    patterns: list[FailurePattern] = Field(default_factory=list)


class AutoLearner:
    """Turns feedback into keyword enrichment, cached answers and alerts.

    One asyncio lock guards records, counters and patterns. Corpus writes and
    cache stores happen after the lock is released.
    """

    def __init__(
        self,
        registry: CorpusRegistry,
        cache: SemanticQueryCache | None = None,
        *,
        keyword_threshold: int | None = None,
        failure_threshold: int | None = None,
        confidence_floor: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.registry = registry
        self.cache = cache
        self.keyword_threshold = (
            keyword_threshold if keyword_threshold is not None else get_keyword_threshold()
        )
        self.failure_threshold = (
            failure_threshold if failure_threshold is not None else get_failure_threshold()
        )
        self.confidence_floor = (
            confidence_floor if confidence_floor is not None else get_confidence_floor()
        )
        self._clock = clock
        self._records: dict[str, FeedbackRecord] = {}
        self._counters: dict[tuple[str, str], KeywordCounter] = {}
        self._patterns: list[FailurePattern] = []
        self._alerts: list[FailurePattern] = []
        self._cached_responses = 0
        self._lock = asyncio.Lock()

    async def record_feedback(self, record: FeedbackRecord) -> FeedbackRecord:
        """Store a rating and apply its side effects. Returns the stored record."""
        record = record.model_copy(deep=True)
        record.extracted_keywords = extract_keywords(record.query)
        target = record.target_item_id or next(iter(record.sources_used), None)

        ready: list[str] = []
        cache_answer = False
        async with self._lock:
            if not record.is_helpful:
                keywords = list(record.extracted_keywords)
                if record.correction:
                    extra = extract_keywords(record.correction)
                    keywords += [k for k in extra if k not in keywords]
                record.suggested_keywords = keywords
                if record.correction and target:
                    record.target_item_id = target
                    ready = self._count_keywords(target, keywords, record.query)
            elif record.best_score >= self.confidence_floor and self.cache is not None:
                cache_answer = True

            if not record.is_helpful or record.was_low_confidence:
                self._track_failure(record)
            self._records[record.id] = record

        logger.info(
            "Feedback %s for %r (%s)",
            "positive" if record.is_helpful else "negative",
            record.query[:50],
            record.specialist.value,
        )

        if ready and target:
            await self._enrich(target, ready)
        if cache_answer and self.cache is not None:
            await self.cache.store(
                record.query,
                record.response,
                record.specialist,
                sources=record.sources_used,
                embedding=record.query_embedding,
            )
            async with self._lock:
                self._cached_responses += 1
        return record.model_copy()

    async def review(self, feedback_id: str) -> FeedbackRecord:
        """Mark a new record as reviewed."""
        return await self._transition(feedback_id, FeedbackStatus.REVIEWED)

    async def apply(self, feedback_id: str) -> FeedbackRecord:
        """Mark a reviewed record's improvement as applied."""
        return await self._transition(feedback_id, FeedbackStatus.APPLIED)

    async def dismiss(self, feedback_id: str) -> FeedbackRecord:
        """Dismiss a new or reviewed record."""
        return await self._transition(feedback_id, FeedbackStatus.DISMISSED)

    async def get(self, feedback_id: str) -> FeedbackRecord | None:
        async with self._lock:
            record = self._records.get(feedback_id)
            return record.model_copy() if record else None

    async def get_stats(self) -> LearningStats:
        """Aggregate counts, top keyword suggestions and failure patterns."""
        async with self._lock:
            records = list(self._records.values())
            applied_keywords = {c.keyword for c in self._counters.values() if c.applied}
            stats = LearningStats(
                total_feedback=len(records),
                positive_feedback=sum(1 for r in records if r.is_helpful),
                negative_feedback=sum(1 for r in records if not r.is_helpful),
                unreviewed_count=sum(1 for r in records if r.status == FeedbackStatus.NEW),
                low_confidence_count=sum(1 for r in records if r.was_low_confidence),
                auto_enriched_keywords=sum(1 for c in self._counters.values() if c.applied),
                cached_successful_responses=self._cached_responses,
                top_suggestions=self._suggestions(records, applied_keywords),
                failure_patterns=sorted(
                    (p.model_copy() for p in self._patterns), key=lambda p: -p.failure_count
                ),
            )
        return stats

    async def pending_alerts(self) -> list[FailurePattern]:
        """Patterns that crossed the alert threshold since the last call."""
        async with self._lock:
            alerts, self._alerts = self._alerts, []
            return alerts

    async def sweep(self, retention_days: int = DEFAULT_RETENTION_DAYS) -> int:
        """Drop handled records older than the retention window. Returns the count removed."""
        cutoff = self._clock() - timedelta(days=retention_days)
        async with self._lock:
            stale = [
                r.id
                for r in self._records.values()
                if r.timestamp < cutoff and r.status != FeedbackStatus.NEW
            ]
            for feedback_id in stale:
                del self._records[feedback_id]
        if stale:
            logger.info("Swept %d feedback records older than %d days", len(stale), retention_days)
        return len(stale)

    async def snapshot(self) -> LearnerState:
        """Copy of all state for persistence."""
        async with self._lock:
            return LearnerState(
                records=[r.model_copy() for r in self._records.values()],
                counters=[c.model_copy() for c in self._counters.values()],
                patterns=[p.model_copy() for p in self._patterns],
            )

    async def restore(self, state: LearnerState) -> None:
        """Replace in-memory state with a persisted snapshot."""
        async with self._lock:
            self._records = {r.id: r for r in state.records}
            self._counters = {(c.item_id, c.keyword): c for c in state.counters}
            self._patterns = list(state.patterns)
            self._alerts = []

    async def _transition(self, feedback_id: str, status: FeedbackStatus) -> FeedbackRecord:
        async with self._lock:
            record = self._records.get(feedback_id)
            if record is None:
                raise ValueError(f"Feedback {feedback_id} not found")
            if status not in _TRANSITIONS[record.status]:
                raise InvalidTransitionError(
                    f"Feedback {feedback_id} cannot go from {record.status.value} to {status.value}"
                )
            record.status = status
            return record.model_copy()

    def _count_keywords(self, item_id: str, keywords: Iterable[str], query: str) -> list[str]:
        """Bump counters and return the keywords that just became due."""
        due: list[str] = []
        for keyword in keywords:
            counter = self._counters.setdefault(
                (item_id, keyword), KeywordCounter(item_id=item_id, keyword=keyword)
            )
            counter.count += 1
            _add_sample(counter.related_queries, query)
            if counter.count >= self.keyword_threshold and not counter.applied:
                due.append(keyword)
        return due

    async def _enrich(self, item_id: str, keywords: list[str]) -> None:
        added = await self.registry.enrich_keywords(item_id, keywords)
        if added is None:
            logger.warning("Cannot enrich %s: item not found in any ready source", item_id)
            return
        now = self._clock()
        async with self._lock:
            for keyword in keywords:
                counter = self._counters[(item_id, keyword)]
                counter.applied = True
                counter.applied_at = now
        if added:
            logger.info("Auto-applied keywords %s to %s", added, item_id)

    def _track_failure(self, record: FeedbackRecord) -> None:
        keywords = set(record.extracted_keywords)
        if not keywords:
            return
        best: FailurePattern | None = None
        best_overlap = 0.0
        for pattern in self._patterns:
            if pattern.specialist != record.specialist:
                continue
            overlap = jaccard(keywords, set(pattern.keywords))
            if overlap >= PATTERN_SIMILARITY and overlap > best_overlap:
                best, best_overlap = pattern, overlap
        if best is None:
            best = FailurePattern(
                specialist=record.specialist,
                keywords=record.extracted_keywords,
                first_occurrence=record.timestamp,
            )
            self._patterns.append(best)

        best.failure_count += 1
        best.last_occurrence = record.timestamp
        _add_sample(best.sample_queries, record.query)
        if best.failure_count >= self.failure_threshold and not best.is_alerted:
            best.is_alerted = True
            self._alerts.append(best.model_copy())
            logger.warning(
                "Recurring failure (%d times): %s", best.failure_count, best.description
            )

    @staticmethod
    def _suggestions(
        records: list[FeedbackRecord], applied_keywords: set[str]
    ) -> list[KeywordSuggestion]:
        grouped: dict[str, KeywordSuggestion] = {}
        for record in records:
            if record.is_helpful:
                continue
            for keyword in record.suggested_keywords:
                suggestion = grouped.setdefault(
                    keyword,
                    KeywordSuggestion(
                        keyword=keyword,
                        frequency=0,
                        item_id=record.target_item_id,
                        was_auto_applied=keyword in applied_keywords,
                    ),
                )
                suggestion.frequency += 1
                _add_sample(suggestion.related_queries, record.query)
        ranked = sorted(grouped.values(), key=lambda s: -s.frequency)
        return ranked[:MAX_SUGGESTIONS]

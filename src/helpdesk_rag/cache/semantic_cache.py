"""Response cache keyed by exact query text, then by embedding similarity.

A hit skips retrieval and the completion call entirely, so the semantic
threshold is much stricter than any retrieval floor: only near-duplicate
questions asked of the same specialist are served from here.
"""

import asyncio
import hashlib
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime, timedelta

from helpdesk_rag.config import get_cache_capacity, get_cache_max_age_hours, get_cache_threshold
from helpdesk_rag.models.cache import CacheEntry, CacheStats
from helpdesk_rag.models.specialist import Specialist
from helpdesk_rag.search.text import tokenize
from helpdesk_rag.search.vector import cosine_similarity

logger = logging.getLogger(__name__)

QueryEmbedder = Callable[[str], Awaitable[list[float] | None]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def query_fingerprint(query: str) -> str:
    """Stable key for a query: lower-cased tokens joined by single spaces, hashed."""
    normalized = " ".join(tokenize(query))
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:16]


def _short(text: str, limit: int = 50) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class SemanticQueryCache:
    """Bounded LRU of answered queries, scoped per specialist.

    A single asyncio lock guards every read-modify-write. It is never held
    while the query is being embedded, so a slow embedding call does not
    stall other sessions' lookups.
    """

    def __init__(
        self,
        embed: QueryEmbedder | None = None,
        *,
        threshold: float | None = None,
        capacity: int | None = None,
        max_age: timedelta | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize an empty cache."""
        self._embed = embed
        self.threshold = threshold if threshold is not None else get_cache_threshold()
        self.capacity = capacity if capacity is not None else get_cache_capacity()
        self.max_age = max_age or timedelta(hours=get_cache_max_age_hours())
        self._clock = clock
        # Ordered least- to most-recently used
        self._entries: OrderedDict[tuple[Specialist, str], CacheEntry] = OrderedDict()
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    async def lookup(self, query: str, specialist: Specialist) -> CacheEntry | None:
        """Return a cached answer for this or a near-identical query, else None."""
        key = (specialist, query_fingerprint(query))
        async with self._lock:
            self._expire()
            entry = self._entries.get(key)
            if entry is not None:
                self._touch(key, entry)
                self._stats.hits += 1
                logger.info("Cache hit for %r (%s)", _short(query), specialist.value)
                return entry.model_copy()

        vector = await self._embed(query) if self._embed is not None else None

        async with self._lock:
            if vector is not None:
                best_key, best_sim = self._most_similar(vector, specialist)
                if best_key is not None and best_sim >= self.threshold:
                    entry = self._entries[best_key]
                    self._touch(best_key, entry)
                    self._stats.hits += 1
                    self._stats.semantic_hits += 1
                    logger.info(
                        "Semantic cache hit: %r matched %r (similarity %.4f)",
                        _short(query),
                        _short(entry.query),
                        best_sim,
                    )
                    return entry.model_copy()
            self._stats.misses += 1
        return None

    async def store(
        self,
        query: str,
        response: str,
        specialist: Specialist,
        *,
        sources: Iterable[str] = (),
        embedding: list[float] | None = None,
    ) -> CacheEntry:
        """Cache an answer, evicting least-recently-used entries over capacity."""
        if embedding is None and self._embed is not None:
            embedding = await self._embed(query)

        key = (specialist, query_fingerprint(query))
        now = self._clock()
        async with self._lock:
            self._expire()
            existing = self._entries.get(key)
            entry = CacheEntry(
                query_fingerprint=key[1],
                query=query,
                query_embedding=embedding,
                response=response,
                specialist=specialist,
                sources=list(sources),
                use_count=existing.use_count if existing else 0,
                created_at=existing.created_at if existing else now,
                last_used_at=now,
            )
            self._entries[key] = entry
            self._entries.move_to_end(key)
            self._evict_over_capacity()
            logger.debug("Cached answer for %r (size %d)", _short(query), len(self._entries))
            return entry.model_copy()

    async def stats(self) -> CacheStats:
        """Snapshot of hit/miss counters and current size."""
        async with self._lock:
            return self._stats.model_copy(update={"size": len(self._entries)})

    async def clear(self) -> None:
        """Drop every entry and reset counters."""
        async with self._lock:
            self._entries.clear()
            self._stats = CacheStats()

    async def entries(self) -> list[CacheEntry]:
        """Copies of all entries, least recently used first."""
        async with self._lock:
            return [e.model_copy() for e in self._entries.values()]

    async def restore(self, entries: Iterable[CacheEntry]) -> None:
        """Load persisted entries, keeping LRU order and the capacity bound."""
        async with self._lock:
            for entry in sorted(entries, key=lambda e: e.last_used_at):
                self._entries[(entry.specialist, entry.query_fingerprint)] = entry
            self._expire()
            self._evict_over_capacity()

    def _most_similar(
        self, vector: list[float], specialist: Specialist
    ) -> tuple[tuple[Specialist, str] | None, float]:
        best_key: tuple[Specialist, str] | None = None
        best_sim = -1.0
        for key, entry in self._entries.items():
            if entry.specialist != specialist or entry.query_embedding is None:
                continue
            try:
                sim = cosine_similarity(vector, entry.query_embedding)
            except ValueError:
                logger.warning("Skipping cache entry %s: embedding dimension mismatch", key[1])
                continue
            if sim > best_sim:
                best_key, best_sim = key, sim
        return best_key, best_sim

    def _touch(self, key: tuple[Specialist, str], entry: CacheEntry) -> None:
        entry.use_count += 1
        entry.last_used_at = self._clock()
        self._entries.move_to_end(key)

    def _expire(self) -> None:
        cutoff = self._clock() - self.max_age
        stale = [k for k, e in self._entries.items() if e.created_at < cutoff]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Expired %d cache entries", len(stale))

    def _evict_over_capacity(self) -> None:
        while len(self._entries) > self.capacity:
            key, entry = self._entries.popitem(last=False)
            logger.debug("Evicted cache entry %r", _short(entry.query))

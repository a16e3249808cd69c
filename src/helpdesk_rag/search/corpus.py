"""In-memory knowledge corpora with explicit initialization and copy-on-write reloads.

Each source is loaded once through the KnowledgeStore, gets any missing or
stale embeddings computed and written back, and is then published as an
immutable tuple. Reloads and keyword enrichment build a new tuple and swap the
reference, so a search that already took a snapshot never sees a half-updated
corpus and readers never need a lock.
"""

import asyncio
import functools
import logging
from collections.abc import Iterable
from enum import StrEnum

from helpdesk_rag.errors import ConfigurationError, TransientProviderError
from helpdesk_rag.models.item import KnowledgeItem, SourceType
from helpdesk_rag.resilience import retry_async
from helpdesk_rag.search.embeddings import EmbeddingProvider
from helpdesk_rag.store.knowledge_store import KnowledgeStore

logger = logging.getLogger(__name__)


class SourceState(StrEnum):
    """Readiness of a source corpus."""

    PENDING = "pending"
    READY = "ready"
    UNAVAILABLE = "unavailable"


class SourceCorpus:
    """The published item snapshot of one knowledge source."""

    def __init__(
        self,
        source_type: SourceType,
        store: KnowledgeStore,
        embedder: EmbeddingProvider | None = None,
    ) -> None:
        """Initialize an empty, not-yet-ready corpus."""
        self.source_type = source_type
        self._store = store
        self._embedder = embedder
        self._items: tuple[KnowledgeItem, ...] = ()
        self.state = SourceState.PENDING
        # Serialises writers (reload, enrichment); readers never take it
        self._write_lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self.state == SourceState.READY

    @property
    def items(self) -> tuple[KnowledgeItem, ...]:
        """Current snapshot, or empty while the source is not ready."""
        return self._items if self.ready else ()

    async def initialize(self) -> None:
        """Load the source, embed what is missing and publish it."""
        async with self._write_lock:
            try:
                items = await self._store.load(self.source_type)
            except ConfigurationError:
                logger.error(
                    "Source %s misconfigured, excluded from retrieval",
                    self.source_type.value,
                    exc_info=True,
                )
                self.state = SourceState.UNAVAILABLE
                return
            await self._publish(items)

    async def reload(self) -> None:
        """Re-read the source from the store and swap it in."""
        await self.initialize()

    async def replace(self, items: list[KnowledgeItem]) -> None:
        """Publish a freshly synced item list and save it back to the store."""
        async with self._write_lock:
            await self._publish(items, force_save=True)

    async def enrich_keywords(self, item_id: str, keywords: list[str]) -> list[str] | None:
        """Append keywords to one item. Returns the keywords added, None if not found."""
        async with self._write_lock:
            current = list(self._items)
            for index, item in enumerate(current):
                if item.id == item_id:
                    break
            else:
                return None

            updated, added = item.with_keywords(keywords)
            if not added:
                return []
            current[index] = await self._embed_one(updated) or updated
            await self._store.save(self.source_type, current)
            self._items = tuple(current)
            logger.info(
                "Enriched %s %s with keywords %s", self.source_type.value, item_id, added
            )
            return added

    async def validate(self, item_id: str) -> int | None:
        """Count one more confirmation that an item solved a problem.

        Returns the new validation count, None if the item is not in this source.
        """
        async with self._write_lock:
            current = list(self._items)
            for index, item in enumerate(current):
                if item.id == item_id:
                    break
            else:
                return None

            current[index] = item.model_copy(
                update={"validation_count": item.validation_count + 1}
            )
            await self._store.save(self.source_type, current)
            self._items = tuple(current)
            count = current[index].validation_count
            logger.info("Validated %s %s (%d total)", self.source_type.value, item_id, count)
            return count

    async def _publish(self, items: list[KnowledgeItem], force_save: bool = False) -> None:
        items = [i for i in items if self._accepts(i)]
        embedded, changed = await self._embed_missing(items)
        if changed or force_save:
            await self._store.save(self.source_type, embedded)
        self._items = tuple(embedded)
        self.state = SourceState.READY
        logger.info("Source %s ready with %d items", self.source_type.value, len(embedded))

    def _accepts(self, item: KnowledgeItem) -> bool:
        if item.source_type != self.source_type:
            logger.warning(
                "Dropping %s item %s from %s corpus",
                item.source_type.value,
                item.id,
                self.source_type.value,
            )
            return False
        return True

    async def _embed_missing(
        self, items: list[KnowledgeItem]
    ) -> tuple[list[KnowledgeItem], bool]:
        """Embed items whose vector is missing or stale.

        Stops asking the provider after the first failure; the remaining items
        stay searchable by keyword and are retried on the next load.
        """
        if self._embedder is None:
            return items, False
        result: list[KnowledgeItem] = []
        changed = False
        degraded = False
        for item in items:
            if degraded or not item.needs_embedding:
                result.append(item)
                continue
            embedded = await self._embed_one(item)
            if embedded is None:
                degraded = True
                result.append(item)
            else:
                changed = True
                result.append(embedded)
        return result, changed

    async def _embed_one(self, item: KnowledgeItem) -> KnowledgeItem | None:
        if self._embedder is None:
            return None
        try:
            vector = await retry_async(
                functools.partial(self._embedder.embed, item.searchable_text),
                description=f"Embedding {item.id}",
            )
        except TransientProviderError:
            logger.warning("Embedding provider unavailable while indexing %s", item.id)
            return None
        except ConfigurationError:
            logger.error("Embedding provider misconfigured, indexing keyword-only", exc_info=True)
            return None
        return item.with_embedding(vector)


class CorpusRegistry:
    """All source corpora of one pipeline instance."""

    def __init__(
        self,
        store: KnowledgeStore,
        embedder: EmbeddingProvider | None = None,
        sources: Iterable[SourceType] = tuple(SourceType),
    ) -> None:
        """Create a pending corpus for each source."""
        self.corpora: dict[SourceType, SourceCorpus] = {
            source: SourceCorpus(source, store, embedder) for source in sources
        }
        self._init_tasks: list[asyncio.Task[None]] = []

    async def initialize(self) -> None:
        """Initialize every source concurrently and wait for all of them."""
        await asyncio.gather(*(c.initialize() for c in self.corpora.values()))

    def start_background(self) -> list[asyncio.Task[None]]:
        """Kick off initialization without waiting. Unready sources search as empty."""
        self._init_tasks = [
            asyncio.create_task(c.initialize(), name=f"init-{c.source_type.value}")
            for c in self.corpora.values()
        ]
        return self._init_tasks

    async def wait_ready(self) -> None:
        """Wait for background initialization started by ``start_background``."""
        if self._init_tasks:
            await asyncio.gather(*self._init_tasks)

    def state(self, source: SourceType) -> SourceState:
        corpus = self.corpora.get(source)
        return corpus.state if corpus else SourceState.UNAVAILABLE

    def snapshot(self, source: SourceType) -> tuple[KnowledgeItem, ...]:
        """Items of a source, empty when the source is missing or not ready."""
        corpus = self.corpora.get(source)
        return corpus.items if corpus else ()

    def find(self, item_id: str) -> KnowledgeItem | None:
        """Look an item up by id across all ready sources."""
        for corpus in self.corpora.values():
            for item in corpus.items:
                if item.id == item_id:
                    return item
        return None

    async def enrich_keywords(self, item_id: str, keywords: list[str]) -> list[str] | None:
        """Add keywords to an item wherever it lives. None if the item is unknown."""
        for corpus in self.corpora.values():
            if not corpus.ready:
                continue
            added = await corpus.enrich_keywords(item_id, keywords)
            if added is not None:
                return added
        return None

    async def validate(self, item_id: str) -> int | None:
        """Record a manual validation of an item. None if the item is unknown."""
        for corpus in self.corpora.values():
            if not corpus.ready:
                continue
            count = await corpus.validate(item_id)
            if count is not None:
                return count
        return None

"""Hybrid keyword + embedding search over the in-memory corpora."""

import functools
import logging
from collections import OrderedDict
from collections.abc import Iterable, Sequence

from helpdesk_rag.errors import ConfigurationError, TransientProviderError
from helpdesk_rag.models.item import KnowledgeItem, SourceType
from helpdesk_rag.models.search import (
    DEFAULT_SOURCE_POLICIES,
    MatchedVia,
    SearchResult,
    SourcePolicy,
)
from helpdesk_rag.resilience import retry_async
from helpdesk_rag.search.corpus import CorpusRegistry
from helpdesk_rag.search.embeddings import EmbeddingProvider
from helpdesk_rag.search.keyword import keyword_search
from helpdesk_rag.search.text import STOP_WORDS, extract_search_terms
from helpdesk_rag.search.vector import cosine_similarity

logger = logging.getLogger(__name__)

_QUERY_EMBEDDING_CACHE_SIZE = 256


def merge_results(*result_sets: Iterable[SearchResult]) -> list[SearchResult]:
    """Union result sets, keeping the higher-scored entry per item id.

    Sorted by raw score, highest first; ties keep their input order.
    """
    best: dict[str, SearchResult] = {}
    for results in result_sets:
        for result in results:
            current = best.get(result.item.id)
            if current is None or result.raw_score > current.raw_score:
                best[result.item.id] = result
    return sorted(best.values(), key=lambda r: -r.raw_score)


class HybridSearchEngine:
    """Keyword pass, then cosine similarity for whatever the keywords missed.

    Keyword hits score 1.0. Semantic hits score their cosine similarity and
    must clear the floor of the item's source. Results are ordered by raw
    score; validation boosting is left to the caller.
    """

    def __init__(
        self,
        registry: CorpusRegistry,
        embedder: EmbeddingProvider | None = None,
        *,
        policies: dict[SourceType, SourcePolicy] | None = None,
        stop_words: frozenset[str] = STOP_WORDS,
    ) -> None:
        """Initialize with the corpora to search and an optional embedder."""
        self.registry = registry
        self.embedder = embedder
        self.policies = {**DEFAULT_SOURCE_POLICIES, **(policies or {})}
        self.stop_words = stop_words
        self._query_embeddings: OrderedDict[str, list[float]] = OrderedDict()

    async def embed_query(self, query: str) -> list[float] | None:
        """Embed a query, reusing recent vectors. None when embeddings are unavailable."""
        if self.embedder is None:
            return None
        cached = self._query_embeddings.get(query)
        if cached is not None:
            self._query_embeddings.move_to_end(query)
            return cached
        try:
            vector = await retry_async(
                functools.partial(self.embedder.embed, query),
                description="Query embedding",
            )
        except TransientProviderError:
            logger.warning("Embedding provider unavailable, falling back to keyword-only search")
            return None
        except ConfigurationError:
            logger.error("Embedding provider misconfigured, keyword-only search", exc_info=True)
            return None
        self._query_embeddings[query] = vector
        if len(self._query_embeddings) > _QUERY_EMBEDDING_CACHE_SIZE:
            self._query_embeddings.popitem(last=False)
        return vector

    async def search(
        self,
        query: str,
        top_results: int = 10,
        *,
        sources: Sequence[SourceType] | None = None,
        query_embedding: list[float] | None = None,
        exclude_ids: Iterable[str] = (),
        keyword: bool = True,
    ) -> list[SearchResult]:
        """Search the given sources (all by default) and return the top results.

        With ``keyword=False`` only the semantic pass runs, so results rank purely
        by similarity to ``query_embedding``.
        """
        if query_embedding is None:
            query_embedding = await self.embed_query(query)
        return self._rank(query, top_results, sources, query_embedding, exclude_ids, keyword)

    def _rank(
        self,
        query: str,
        top_results: int,
        sources: Sequence[SourceType] | None,
        query_embedding: list[float] | None,
        exclude_ids: Iterable[str],
        keyword: bool = True,
    ) -> list[SearchResult]:
        if top_results <= 0:
            return []
        excluded = set(exclude_ids)
        items = [
            item
            for source in (sources if sources is not None else tuple(SourceType))
            for item in self.registry.snapshot(source)
            if item.id not in excluded
        ]
        if not items:
            return []

        keyword_hits: list[SearchResult] = []
        if keyword:
            terms = extract_search_terms(query, stop_words=self.stop_words)
            keyword_hits = keyword_search(items, terms)

        semantic_hits: list[SearchResult] = []
        if query_embedding is not None:
            matched = {r.item.id for r in keyword_hits}
            semantic_hits = self._semantic_pass(
                (i for i in items if i.id not in matched), query_embedding
            )

        merged = merge_results(keyword_hits, semantic_hits)
        logger.debug(
            "Search %r: %d keyword, %d semantic, returning %d",
            query,
            len(keyword_hits),
            len(semantic_hits),
            min(len(merged), top_results),
        )
        return merged[:top_results]

    async def search_sources(
        self,
        query: str,
        sources: Sequence[SourceType] = tuple(SourceType),
        *,
        exclude_ids: Iterable[str] = (),
        embed_text: str | None = None,
    ) -> dict[SourceType, list[SearchResult]]:
        """Search each source separately, capped at its policy's item limit.

        ``embed_text`` replaces the query for the semantic pass only, so routing
        hints can steer the vector without widening keyword matches.
        """
        query_embedding = await self.embed_query(embed_text or query)
        excluded = list(exclude_ids)
        results: dict[SourceType, list[SearchResult]] = {}
        for source in sources:
            results[source] = self._rank(
                query, self.policies[source].max_items, [source], query_embedding, excluded
            )
        return results

    def _semantic_pass(
        self, items: Iterable[KnowledgeItem], query_embedding: list[float]
    ) -> list[SearchResult]:
        hits: list[SearchResult] = []
        for item in items:
            if item.embedding is None:
                continue
            try:
                similarity = cosine_similarity(query_embedding, item.embedding)
            except ValueError:
                logger.warning("Skipping %s: embedding dimension mismatch", item.id)
                continue
            if similarity > self.policies[item.source_type].similarity_floor:
                hits.append(SearchResult.unboosted(item, MatchedVia.SEMANTIC, similarity))
        return hits

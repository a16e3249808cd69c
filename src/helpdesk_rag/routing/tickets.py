"""Ticket-reference detection and the context built around referenced tickets."""

import logging
import re
from collections.abc import Sequence

from helpdesk_rag.config import get_ticket_prefixes
from helpdesk_rag.context.assembler import ContextSection, render_item
from helpdesk_rag.models.item import KnowledgeItem, SourceType, TicketSolution
from helpdesk_rag.models.search import DEFAULT_SOURCE_POLICIES, SearchResult
from helpdesk_rag.search.corpus import CorpusRegistry
from helpdesk_rag.search.hybrid import HybridSearchEngine, merge_results

logger = logging.getLogger(__name__)

MAX_TICKET_IDS = 3
SIMILAR_TICKETS = 3


class TicketReferenceDetector:
    """Finds ``PREFIX-digits`` ticket ids in free text."""

    def __init__(
        self, prefixes: Sequence[str] | None = None, max_ids: int = MAX_TICKET_IDS
    ) -> None:
        self.prefixes = [p.upper() for p in (prefixes or get_ticket_prefixes())]
        self.max_ids = max_ids
        # Longest prefix first so MTT-1 is not read as MT
        alternatives = "|".join(re.escape(p) for p in sorted(self.prefixes, key=len, reverse=True))
        self._pattern = re.compile(rf"\b(?:{alternatives})-\d+\b", re.IGNORECASE)

    def detect(self, text: str) -> list[str]:
        """Distinct upper-cased ticket ids in order of appearance, at most ``max_ids``."""
        ids: list[str] = []
        for match in self._pattern.finditer(text):
            ticket_id = match.group(0).upper()
            if ticket_id not in ids:
                ids.append(ticket_id)
            if len(ids) == self.max_ids:
                break
        return ids


def find_ticket(registry: CorpusRegistry, ticket_id: str) -> KnowledgeItem | None:
    """The solved-ticket item for ``ticket_id``, matched on item id or ticket id."""
    wanted = ticket_id.upper()
    for item in registry.snapshot(SourceType.TICKET_SOLUTION):
        content = item.content
        if item.id.upper() == wanted or (
            isinstance(content, TicketSolution) and content.ticket_id.upper() == wanted
        ):
            return item
    return None


async def _ticket_vector(engine: HybridSearchEngine, item: KnowledgeItem) -> list[float] | None:
    if item.embedding is not None and not item.needs_embedding:
        return item.embedding
    return await engine.embed_query(item.searchable_text)


async def build_ticket_context(
    ticket_ids: Sequence[str],
    engine: HybridSearchEngine,
    registry: CorpusRegistry,
    query: str = "",
) -> ContextSection | None:
    """Referenced tickets plus similar solved ones, rendered ahead of normal retrieval.

    Similar tickets are found by embedding similarity alone, to each referenced
    ticket or to the query when none was found; shared words do not count.
    Returns None when no ids were given.
    """
    if not ticket_ids:
        return None
    char_cap = DEFAULT_SOURCE_POLICIES[SourceType.TICKET_SOLUTION].char_cap

    found: list[KnowledgeItem] = []
    lines = ["=== REFERENCED TICKETS ==="]
    for ticket_id in ticket_ids:
        item = find_ticket(registry, ticket_id)
        if item is None:
            lines.append(f"{ticket_id}: no solved-ticket record available.\n")
            continue
        found.append(item)
        lines.append(render_item(item, char_cap))

    if found:
        vectors = [await _ticket_vector(engine, item) for item in found]
    elif query.strip():
        vectors = [await engine.embed_query(query)]
    else:
        vectors = []

    result_sets: list[list[SearchResult]] = []
    for vector in vectors:
        if vector is None:
            continue
        result_sets.append(
            await engine.search(
                query,
                top_results=SIMILAR_TICKETS,
                sources=[SourceType.TICKET_SOLUTION],
                query_embedding=vector,
                exclude_ids=[item.id for item in found],
                keyword=False,
            )
        )
    similar = merge_results(*result_sets)[:SIMILAR_TICKETS]
    if similar:
        lines.append("=== SIMILAR SOLVED TICKETS ===")
        lines.extend(render_item(r.item, char_cap) for r in similar)

    logger.info(
        "Ticket context for %s: %d found, %d similar", list(ticket_ids), len(found), len(similar)
    )
    return ContextSection(
        text="\n".join(lines),
        item_ids=[item.id for item in found] + [r.item.id for r in similar],
    )

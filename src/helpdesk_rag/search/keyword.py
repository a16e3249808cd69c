"""Exact keyword pass: substring match of query terms against searchable text."""

from collections.abc import Iterable

from helpdesk_rag.models.item import KnowledgeItem
from helpdesk_rag.models.search import MatchedVia, SearchResult

KEYWORD_SCORE = 1.0


def matched_terms(item: KnowledgeItem, terms: list[str]) -> list[str]:
    """Terms that occur (case-insensitively) in the item's searchable text."""
    haystack = item.searchable_text.lower()
    return [t for t in terms if t in haystack]


def keyword_search(items: Iterable[KnowledgeItem], terms: list[str]) -> list[SearchResult]:
    """Return every item containing at least one term, scored at the maximum."""
    if not terms:
        return []
    return [
        SearchResult.unboosted(item, MatchedVia.KEYWORD, KEYWORD_SCORE)
        for item in items
        if matched_terms(item, terms)
    ]

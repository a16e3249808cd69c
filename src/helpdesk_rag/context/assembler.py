"""Merge per-source search results into one bounded prompt context.

Sources are laid out in a fixed priority order (reference data, ticket
solutions, wiki pages, articles) and each item is clipped to its source's
character cap. Assembly is greedy and stops at the first item that does not
fit the overall budget, so a lower-priority item never takes room that a
higher-priority one was refused.
"""

import logging
from collections.abc import Mapping, Sequence

from pydantic import BaseModel, Field

from helpdesk_rag.config import get_boost_factor, get_context_budget_chars
from helpdesk_rag.models.item import (
    KnowledgeItem,
    SourceType,
    display_body,
    display_title,
    reference_url,
)
from helpdesk_rag.models.search import (
    DEFAULT_SOURCE_POLICIES,
    SOURCE_PRIORITY,
    SearchResult,
    SourcePolicy,
    apply_boost,
)

logger = logging.getLogger(__name__)

SECTION_HEADERS: dict[SourceType, str] = {
    SourceType.REFERENCE_ROW: "=== REFERENCE DATA (forms, links, contacts) ===",
    SourceType.TICKET_SOLUTION: (
        "=== PROVEN SOLUTIONS FROM RESOLVED TICKETS ===\n"
        "Validated fixes from real incidents. Prefer them when they apply."
    ),
    SourceType.WIKI_PAGE: (
        "=== WIKI DOCUMENTATION (how-to guides and procedures) ===\n"
        "Always cite the page URL when you use a page."
    ),
    SourceType.ARTICLE: "=== KNOWLEDGE BASE ARTICLES (internal procedures) ===",
}


class ContextSection(BaseModel):
    """Pre-rendered context placed ahead of the ranked sources."""

    text: str
    item_ids: list[str] = Field(default_factory=list)


class AssembledContext(BaseModel):
    """The prompt context and the items it was built from."""

    text: str
    used_item_ids: list[str] = Field(default_factory=list)
    truncated: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


def render_item(item: KnowledgeItem, char_cap: int) -> str:
    """Render one item as a context block with its body clipped to ``char_cap``."""
    body = display_body(item.content)
    if len(body) > char_cap:
        body = body[:char_cap].rstrip() + "..."
    lines = [f"--- {display_title(item.content)} ---"]
    url = reference_url(item.content)
    if url:
        lines.append(f"URL: {url}")
    if body:
        lines.append(body)
    return "\n".join(lines) + "\n\n"


class ContextAssembler:
    """Builds the retrieval context handed to the completion call."""

    def __init__(
        self,
        *,
        budget_chars: int | None = None,
        policies: Mapping[SourceType, SourcePolicy] | None = None,
        boost_factor: float | None = None,
        boost: bool = True,
    ) -> None:
        """Configure the overall budget, per-source caps and validation boosting."""
        self.budget_chars = budget_chars if budget_chars is not None else get_context_budget_chars()
        self.policies = {**DEFAULT_SOURCE_POLICIES, **(policies or {})}
        self.boost_factor = boost_factor if boost_factor is not None else get_boost_factor()
        self.boost = boost

    def rank(self, results: Sequence[SearchResult], source: SourceType) -> list[SearchResult]:
        """Order a source's results by boosted score and apply its item cap."""
        if self.boost:
            results = [apply_boost(r, self.boost_factor) for r in results]
        ranked = sorted(results, key=lambda r: -r.boosted_score)
        return ranked[: self.policies[source].max_items]

    def build_context(
        self,
        per_source_results: Mapping[SourceType, Sequence[SearchResult]],
        *,
        preface_sections: Sequence[ContextSection] = (),
    ) -> AssembledContext:
        """Lay out preface sections and ranked results within the character budget."""
        parts: list[str] = []
        used_ids: list[str] = []
        remaining = self.budget_chars
        truncated = False

        for section in preface_sections:
            block = section.text.rstrip() + "\n\n"
            if len(block) > remaining:
                block = block[:remaining]
                truncated = True
            parts.append(block)
            remaining -= len(block)
            used_ids.extend(i for i in section.item_ids if i not in used_ids)
            if truncated:
                break

        for source in SOURCE_PRIORITY:
            if truncated:
                break
            header = SECTION_HEADERS[source] + "\n"
            header_written = False
            for result in self.rank(per_source_results.get(source, ()), source):
                if result.item.id in used_ids:
                    continue
                block = render_item(result.item, self.policies[source].char_cap)
                cost = len(block) + (0 if header_written else len(header))
                if cost > remaining:
                    truncated = True
                    break
                if not header_written:
                    parts.append(header)
                    header_written = True
                parts.append(block)
                remaining -= cost
                used_ids.append(result.item.id)

        if truncated:
            logger.info(
                "Context budget of %d chars reached after %d items",
                self.budget_chars,
                len(used_ids),
            )
        return AssembledContext(text="".join(parts), used_item_ids=used_ids, truncated=truncated)

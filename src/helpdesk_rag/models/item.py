"""Unified knowledge item model.

Every retrievable unit (curated article, wiki page, reference spreadsheet row,
resolved-ticket solution) is a ``KnowledgeItem`` whose ``content`` is one
variant of a closed tagged union. The projection functions below are the only
code that looks at the concrete variant; search, ranking and context assembly
go through ``searchable_text``, ``display_title`` and ``display_body``.
"""

import hashlib
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class SourceType(StrEnum):
    """Knowledge sources the pipeline retrieves from."""

    ARTICLE = "article"
    WIKI_PAGE = "wiki_page"
    REFERENCE_ROW = "reference_row"
    TICKET_SOLUTION = "ticket_solution"


class Article(BaseModel):
    """Curated knowledge-base article."""

    kind: Literal["article"] = "article"
    number: str = ""
    title: str
    summary: str = ""
    content: str = ""
    category: str = ""
    url: str | None = None
    keywords: list[str] = Field(default_factory=list)


class WikiPage(BaseModel):
    """Page synced from the team wiki."""

    kind: Literal["wiki_page"] = "wiki_page"
    title: str
    space: str = ""
    content: str = ""
    url: str | None = None
    keywords: list[str] = Field(default_factory=list)


class ReferenceRow(BaseModel):
    """One row of an uploaded reference spreadsheet (forms, contacts, links)."""

    kind: Literal["reference_row"] = "reference_row"
    name: str
    description: str = ""
    link: str | None = None
    category: str = ""
    source_file: str = ""
    keywords: list[str] = Field(default_factory=list)


class TicketSolution(BaseModel):
    """Solution harvested from a resolved support ticket."""

    kind: Literal["ticket_solution"] = "ticket_solution"
    ticket_id: str
    title: str = ""
    problem: str = ""
    root_cause: str = ""
    solution: str = ""
    steps: list[str] = Field(default_factory=list)
    system: str = ""
    category: str = ""
    keywords: list[str] = Field(default_factory=list)


ItemContent = Annotated[
    Article | WikiPage | ReferenceRow | TicketSolution,
    Field(discriminator="kind"),
]


def searchable_text(content: ItemContent, metadata: dict[str, object] | None = None) -> str:
    """Concatenate title, body, keywords and string metadata for indexing."""
    match content:
        case Article():
            parts = [content.number, content.title, content.summary, content.content]
            parts.append(content.category)
        case WikiPage():
            parts = [content.title, content.space, content.content]
        case ReferenceRow():
            parts = [content.name, content.description, content.category]
        case TicketSolution():
            parts = [content.ticket_id, content.title, content.problem, content.root_cause]
            parts.extend([content.solution, *content.steps, content.system, content.category])
    parts.extend(content.keywords)
    if metadata:
        parts.extend(v for v in metadata.values() if isinstance(v, str))
    return " ".join(p.strip() for p in parts if p and p.strip())


def display_title(content: ItemContent) -> str:
    """Heading used when the item is rendered into prompt context."""
    match content:
        case Article():
            return f"{content.number} - {content.title}" if content.number else content.title
        case WikiPage():
            return content.title
        case ReferenceRow():
            return content.name
        case TicketSolution():
            return f"{content.ticket_id}: {content.title}" if content.title else content.ticket_id


def display_body(content: ItemContent) -> str:
    """Body text used when the item is rendered into prompt context."""
    match content:
        case Article():
            return "\n".join(p for p in (content.summary, content.content) if p)
        case WikiPage():
            return content.content
        case ReferenceRow():
            return content.description
        case TicketSolution():
            lines = []
            if content.problem:
                lines.append(f"Problem: {content.problem}")
            if content.root_cause:
                lines.append(f"Root cause: {content.root_cause}")
            if content.solution:
                lines.append(f"Solution: {content.solution}")
            if content.steps:
                lines.append("Steps:")
                lines.extend(f"{i}. {step}" for i, step in enumerate(content.steps, 1))
            return "\n".join(lines)


def reference_url(content: ItemContent) -> str | None:
    """Link the assistant should cite for this item, if any."""
    match content:
        case Article() | WikiPage():
            return content.url
        case ReferenceRow():
            return content.link
        case TicketSolution():
            return None


class KnowledgeItem(BaseModel):
    """A retrievable unit of knowledge with its cached embedding."""

    id: str
    content: ItemContent
    metadata: dict[str, object] = Field(default_factory=dict)
    embedding: list[float] | None = None
    embedding_hash: str | None = None
    validation_count: int = Field(default=0, ge=0)
    score: float | None = Field(default=None, exclude=True)

    @property
    def source_type(self) -> SourceType:
        """Source this item belongs to."""
        return SourceType(self.content.kind)

    @property
    def searchable_text(self) -> str:
        """Text used for both keyword matching and embedding."""
        return searchable_text(self.content, self.metadata)

    @property
    def text_hash(self) -> str:
        """Fingerprint of the current searchable text."""
        return hashlib.sha256(self.searchable_text.encode("utf-8")).hexdigest()[:16]

    @property
    def needs_embedding(self) -> bool:
        """True when the embedding is missing or was computed from older text."""
        return self.embedding is None or self.embedding_hash != self.text_hash

    @property
    def keywords(self) -> list[str]:
        return self.content.keywords

    def with_embedding(self, embedding: list[float]) -> "KnowledgeItem":
        """Return a copy carrying an embedding for the current text."""
        return self.model_copy(update={"embedding": embedding, "embedding_hash": self.text_hash})

    def with_keywords(self, keywords: list[str]) -> tuple["KnowledgeItem", list[str]]:
        """Return a copy with new keywords appended, plus the keywords actually added.

        Keywords already present (case-insensitive) are ignored, so applying the
        same keyword twice leaves the item unchanged.
        """
        existing = {k.lower() for k in self.content.keywords}
        added: list[str] = []
        for keyword in keywords:
            key = keyword.strip().lower()
            if key and key not in existing:
                existing.add(key)
                added.append(key)
        if not added:
            return self, []
        content = self.content.model_copy(update={"keywords": [*self.content.keywords, *added]})
        return self.model_copy(update={"content": content}), added

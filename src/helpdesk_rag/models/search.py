"""Search-related models."""

from enum import StrEnum

from pydantic import BaseModel, Field, model_validator

from helpdesk_rag.models.item import KnowledgeItem, SourceType


class MatchedVia(StrEnum):
    """Which retrieval path produced a result."""

    KEYWORD = "keyword"
    SEMANTIC = "semantic"


class SearchResult(BaseModel):
    """A single ranked hit with its raw and boosted scores."""

    item: KnowledgeItem
    matched_via: MatchedVia
    raw_score: float
    boosted_score: float

    @model_validator(mode="after")
    def _boost_never_lowers(self) -> "SearchResult":
        if self.boosted_score < self.raw_score:
            raise ValueError("boosted_score must be >= raw_score")
        return self

    @classmethod
    def unboosted(
        cls, item: KnowledgeItem, matched_via: MatchedVia, score: float
    ) -> "SearchResult":
        """Build a result whose boosted score equals its raw score."""
        return cls(
            item=item.model_copy(update={"score": score}),
            matched_via=matched_via,
            raw_score=score,
            boosted_score=score,
        )


def apply_boost(result: SearchResult, boost_factor: float) -> SearchResult:
    """Scale the raw score by ``1 + validation_count * boost_factor``."""
    factor = 1.0 + result.item.validation_count * max(boost_factor, 0.0)
    return result.model_copy(update={"boosted_score": result.raw_score * factor})


class SourcePolicy(BaseModel):
    """Per-source retrieval limits."""

    similarity_floor: float = Field(ge=-1.0, le=1.0)
    max_items: int = Field(ge=1)
    char_cap: int = Field(ge=1)


# Articles are curated but broad, so they need a stricter floor
DEFAULT_SOURCE_POLICIES: dict[SourceType, SourcePolicy] = {
    SourceType.REFERENCE_ROW: SourcePolicy(similarity_floor=0.2, max_items=10, char_cap=500),
    SourceType.TICKET_SOLUTION: SourcePolicy(similarity_floor=0.2, max_items=5, char_cap=1500),
    SourceType.WIKI_PAGE: SourcePolicy(similarity_floor=0.2, max_items=4, char_cap=2000),
    SourceType.ARTICLE: SourcePolicy(similarity_floor=0.5, max_items=3, char_cap=1500),
}

# Context priority, highest first
SOURCE_PRIORITY: tuple[SourceType, ...] = (
    SourceType.REFERENCE_ROW,
    SourceType.TICKET_SOLUTION,
    SourceType.WIKI_PAGE,
    SourceType.ARTICLE,
)

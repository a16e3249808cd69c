"""Feedback MCP tools: answer ratings and manual item validation."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from helpdesk_rag.learning.auto_learner import AutoLearner
from helpdesk_rag.models.feedback import FeedbackRecord
from helpdesk_rag.models.specialist import Specialist
from helpdesk_rag.search.corpus import CorpusRegistry
from helpdesk_rag.tools.formatters import format_feedback

logger = logging.getLogger(__name__)

_ACTIONS = {"review", "apply", "dismiss"}


def register_helpdesk_feedback(mcp: FastMCP) -> None:
    """Register the feedback tools with the MCP server."""

    @mcp.tool()
    async def helpdesk_feedback(
        query: Annotated[str, Field(description="The question that was answered")],
        response: Annotated[str, Field(description="The answer given")],
        is_helpful: Annotated[bool, Field(description="Whether the answer solved the problem")],
        specialist: Annotated[
            str, Field(description="Specialist from the answer footer")
        ] = Specialist.GENERAL.value,
        sources_used: Annotated[
            list[str] | None, Field(description="Item ids from the answer footer")
        ] = None,
        correction: Annotated[
            str | None,
            Field(description="What the answer should have said, or the missing terms"),
        ] = None,
        comment: Annotated[str | None, Field(description="Free-form comment")] = None,
        target_item_id: Annotated[
            str | None,
            Field(description="Item the correction belongs to (default: first source)"),
        ] = None,
        best_score: Annotated[
            float, Field(description="Score from the answer footer", ge=0)
        ] = 0.0,
        was_low_confidence: Annotated[
            bool, Field(description="Footer said low confidence")
        ] = False,
        ctx: Context | None = None,
    ) -> str:
        """Record a rating for an answer.

        Pass back the specialist, score and sources from the answer footer.
        Negative ratings with a correction teach the knowledge base new keywords
        once enough users ask for the same thing. Positive ratings of answers
        scoring at least the confidence floor are cached for near-identical
        future questions.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")
        learner: AutoLearner = ctx.lifespan_context["learner"]
        try:
            record = FeedbackRecord(
                query=query,
                response=response,
                is_helpful=is_helpful,
                specialist=Specialist(specialist),
                sources_used=sources_used or [],
                correction=correction,
                comment=comment,
                target_item_id=target_item_id,
                best_score=best_score,
                was_low_confidence=was_low_confidence,
            )
        except ValueError as e:
            return f"Error: {e}"
        stored = await learner.record_feedback(record)
        return format_feedback(stored)

    @mcp.tool()
    async def helpdesk_feedback_review(
        feedback_id: Annotated[str, Field(description="Feedback record id")],
        action: Annotated[str, Field(description="review, apply or dismiss")],
        ctx: Context | None = None,
    ) -> str:
        """Move a feedback record through new -> reviewed -> applied, or dismiss it."""
        if ctx is None:
            raise RuntimeError("Context not injected")
        if action not in _ACTIONS:
            return f"Unknown action '{action}'. Use: {', '.join(sorted(_ACTIONS))}"
        learner: AutoLearner = ctx.lifespan_context["learner"]
        transition = {
            "review": learner.review,
            "apply": learner.apply,
            "dismiss": learner.dismiss,
        }[action]
        try:
            record = await transition(feedback_id)
        except ValueError as e:
            return f"Error: {e}"
        return f"Feedback {record.id} is now {record.status.value}"

    @mcp.tool()
    async def helpdesk_validate(
        item_id: Annotated[str, Field(description="Item id from an answer footer")],
        ctx: Context | None = None,
    ) -> str:
        """Confirm that a knowledge item solved a problem.

        Validated items rank higher among results of the same source. Use this
        after a support engineer has checked the item, not for every thumbs-up.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")
        registry: CorpusRegistry = ctx.lifespan_context["registry"]
        count = await registry.validate(item_id)
        if count is None:
            return f"Error: item {item_id} not found"
        return f"Validated {item_id} ({count} total)"

"""helpdesk_ask MCP tool: answer a support question from the knowledge corpora."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from helpdesk_rag.errors import EmptyQueryError
from helpdesk_rag.llm.provider import ChatTurn
from helpdesk_rag.pipeline import HelpdeskPipeline
from helpdesk_rag.tools.formatters import format_answer

logger = logging.getLogger(__name__)


def register_helpdesk_ask(mcp: FastMCP) -> None:
    """Register the helpdesk_ask tool with the MCP server."""

    @mcp.tool()
    async def helpdesk_ask(
        question: Annotated[str, Field(description="The employee's support question")],
        history: Annotated[
            list[ChatTurn] | None,
            Field(description="Earlier turns of the conversation, oldest first"),
        ] = None,
        ctx: Context | None = None,
    ) -> str:
        """Answer an IT support question using articles, wiki pages, reference data and
        solved tickets.

        Questions that mention ticket ids (e.g. INC-1234) also pull in that ticket
        and similar solved ones. The footer lists the specialist, the retrieval score
        and the item ids the answer was built from; pass those to helpdesk_feedback.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")
        pipeline: HelpdeskPipeline = ctx.lifespan_context["pipeline"]
        try:
            answer = await pipeline.ask(question, history)
        except EmptyQueryError:
            return "Error: question must not be empty."
        return format_answer(answer)

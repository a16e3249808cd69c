"""helpdesk_stats MCP tool: cache and learning statistics."""

from fastmcp import FastMCP
from fastmcp.server.context import Context

from helpdesk_rag.learning.auto_learner import AutoLearner
from helpdesk_rag.pipeline import HelpdeskPipeline
from helpdesk_rag.tools.formatters import format_stats


def register_helpdesk_stats(mcp: FastMCP) -> None:
    """Register the helpdesk_stats tool with the MCP server."""

    @mcp.tool()
    async def helpdesk_stats(ctx: Context | None = None) -> str:
        """Show cache effectiveness, feedback totals, keyword suggestions and
        recurring failure patterns. New failure alerts are listed once."""
        if ctx is None:
            raise RuntimeError("Context not injected")
        pipeline: HelpdeskPipeline = ctx.lifespan_context["pipeline"]
        learner: AutoLearner = ctx.lifespan_context["learner"]

        text = format_stats(await pipeline.cache.stats(), await learner.get_stats())
        alerts = await learner.pending_alerts()
        if alerts:
            text += "\nNEW ALERTS:\n" + "\n".join(
                f"  {p.description} ({p.failure_count} failures), e.g. {p.sample_queries[0]!r}"
                for p in alerts
                if p.sample_queries
            )
        return text

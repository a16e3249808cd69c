"""FastMCP server with lifespan management and tool registration."""

import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiosqlite
from fastmcp import FastMCP

from helpdesk_rag.cache.semantic_cache import SemanticQueryCache
from helpdesk_rag.config import (
    get_completion_provider,
    get_db_path,
    get_erp_mappings_path,
    get_flush_interval,
    get_log_level,
)
from helpdesk_rag.db.connection import create_connection
from helpdesk_rag.errors import ConfigurationError
from helpdesk_rag.learning.auto_learner import AutoLearner
from helpdesk_rag.llm import AnthropicCompletionClient
from helpdesk_rag.llm.ollama import OllamaCompletionClient
from helpdesk_rag.llm.provider import CompletionProvider
from helpdesk_rag.pipeline import HelpdeskPipeline
from helpdesk_rag.routing.erp_lookup import ErpLookup
from helpdesk_rag.search.corpus import CorpusRegistry
from helpdesk_rag.search.embeddings import OllamaEmbeddingClient
from helpdesk_rag.search.hybrid import HybridSearchEngine
from helpdesk_rag.store.knowledge_store import SQLiteKnowledgeStore
from helpdesk_rag.store.state_store import StateStore
from helpdesk_rag.tools.helpdesk_ask import register_helpdesk_ask
from helpdesk_rag.tools.helpdesk_feedback import register_helpdesk_feedback
from helpdesk_rag.tools.helpdesk_stats import register_helpdesk_stats

logger = logging.getLogger(__name__)


def _create_completion(provider: str) -> CompletionProvider:
    """Create a completion client for the given provider name, falling back to Ollama."""
    if provider == "anthropic":
        if AnthropicCompletionClient is not None:
            return AnthropicCompletionClient()
        logger.warning("anthropic package not installed, using Ollama for completions")
    elif provider != "ollama":
        logger.warning("Unknown completion provider %r, using Ollama", provider)
    return OllamaCompletionClient()


def _load_erp_lookup() -> ErpLookup | None:
    path = get_erp_mappings_path()
    if path is None:
        return None
    try:
        return ErpLookup.from_json_file(path)
    except ConfigurationError:
        logger.error("ERP lookup disabled", exc_info=True)
        return None


async def _flush_periodically(pipeline: HelpdeskPipeline, interval: float) -> None:
    """Persist pipeline state every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            await pipeline.flush()
        except aiosqlite.Error:
            logger.error("Periodic state flush failed", exc_info=True)


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Manage the database, providers and pipeline state lifecycle."""
    # Configure logging to stderr (stdout is MCP stdio transport)
    logging.basicConfig(
        level=getattr(logging, get_log_level().upper(), logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    db_path = get_db_path()
    logger.info("Opening database at %s", db_path)
    db = await create_connection(db_path)

    embedder = OllamaEmbeddingClient()
    registry = CorpusRegistry(SQLiteKnowledgeStore(db), embedder)
    init_tasks = registry.start_background()

    engine = HybridSearchEngine(registry, embedder)
    cache = SemanticQueryCache(engine.embed_query)
    learner = AutoLearner(registry, cache)
    completion = _create_completion(get_completion_provider())
    pipeline = HelpdeskPipeline(
        registry,
        engine,
        cache,
        completion,
        learner=learner,
        erp_lookup=_load_erp_lookup(),
        state_store=StateStore(db),
    )
    await pipeline.restore()
    flush_task = asyncio.create_task(_flush_periodically(pipeline, get_flush_interval()))
    logger.info("Pipeline ready, sources loading in the background")

    try:
        yield {"db": db, "pipeline": pipeline, "learner": learner, "registry": registry}
    finally:
        background = [*init_tasks, flush_task]
        for task in background:
            task.cancel()
        await asyncio.gather(*background, return_exceptions=True)
        await pipeline.flush()
        await learner.sweep()
        await completion.close()
        await embedder.close()
        await db.close()
        logger.info("Database connection closed")


_INSTRUCTIONS = """\
IT support assistant backed by the company knowledge base: curated articles, \
wiki pages, reference spreadsheets (forms, links, contacts) and solutions from \
resolved support tickets.

- helpdesk_ask: Answer an employee's support question. Pass earlier turns as \
history for follow-ups. Mention ticket ids (INC-1234, MT-5678) to pull in \
those tickets and similar solved ones.
- helpdesk_feedback: Rate an answer, passing back the specialist, score and \
sources from its footer. For a bad answer, give a correction with \
the terms the answer should have matched; repeated corrections teach the \
knowledge base new keywords.
- helpdesk_feedback_review: Move feedback through review, apply or dismiss.
- helpdesk_validate: Confirm that an item from an answer footer solved the \
problem. Validated items rank higher within their source.
- helpdesk_stats: Cache hit rate, satisfaction, keyword suggestions and \
recurring failure alerts.
"""


def create_server() -> FastMCP:
    """Create and configure the MCP server with all tools."""
    mcp = FastMCP(
        "helpdesk-rag",
        instructions=_INSTRUCTIONS,
        lifespan=lifespan,
    )

    register_helpdesk_ask(mcp)
    register_helpdesk_feedback(mcp)
    register_helpdesk_stats(mcp)

    return mcp

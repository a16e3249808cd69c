"""Query pipeline: route, check the cache, retrieve, assemble context, complete.

One ``HelpdeskPipeline`` serves every chat session. Its shared state (corpora,
semantic cache, learner) is handed in at construction, each piece with its own
locking, so concurrent ``ask`` calls need no coordination here.
"""

import functools
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from helpdesk_rag.cache.semantic_cache import SemanticQueryCache
from helpdesk_rag.config import get_confidence_floor
from helpdesk_rag.context.assembler import AssembledContext, ContextAssembler, ContextSection
from helpdesk_rag.errors import ConfigurationError, EmptyQueryError, TransientProviderError
from helpdesk_rag.learning.auto_learner import AutoLearner, LearnerState
from helpdesk_rag.llm.provider import ChatTurn, CompletionProvider, StreamChunk
from helpdesk_rag.models.item import SourceType
from helpdesk_rag.models.search import SearchResult
from helpdesk_rag.models.specialist import RouteConfig, Specialist
from helpdesk_rag.resilience import retry_async
from helpdesk_rag.routing.erp_lookup import ErpLookup
from helpdesk_rag.routing.prompts import TICKET_PROMPT_SUFFIX
from helpdesk_rag.routing.router import SpecialistRouter
from helpdesk_rag.routing.tickets import (
    TicketReferenceDetector,
    build_ticket_context,
    find_ticket,
)
from helpdesk_rag.search.corpus import CorpusRegistry
from helpdesk_rag.search.hybrid import HybridSearchEngine
from helpdesk_rag.store.state_store import StateStore

logger = logging.getLogger(__name__)

NO_KNOWLEDGE_RESPONSE = (
    "I could not find information about this in the knowledge base. "
    "Please rephrase your question with more detail (system name, error message), "
    "or open a support ticket so the IT team can help you."
)

COMPLETION_UNAVAILABLE_RESPONSE = (
    "I am unable to complete an answer right now. "
    "Please try again in a few minutes, or open a support ticket if the problem is urgent."
)


class PipelineAnswer(BaseModel):
    """The answer to one query and where it came from."""

    response: str
    specialist: Specialist
    sources_used: list[str] = Field(default_factory=list)
    from_cache: bool = False
    best_score: float = 0.0
    low_confidence: bool = False
    ticket_ids: list[str] = Field(default_factory=list)


@dataclass
class _Prepared:
    """Everything decided before the completion call."""

    query: str
    route: RouteConfig
    answer: PipelineAnswer | None = None
    system_prompt: str = ""
    user_prompt: str = ""
    context: AssembledContext | None = None
    best_score: float = 0.0
    ticket_ids: list[str] = field(default_factory=list)


def _user_prompt(query: str, context: AssembledContext) -> str:
    return f"{context.text.rstrip()}\n\n=== QUESTION ===\n{query}\n"


class CompletionStream:
    """Ordered, cancellable stream of answer chunks ending with ``done=True``.

    ``aclose`` (or leaving ``async with``) closes the provider stream, which
    releases its connection. A completed stream reports its full answer via
    ``answer``.
    """

    def __init__(
        self,
        answer: PipelineAnswer,
        chunks: AsyncIterator[str] | None = None,
        on_complete: Callable[[PipelineAnswer], Awaitable[None]] | None = None,
    ) -> None:
        self._answer = answer
        self._chunks = chunks
        self._on_complete = on_complete
        self._parts: list[str] = []
        self._finished = False

    @property
    def answer(self) -> PipelineAnswer:
        """The answer so far; final once the ``done`` chunk was produced."""
        if self._chunks is None:
            return self._answer
        return self._answer.model_copy(update={"response": "".join(self._parts)})

    def __aiter__(self) -> "CompletionStream":
        return self

    async def __anext__(self) -> StreamChunk:
        if self._finished:
            raise StopAsyncIteration
        if self._chunks is None:
            self._finished = True
            return StreamChunk(text=self._answer.response, done=True)
        try:
            text = await anext(self._chunks)
        except StopAsyncIteration:
            self._finished = True
            if self._on_complete is not None:
                await self._on_complete(self.answer)
            return StreamChunk(done=True)
        except (TransientProviderError, ConfigurationError):
            logger.warning("Completion stream failed", exc_info=True)
            await self.aclose()
            fallback = "" if self._parts else COMPLETION_UNAVAILABLE_RESPONSE
            self._parts.append(fallback)
            return StreamChunk(text=fallback, done=True)
        self._parts.append(text)
        return StreamChunk(text=text)

    async def aclose(self) -> None:
        """Stop the stream and release the provider connection."""
        self._finished = True
        if self._chunks is not None:
            aclose = getattr(self._chunks, "aclose", None)
            if aclose is not None:
                await aclose()

    async def __aenter__(self) -> "CompletionStream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class HelpdeskPipeline:
    """Answers support questions from the knowledge corpora."""

    def __init__(
        self,
        registry: CorpusRegistry,
        engine: HybridSearchEngine,
        cache: SemanticQueryCache,
        completion: CompletionProvider,
        *,
        router: SpecialistRouter | None = None,
        assembler: ContextAssembler | None = None,
        learner: AutoLearner | None = None,
        erp_lookup: ErpLookup | None = None,
        ticket_detector: TicketReferenceDetector | None = None,
        state_store: StateStore | None = None,
        confidence_floor: float | None = None,
    ) -> None:
        self.registry = registry
        self.engine = engine
        self.cache = cache
        self.completion = completion
        self.router = router or SpecialistRouter()
        self.assembler = assembler or ContextAssembler()
        self.learner = learner
        self.erp_lookup = erp_lookup
        self.ticket_detector = ticket_detector or TicketReferenceDetector()
        self.state_store = state_store
        self.confidence_floor = (
            confidence_floor if confidence_floor is not None else get_confidence_floor()
        )

    async def ask(self, query: str, history: Sequence[ChatTurn] | None = None) -> PipelineAnswer:
        """Answer a query. Always returns a response; provider failures degrade."""
        prepared = await self._prepare(query)
        if prepared.answer is not None:
            return prepared.answer

        try:
            response = await retry_async(
                functools.partial(
                    self.completion.complete,
                    prepared.system_prompt,
                    prepared.user_prompt,
                    list(history or ()),
                ),
                description="Completion",
            )
        except (TransientProviderError, ConfigurationError):
            logger.error("Completion failed for %r", prepared.query[:50], exc_info=True)
            return self._answer(prepared, COMPLETION_UNAVAILABLE_RESPONSE)

        answer = self._answer(prepared, response)
        await self._remember(answer, prepared.query)
        return answer

    async def ask_stream(
        self, query: str, history: Sequence[ChatTurn] | None = None
    ) -> CompletionStream:
        """Like ``ask`` but streams the completion. Cache hits arrive as one chunk."""
        prepared = await self._prepare(query)
        if prepared.answer is not None:
            return CompletionStream(prepared.answer)

        chunks = self.completion.stream(
            prepared.system_prompt, prepared.user_prompt, list(history or ())
        )

        async def on_complete(answer: PipelineAnswer) -> None:
            await self._remember(answer, prepared.query)

        return CompletionStream(self._answer(prepared, ""), chunks, on_complete)

    async def flush(self) -> None:
        """Persist the cache and learner state, if a state store is configured."""
        if self.state_store is None:
            return
        await self.state_store.save_cache(await self.cache.entries())
        if self.learner is not None:
            state = await self.learner.snapshot()
            await self.state_store.save_feedback(state.records)
            await self.state_store.save_counters(state.counters)
            await self.state_store.save_patterns(state.patterns)
        logger.info("Flushed pipeline state")

    async def restore(self) -> None:
        """Reload the cache and learner state saved by ``flush``."""
        if self.state_store is None:
            return
        await self.cache.restore(await self.state_store.load_cache())
        if self.learner is not None:
            await self.learner.restore(
                LearnerState(
                    records=await self.state_store.load_feedback(),
                    counters=await self.state_store.load_counters(),
                    patterns=await self.state_store.load_patterns(),
                )
            )

    async def _prepare(self, query: str) -> _Prepared:
        query = query.strip()
        if not query:
            raise EmptyQueryError("Query must not be empty")

        route = self.router.route(query)
        prepared = _Prepared(query=query, route=route)

        cached = await self.cache.lookup(query, route.specialist)
        if cached is not None:
            prepared.answer = PipelineAnswer(
                response=cached.response,
                specialist=route.specialist,
                sources_used=cached.sources,
                from_cache=True,
                best_score=1.0,
            )
            return prepared

        preface: list[ContextSection] = []
        prepared.ticket_ids = self.ticket_detector.detect(query)
        ticket_section = await build_ticket_context(
            prepared.ticket_ids, self.engine, self.registry, query
        )
        if ticket_section is not None:
            preface.append(ticket_section)
            if any(find_ticket(self.registry, t) for t in prepared.ticket_ids):
                prepared.best_score = 1.0

        erp_result = None
        if route.specialist == Specialist.ERP and self.erp_lookup is not None:
            erp_result = self.erp_lookup.lookup(query)

        per_source: dict[SourceType, list[SearchResult]] = {}
        if erp_result is not None:
            logger.info("ERP lookup answered %r: %s", query[:50], erp_result.summary())
            preface.append(ContextSection(text=erp_result.render()))
            prepared.best_score = 1.0
        else:
            embed_text = " ".join([query, *route.keywords]) if route.keywords else None
            per_source = await self.engine.search_sources(
                query,
                route.sources,
                exclude_ids=ticket_section.item_ids if ticket_section else (),
                embed_text=embed_text,
            )
            scores = [r.raw_score for results in per_source.values() for r in results]
            prepared.best_score = max([prepared.best_score, *scores])

        context = self.assembler.build_context(per_source, preface_sections=preface)
        prepared.context = context
        if context.is_empty:
            logger.info("No knowledge found for %r", query[:50])
            prepared.answer = self._answer(prepared, NO_KNOWLEDGE_RESPONSE)
            return prepared

        system = route.system_prompt
        if prepared.ticket_ids:
            system += TICKET_PROMPT_SUFFIX
        prepared.system_prompt = system
        prepared.user_prompt = _user_prompt(query, context)
        logger.debug(
            "Prepared %r: specialist=%s, %d items, best score %.3f",
            query[:50],
            route.specialist.value,
            len(context.used_item_ids),
            prepared.best_score,
        )
        return prepared

    def _answer(self, prepared: _Prepared, response: str) -> PipelineAnswer:
        return PipelineAnswer(
            response=response,
            specialist=prepared.route.specialist,
            sources_used=prepared.context.used_item_ids if prepared.context else [],
            best_score=prepared.best_score,
            low_confidence=prepared.best_score < self.confidence_floor,
            ticket_ids=prepared.ticket_ids,
        )

    async def _remember(self, answer: PipelineAnswer, query: str) -> None:
        if not answer.response.strip() or answer.response == COMPLETION_UNAVAILABLE_RESPONSE:
            return
        await self.cache.store(
            query, answer.response, answer.specialist, sources=answer.sources_used
        )

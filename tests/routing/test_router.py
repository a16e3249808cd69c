"""Tests for specialist classification and dispatch."""

from helpdesk_rag.models.item import SourceType
from helpdesk_rag.models.specialist import Specialist
from helpdesk_rag.routing.prompts import BASE_SYSTEM_PROMPT, system_prompt_for
from helpdesk_rag.routing.router import (
    ALL_SOURCES,
    DEFAULT_ROUTE_SOURCES,
    EXPANSION_KEYWORDS,
    SpecialistRouter,
)


def test_erp_outscores_network():
    router = SpecialistRouter()
    query = "SAP transaction ME21N access issue"

    assert router.scores(query) == {Specialist.ERP: 2, Specialist.NETWORK: 1}
    route = router.route(query)
    assert route.specialist == Specialist.ERP
    assert route.keywords == EXPANSION_KEYWORDS[Specialist.ERP]
    assert route.system_prompt == system_prompt_for(Specialist.ERP)
    assert route.sources == list(DEFAULT_ROUTE_SOURCES[Specialist.ERP])


def test_tie_goes_to_general():
    router = SpecialistRouter()
    assert router.scores("vpn password") == {Specialist.NETWORK: 1, Specialist.SECURITY: 1}
    assert router.classify("vpn password") == Specialist.GENERAL


def test_no_hits_go_to_general():
    route = SpecialistRouter().route("Hello, who should I talk to?")
    assert route.specialist == Specialist.GENERAL
    assert route.keywords == []
    assert route.system_prompt == BASE_SYSTEM_PROMPT


def test_accents_folded():
    assert SpecialistRouter().classify("No puedo abrir la transacción") == Specialist.ERP


def test_phrases_match_whole_words():
    router = SpecialistRouter()
    assert router.scores("Acceso remoto no funciona")[Specialist.NETWORK] == 2
    assert router.scores("sapling redwood") == {}


def test_specialist_prompt_extends_base():
    prompt = system_prompt_for(Specialist.NETWORK)
    assert prompt.startswith(BASE_SYSTEM_PROMPT)
    assert prompt != BASE_SYSTEM_PROMPT


def test_custom_sources_and_terms():
    router = SpecialistRouter(
        terms={Specialist.PLM: frozenset({"teamcenter"})},
        sources={Specialist.PLM: [SourceType.WIKI_PAGE]},
    )
    route = router.route("Teamcenter login fails")
    assert route.specialist == Specialist.PLM
    assert route.sources == [SourceType.WIKI_PAGE]
    assert router.classify("SAP is slow") == Specialist.GENERAL


def test_specialists_search_different_sources():
    router = SpecialistRouter()
    erp = router.dispatch("q", Specialist.ERP).sources
    network = router.dispatch("q", Specialist.NETWORK).sources

    assert erp != network
    assert SourceType.WIKI_PAGE not in erp
    assert SourceType.ARTICLE not in network
    assert router.dispatch("q", Specialist.GENERAL).sources == list(ALL_SOURCES)
    assert router.dispatch("q", Specialist.PLM).sources == list(ALL_SOURCES)

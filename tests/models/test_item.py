"""Tests for knowledge item projections."""

from helpdesk_rag.models.item import KnowledgeItem, display_body, display_title
from tests.factories import article, reference, ticket, wiki


def test_searchable_text_per_variant():
    assert article("kb-1", "VPN", number="KB0012", summary="s").searchable_text.startswith(
        "KB0012 VPN s"
    )
    assert "DHCP" in wiki("wiki-1", "Network", content="DHCP leases").searchable_text
    assert "forms" in reference("ref-1", "VPN form", category="forms").searchable_text
    text = ticket("MT-1", "VPN down", steps=["Open client", "Reconnect"]).searchable_text
    assert text.startswith("MT-1 VPN down")
    assert "Reconnect" in text


def test_metadata_strings_are_searchable():
    item = wiki("wiki-1", "Guide").model_copy(update={"metadata": {"owner": "netops", "n": 3}})
    assert item.searchable_text.endswith("netops")


def test_ticket_rendering():
    item = ticket("MT-7", "Outlook crash", problem="Crashes", steps=["Safe mode", "Repair"])
    assert display_title(item.content) == "MT-7: Outlook crash"
    assert display_body(item.content) == (
        "Problem: Crashes\nSteps:\n1. Safe mode\n2. Repair"
    )


def test_embedding_goes_stale_when_text_changes():
    item = wiki("wiki-1", "Guide").with_embedding([1.0])
    assert not item.needs_embedding

    enriched, added = item.with_keywords(["Proxy", "proxy", " "])
    assert added == ["proxy"]
    assert enriched.needs_embedding
    assert item.keywords == []


def test_with_keywords_noop_returns_same_item():
    item = wiki("wiki-1", "Guide", keywords=["Proxy"])
    same, added = item.with_keywords(["proxy"])
    assert same is item
    assert added == []


def test_round_trip_keeps_variant():
    item = reference("ref-1", "Form", link="https://x.example")
    restored = KnowledgeItem.model_validate_json(item.model_dump_json())
    assert restored == item

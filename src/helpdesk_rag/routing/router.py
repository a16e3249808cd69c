"""Rule-based specialist classification."""

import logging
from collections.abc import Mapping, Sequence

from helpdesk_rag.models.item import SourceType
from helpdesk_rag.models.specialist import RouteConfig, Specialist
from helpdesk_rag.routing.prompts import system_prompt_for
from helpdesk_rag.search.text import normalize, tokenize

logger = logging.getLogger(__name__)

# Matched against accent-folded query tokens; multi-word terms match as phrases
SPECIALIST_TERMS: dict[Specialist, frozenset[str]] = {
    Specialist.ERP: frozenset(
        {
            "sap", "sapgui", "sap gui", "fiori", "transaction", "transactions",
            "transaccion", "transacciones", "t-code", "tcode", "authorization",
            "authorizations", "autorizacion", "autorizaciones", "rol sap", "role sap",
            "posicion sap", "position sap", "idoc",
        }
    ),
    Specialist.NETWORK: frozenset(
        {
            "zscaler", "zcc", "vpn", "remote", "remoto", "acceso remoto", "work from home",
            "trabajo desde casa", "connect", "conectar", "conexion", "connectivity",
            "conectividad", "network", "red", "internet", "wifi", "proxy", "firewall",
            "blocked", "bloqueado", "access",
        }
    ),
    Specialist.PLM: frozenset(
        {
            "teamcenter", "catia", "cad", "plm", "siemens", "nx", "drawing", "diseno",
            "design", "bom", "visualization", "rac", "awc",
        }
    ),
    Specialist.EDI: frozenset(
        {
            "edi", "b2b", "supplier", "proveedor", "beone", "buyone", "extranet",
            "portal proveedores", "supplier portal",
        }
    ),
    Specialist.MANUFACTURING: frozenset(
        {
            "mes", "blade", "production", "produccion", "manufacturing", "shop floor",
            "plc", "opc", "scada",
        }
    ),
    Specialist.WORKPLACE: frozenset(
        {
            "outlook", "teams", "office", "email", "correo", "printer", "impresora",
            "laptop", "portatil", "pc", "onedrive", "sharepoint", "intune",
        }
    ),
    Specialist.INFRASTRUCTURE: frozenset(
        {
            "server", "servidor", "azure", "vmware", "backup", "storage", "datacenter",
            "dns", "dhcp", "active directory", "gpo", "hyper-v",
        }
    ),
    Specialist.SECURITY: frozenset(
        {
            "password", "contrasena", "mfa", "2fa", "security", "seguridad", "phishing",
            "malware", "virus", "bitlocker", "cyberark", "unlock", "desbloquear",
        }
    ),
}  # fmt: skip

# Appended to the text that gets embedded so the vector leans toward the domain
EXPANSION_KEYWORDS: dict[Specialist, list[str]] = {
    Specialist.ERP: ["sap", "transaction", "role", "authorization", "fiori"],
    Specialist.NETWORK: ["zscaler", "vpn", "remote access", "connectivity", "network"],
    Specialist.PLM: ["teamcenter", "catia", "cad", "plm", "drawing"],
    Specialist.EDI: ["edi", "b2b", "portal", "supplier"],
    Specialist.MANUFACTURING: ["mes", "production", "manufacturing", "plant"],
    Specialist.WORKPLACE: ["office", "teams", "outlook", "laptop", "printer", "email"],
    Specialist.INFRASTRUCTURE: ["server", "azure", "vmware", "backup", "active directory"],
    Specialist.SECURITY: ["password", "mfa", "security", "unlock"],
}

ALL_SOURCES: tuple[SourceType, ...] = tuple(SourceType)

# Specialists missing here search every source
DEFAULT_ROUTE_SOURCES: dict[Specialist, tuple[SourceType, ...]] = {
    # ERP skips wiki pages
    Specialist.ERP: (SourceType.ARTICLE, SourceType.REFERENCE_ROW, SourceType.TICKET_SOLUTION),
    # Network skips curated articles
    Specialist.NETWORK: (
        SourceType.WIKI_PAGE,
        SourceType.REFERENCE_ROW,
        SourceType.TICKET_SOLUTION,
    ),
}


def _phrase_text(query: str) -> str:
    return " " + " ".join(normalize(t) for t in tokenize(query)) + " "


class SpecialistRouter:
    """Scores each specialist by term hits in the query; the clear winner routes it."""

    def __init__(
        self,
        terms: Mapping[Specialist, frozenset[str]] | None = None,
        sources: Mapping[Specialist, Sequence[SourceType]] | None = None,
    ) -> None:
        self.terms = dict(terms) if terms is not None else dict(SPECIALIST_TERMS)
        self.sources = {**DEFAULT_ROUTE_SOURCES, **(sources or {})}

    def scores(self, query: str) -> dict[Specialist, int]:
        """Term hits per specialist, zero-score specialists omitted."""
        text = _phrase_text(query)
        result: dict[Specialist, int] = {}
        for specialist, terms in self.terms.items():
            hits = sum(1 for term in terms if f" {term} " in text)
            if hits:
                result[specialist] = hits
        return result

    def classify(self, query: str) -> Specialist:
        """Pick the highest-scoring specialist. Ties and no hits go to General."""
        scores = self.scores(query)
        if not scores:
            return Specialist.GENERAL
        best = max(scores.values())
        winners = [s for s, n in scores.items() if n == best]
        specialist = winners[0] if len(winners) == 1 else Specialist.GENERAL
        logger.debug("Routing scores %s -> %s", scores, specialist.value)
        return specialist

    def dispatch(self, query: str, specialist: Specialist) -> RouteConfig:
        """Retrieval configuration for a query already classified to ``specialist``."""
        return RouteConfig(
            specialist=specialist,
            keywords=list(EXPANSION_KEYWORDS.get(specialist, [])),
            system_prompt=system_prompt_for(specialist),
            sources=list(self.sources.get(specialist, ALL_SOURCES)),
        )

    def route(self, query: str) -> RouteConfig:
        """Classify and dispatch in one step."""
        return self.dispatch(query, self.classify(query))

"""Structured ERP access lookups: position -> business role -> role -> transaction.

Questions like "which role gives me ME21N?" have one exact answer in the
authorization mapping table. When the query names a code that exists in the
table, the matching rows are rendered as an authoritative context section and
ranked retrieval is skipped for the ERP specialist.
"""

import logging
import re
from collections.abc import Iterable
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from helpdesk_rag.errors import ConfigurationError

logger = logging.getLogger(__name__)

_CODE_SPLIT_RE = re.compile(r"[\s,?¿!¡.:;\"']+")


class ErpMapping(BaseModel):
    """One row of the authorization table."""

    position_id: str = ""
    position_name: str = ""
    business_role: str = ""
    business_role_name: str = ""
    role_id: str = ""
    transaction: str = ""
    transaction_description: str = ""


class CodeKind(StrEnum):
    TRANSACTION = "transaction"
    ROLE = "role"
    BUSINESS_ROLE = "business_role"
    POSITION = "position"


class ErpLookupResult(BaseModel):
    """Rows matched by the codes found in a query."""

    codes: dict[str, CodeKind] = Field(default_factory=dict)
    mappings: list[ErpMapping] = Field(default_factory=list)

    def transactions(self) -> list[tuple[str, ...]]:
        return _distinct((m.transaction, m.transaction_description) for m in self.mappings)

    def roles(self) -> list[str]:
        return [r for r in dict.fromkeys(m.role_id for m in self.mappings) if r]

    def positions(self) -> list[tuple[str, ...]]:
        return _distinct((m.position_id, m.position_name) for m in self.mappings)

    def summary(self) -> str:
        parts = []
        if txs := self.transactions():
            parts.append(f"{len(txs)} transaction(s)")
        if roles := self.roles():
            parts.append(f"{len(roles)} role(s)")
        if positions := [p for p in self.positions() if p[0]]:
            parts.append(f"{len(positions)} position(s)")
        return "Found: " + ", ".join(parts) if parts else "No results"

    def render(self) -> str:
        """Render the match as a context section for the completion call."""
        lines = ["=== ERP AUTHORIZATION LOOKUP (authoritative) ==="]
        lines.append(
            "Codes in the question: "
            + ", ".join(f"{code} ({kind.value})" for code, kind in self.codes.items())
        )
        lines.append(self.summary())
        lines.append("")
        lines.append("| Position | Business role | Role | Transaction | Description |")
        lines.append("|---|---|---|---|---|")
        for m in self.mappings:
            position = f"{m.position_id} {m.position_name}".strip()
            brole = f"{m.business_role} {m.business_role_name}".strip()
            lines.append(
                f"| {position} | {brole} | {m.role_id} | {m.transaction} "
                f"| {m.transaction_description} |"
            )
        return "\n".join(lines) + "\n"


def _distinct(rows: Iterable[tuple[str, ...]]) -> list[tuple[str, ...]]:
    seen: list[tuple[str, ...]] = []
    for row in rows:
        if row not in seen and any(row):
            seen.append(row)
    return seen


class ErpLookup:
    """In-memory index of the authorization table by every code it contains."""

    def __init__(self, mappings: Iterable[ErpMapping], max_rows: int = 50) -> None:
        self.mappings = list(mappings)
        self.max_rows = max_rows
        self._index: dict[CodeKind, dict[str, list[ErpMapping]]] = {k: {} for k in CodeKind}
        for mapping in self.mappings:
            for kind, code in (
                (CodeKind.TRANSACTION, mapping.transaction),
                (CodeKind.ROLE, mapping.role_id),
                (CodeKind.BUSINESS_ROLE, mapping.business_role),
                (CodeKind.POSITION, mapping.position_id),
            ):
                if code:
                    self._index[kind].setdefault(code.upper(), []).append(mapping)
        logger.info("ERP lookup indexed %d mappings", len(self.mappings))

    @classmethod
    def from_json_file(cls, path: Path) -> "ErpLookup":
        """Load a JSON array of mapping rows."""
        try:
            rows = TypeAdapter(list[ErpMapping]).validate_json(path.read_bytes())
        except (OSError, ValidationError) as exc:
            raise ConfigurationError(f"Cannot load ERP mappings from {path}: {exc}") from exc
        return cls(rows)

    def extract_codes(self, query: str) -> dict[str, CodeKind]:
        """Known codes named in the query, in query order."""
        codes: dict[str, CodeKind] = {}
        for word in _CODE_SPLIT_RE.split(query):
            token = word.strip().upper()
            if not token or token in codes:
                continue
            for kind in CodeKind:
                if token in self._index[kind]:
                    codes[token] = kind
                    break
        return codes

    def lookup(self, query: str) -> ErpLookupResult | None:
        """Structured answer for an exact code match, None otherwise."""
        codes = self.extract_codes(query)
        if not codes:
            return None
        rows: list[ErpMapping] = []
        for code, kind in codes.items():
            for mapping in self._index[kind][code]:
                if mapping not in rows:
                    rows.append(mapping)
        if len(rows) > self.max_rows:
            logger.debug("ERP lookup for %s truncated to %d rows", list(codes), self.max_rows)
            rows = rows[: self.max_rows]
        return ErpLookupResult(codes=codes, mappings=rows)

"""Specialist routing models."""

from enum import StrEnum

from pydantic import BaseModel, Field

from helpdesk_rag.models.item import SourceType


class Specialist(StrEnum):
    """Query domains, each with its own prompt and source subset."""

    GENERAL = "general"
    ERP = "erp"
    NETWORK = "network"
    PLM = "plm"
    EDI = "edi"
    MANUFACTURING = "manufacturing"
    WORKPLACE = "workplace"
    INFRASTRUCTURE = "infrastructure"
    SECURITY = "security"


class RouteConfig(BaseModel):
    """Retrieval configuration chosen for a query."""

    specialist: Specialist
    keywords: list[str] = Field(default_factory=list)
    system_prompt: str
    sources: list[SourceType]

from __future__ import annotations

from typing import Any, Literal

from pydantic import ConfigDict, Field, field_validator

from app.contracts.contacts import SENIORITY_TIERS, CamelModel, SeniorityTier


class ResearchedContact(CamelModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    company: str = ""
    company_id: str
    name: str
    title: str = ""
    linkedin_url: str = ""
    seniority: SeniorityTier = "Unknown"
    relevance_score: int = 5
    reasoning: str = ""
    source: Literal["web_research"] = "web_research"
    research_sources: list[str] | None = None
    verified: bool | None = None

    @field_validator("company", "title", "linkedin_url", "reasoning", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("seniority", mode="before")
    @classmethod
    def _coerce_seniority(cls, value: Any) -> Any:
        return value if value in SENIORITY_TIERS else "Unknown"

    @field_validator("relevance_score", mode="before")
    @classmethod
    def _clamp_relevance(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not value:
            return 5
        return min(10, max(1, int(value)))


class ResearchResult(CamelModel):
    company_id: str
    company_name: str
    contacts: list[ResearchedContact] = Field(default_factory=list)
    search_queries: list[str] = Field(default_factory=list)

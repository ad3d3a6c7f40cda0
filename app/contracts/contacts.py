from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SeniorityTier = Literal["Executive", "Director", "Manager", "Staff", "Unknown"]
ContactSource = Literal["website_scrape", "apollo", "hunter", "apify", "import", "manual", "web_research"]
VerificationStatus = Literal["verified", "unverified", "failed"]

SENIORITY_TIERS: tuple[str, ...] = ("Executive", "Director", "Manager", "Staff", "Unknown")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Company(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str = ""
    website: str = ""
    domain: str = ""
    verification_status: str | None = None

    @field_validator("name", "website", "domain", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class ProjectContext(CamelModel):
    model_config = ConfigDict(extra="allow")

    target_roles: list[str] = Field(default_factory=list)
    target_seniority: str = "any"
    client_name: str = ""
    product: str = ""
    value_proposition: str = ""

    @field_validator("target_roles", mode="before")
    @classmethod
    def _none_to_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("target_seniority", mode="before")
    @classmethod
    def _default_seniority(cls, value: Any) -> Any:
        return value or "any"


class ProviderSelection(CamelModel):
    apollo: bool = False
    hunter: bool = False
    apify: bool = False
    ai_search: bool = False


class Person(CamelModel):
    id: str
    company: str = ""
    company_id: str
    name: str = ""
    title: str = ""
    email: str = ""
    linkedin: str = ""
    seniority: SeniorityTier | None = None
    source: ContactSource
    verification_status: VerificationStatus = "unverified"
    email_certainty: int = 0
    email_source: str = ""
    email_verified: bool = False

    @field_validator("company", "name", "title", "email", "linkedin", "email_source", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("seniority", mode="before")
    @classmethod
    def _unknown_seniority_is_unset(cls, value: Any) -> Any:
        return value if value in SENIORITY_TIERS else None

    @field_validator("email_certainty", mode="before")
    @classmethod
    def _clamp_certainty(cls, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return 0
        if isinstance(value, (int, float)):
            return max(0, min(100, int(value)))
        return value

    @property
    def effective_email_certainty(self) -> int:
        # Certainty only means something when there is an email to be certain about.
        return self.email_certainty if self.email else 0


class ProviderSummary(CamelModel):
    model_config = ConfigDict(extra="allow")

    companies_processed: int = 0
    contacts_found: int = 0
    credits_used: int | float | None = None
    actor_runs_used: int | None = None


class ProviderResponse(CamelModel):
    persons: list[Person] = Field(default_factory=list)
    summary: ProviderSummary = Field(default_factory=ProviderSummary)
    error: str | None = None


class CreditsUsed(CamelModel):
    apollo: int | float = 0
    hunter: int | float = 0
    apify: float = 0
    ai_search: int = 0


class ProviderResult(CamelModel):
    found: int
    errors: str | None = None


class FindContactsSelectedRequest(CamelModel):
    companies: list[Company] = Field(default_factory=list)
    context: ProjectContext = Field(default_factory=ProjectContext)
    providers: ProviderSelection = Field(default_factory=ProviderSelection)

    @field_validator("companies", mode="before")
    @classmethod
    def _none_to_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value


class FindContactsSelectedSummary(CamelModel):
    companies_processed: int
    contacts_found: int
    providers_used: list[str]
    seniority_breakdown: dict[str, int]
    target_seniority: str
    min_seniority_rank: int
    meets_min_seniority: int


class FindContactsSelectedResponse(CamelModel):
    persons: list[Person] = Field(default_factory=list)
    credits_used: CreditsUsed = Field(default_factory=CreditsUsed)
    provider_results: dict[str, ProviderResult] = Field(default_factory=dict)
    summary: FindContactsSelectedSummary | None = None
    error: str | None = None


class ProviderContactsRequest(CamelModel):
    companies: list[Company] = Field(default_factory=list)
    context: ProjectContext = Field(default_factory=ProjectContext)
    api_key: str | None = None

    @field_validator("companies", mode="before")
    @classmethod
    def _none_to_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value


class ProviderContactsOutput(CamelModel):
    persons: list[Person]
    summary: ProviderSummary

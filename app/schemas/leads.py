"""Acquisition criteria and lead schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator, model_validator

from app.core.config import get_config
from app.core.enums import ContactRequirement, EmailStatus, SearchStrategy
from app.core.exceptions import ValidationError

MAX_INDUSTRIES = 10
MAX_ROLES = 10
MAX_LOCATIONS = 15
MAX_TOTAL_FILTERS = 20


def _clean_values(value: Any) -> list[str]:
    """Strip, drop blanks and de-duplicate (case-insensitive) while keeping order."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    cleaned: list[str] = []
    seen: set[str] = set()
    for item in value:
        text = str(item).strip()
        if not text or text.lower() in seen:
            continue
        seen.add(text.lower())
        cleaned.append(text)
    return cleaned


class RevenueRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: int | None = Field(default=None, ge=0)
    max: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def min_not_above_max(self) -> "RevenueRange":
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("revenue_range.min must not exceed revenue_range.max")
        return self

    @property
    def is_set(self) -> bool:
        return bool(self.min or self.max)


class AcquisitionCriteria(BaseModel):
    """User-authored targeting. Every facet is optional and independent."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    industries: list[str] = Field(default_factory=list, validation_alias=AliasChoices("industries", "targetIndustry"))
    roles: list[str] = Field(default_factory=list, validation_alias=AliasChoices("roles", "targetRole"))
    company_sizes: list[str] = Field(default_factory=list, validation_alias=AliasChoices("company_sizes", "companySize"))
    countries: list[str] = Field(default_factory=list, validation_alias=AliasChoices("countries", "country"))
    states: list[str] = Field(default_factory=list, validation_alias=AliasChoices("states", "state"))
    cities: list[str] = Field(default_factory=list, validation_alias=AliasChoices("cities", "city"))
    keywords: list[str] = Field(default_factory=list)
    technologies: list[str] = Field(default_factory=list)
    revenue_range: RevenueRange | None = Field(default=None, validation_alias=AliasChoices("revenue_range", "revenueRange"))
    lead_count: int = Field(default=10, ge=1, validation_alias=AliasChoices("lead_count", "leadCount"))
    requirements: list[ContactRequirement] = Field(default_factory=list)

    @field_validator("industries", "roles", "company_sizes", "countries", "states", "cities", "keywords", "technologies", mode="before")
    @classmethod
    def clean_facet(cls, value: Any) -> list[str]:
        return _clean_values(value)

    @field_validator("requirements", mode="before")
    @classmethod
    def clean_requirements(cls, value: Any) -> list[str]:
        return [item.lower() for item in _clean_values(value)]

    @model_validator(mode="after")
    def within_limits(self) -> "AcquisitionCriteria":
        max_leads = get_config().MAX_LEADS_PER_REQUEST
        if self.lead_count > max_leads:
            raise ValueError(f"lead_count must be between 1 and {max_leads}")
        if len(self.industries) > MAX_INDUSTRIES:
            raise ValueError(f"Too many industries selected. Maximum {MAX_INDUSTRIES} allowed.")
        if len(self.roles) > MAX_ROLES:
            raise ValueError(f"Too many job titles selected. Maximum {MAX_ROLES} allowed.")
        if self.location_count > MAX_LOCATIONS:
            raise ValueError("Too many locations selected. Try fewer countries, states, or cities.")
        if self.total_filters > MAX_TOTAL_FILTERS:
            raise ValueError("Search criteria too complex. Reduce the number of filters.")
        return self

    @property
    def location_count(self) -> int:
        return len(self.countries) + len(self.states) + len(self.cities)

    @property
    def total_filters(self) -> int:
        return len(self.industries) + len(self.roles) + self.location_count + len(self.company_sizes)

    @property
    def complexity_level(self) -> str:
        if self.total_filters > 10:
            return "high"
        if self.total_filters > 5:
            return "medium"
        return "low"

    def requires(self, requirement: ContactRequirement) -> bool:
        return requirement in self.requirements


def validate_criteria(payload: dict[str, Any] | AcquisitionCriteria) -> AcquisitionCriteria:
    """Build criteria from a raw payload, raising the engine's ValidationError."""
    if isinstance(payload, AcquisitionCriteria):
        return payload
    try:
        return AcquisitionCriteria.model_validate(payload)
    except PydanticValidationError as exc:
        messages = "; ".join(err["msg"] for err in exc.errors())
        raise ValidationError(messages) from exc


class LeadMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    employee_count: int | None = None
    company_size: str = "Unknown"
    revenue_bucket: str = "Unknown"
    founded_year: int | None = None
    departments: tuple[str, ...] = ()
    seniority: str | None = None
    email_status: EmailStatus = EmailStatus.UNAVAILABLE
    technologies: tuple[str, ...] = ()
    country: str | None = None


class Lead(BaseModel):
    """A normalized contact. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(min_length=1)
    title: str | None = None
    company: str | None = None
    industry: str = "Other"
    location: str = "Unknown"
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None
    website: str | None = None
    score: int = Field(ge=1, le=100)
    source_id: str | None = None
    metadata: LeadMetadata = Field(default_factory=LeadMetadata)

    @model_validator(mode="after")
    def has_employer_or_title(self) -> "Lead":
        if not (self.company or self.title):
            raise ValueError("a lead needs an employer or a job title")
        return self


class AcquisitionResult(BaseModel):
    leads: list[Lead] = Field(default_factory=list)
    total_found: int = 0
    from_cache: bool = False
    elapsed_time_ms: int = 0
    strategy: SearchStrategy | None = None
    strategies_attempted: int = 0


class AcquisitionOutcome(BaseModel):
    """Caller-facing result of acquire-then-settle."""

    record_id: str
    leads: list[Lead]
    total_found: int
    credits_deducted: int
    free_units_used: int
    remaining_balance: int
    remaining_free_units: int
    from_cache: bool
    strategy: SearchStrategy | None = None
    elapsed_time_ms: int = 0


class LeadGenerationRequest(BaseModel):
    criteria: AcquisitionCriteria
    campaign_name: str | None = Field(default=None, max_length=255)


class QualityMetrics(BaseModel):
    email_count: int = 0
    phone_count: int = 0
    linkedin_count: int = 0
    avg_employee_count: int = 0
    countries_represented: int = 0


class LeadGenerationSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    workspace_id: str
    lead_count: int
    total_found: int
    average_score: float
    strategy: str | None = None
    criteria: dict[str, Any] = Field(default_factory=dict)
    quality: QualityMetrics = Field(default_factory=QualityMetrics)
    created_at: datetime | None = None


class LeadGenerationDetail(LeadGenerationSummary):
    leads: list[Lead] = Field(default_factory=list)

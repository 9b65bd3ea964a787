"""Turn acquisition criteria into provider query shapes.

Shapes are ordered from most to least specific. The orchestrator walks them
in order and stops at the first one that yields a lead.
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass, field
from typing import Any

from app.core.config import get_config
from app.core.enums import ContactRequirement, SearchStrategy
from app.schemas.leads import AcquisitionCriteria

COMPLEX_TITLE_CAP = 5
COMPLEX_LOCATION_CAP = 4
COMPLEX_INDUSTRY_CAP = 3
SIMPLIFIED_TITLE_CAP = 3
SIMPLIFIED_LOCATION_CAP = 2
SIMPLIFIED_INDUSTRY_CAP = 2
# Size filters survive only on narrow searches.
SIZE_FILTER_MAX_INDUSTRIES = 2
SIZE_FILTER_MAX_ROLES = 2

BROAD_TITLES = (
    "CEO",
    "Chief Executive Officer",
    "President",
    "Founder",
    "Director",
    "Manager",
    "VP",
    "Vice President",
)

EMPLOYEE_RANGES = {
    "1-10": "1,10",
    "10-50": "11,50",
    "11-50": "11,50",
    "50-200": "51,200",
    "51-200": "51,200",
    "200-500": "201,500",
    "201-500": "201,500",
    "500-1000": "501,1000",
    "501-1000": "501,1000",
    "1000+": "1001,10000",
}

_TECH_UID_RE = re.compile(r"[^a-z0-9]")


def employee_range(bucket: str) -> str:
    return EMPLOYEE_RANGES.get(bucket.strip(), bucket.strip().replace("-", ","))


def technology_uid(name: str) -> str:
    return _TECH_UID_RE.sub("_", name.strip().lower())


def location_combinations(criteria: AcquisitionCriteria, cap: int) -> list[str]:
    """Join city, state and country values into provider location strings.

    Builds the product of whichever of the three facets are present, so a
    caller with only countries gets plain country strings.
    """
    present = [values for values in (criteria.cities, criteria.states, criteria.countries) if values]
    if not present:
        return []
    combos = (", ".join(parts) for parts in itertools.product(*present))
    return list(itertools.islice(combos, cap))


def industry_keyword(industries: list[str], cap: int) -> str | None:
    if not industries:
        return None
    if len(industries) == 1:
        return industries[0]
    return " OR ".join(industries[:cap])


@dataclass(frozen=True)
class QueryShape:
    strategy: SearchStrategy
    per_page: int
    titles: tuple[str, ...] = ()
    locations: tuple[str, ...] = ()
    keywords: str | None = None
    employee_ranges: tuple[str, ...] = ()
    technology_uids: tuple[str, ...] = ()
    revenue_min: int | None = None
    revenue_max: int | None = None
    email_required: bool = False
    include_similar_titles: bool = True
    page: int = 1
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    def signature(self) -> tuple:
        return (
            self.titles,
            self.locations,
            self.keywords,
            self.employee_ranges,
            self.technology_uids,
            self.revenue_min,
            self.revenue_max,
            self.email_required,
        )

    def to_payload(self) -> dict[str, Any]:
        """Provider request body for this shape."""
        payload: dict[str, Any] = {
            "per_page": self.per_page,
            "page": self.page,
            "include_similar_titles": self.include_similar_titles,
        }
        if self.titles:
            payload["person_titles"] = list(self.titles)
        if self.locations:
            payload["person_locations"] = list(self.locations)
        if self.keywords:
            payload["q_keywords"] = self.keywords
        if self.employee_ranges:
            payload["organization_num_employees_ranges"] = list(self.employee_ranges)
        if self.technology_uids:
            payload["currently_using_any_of_technology_uids"] = list(self.technology_uids)
        if self.revenue_min:
            payload["revenue_range[min]"] = self.revenue_min
        if self.revenue_max:
            payload["revenue_range[max]"] = self.revenue_max
        if self.email_required:
            payload["contact_email_status"] = ["verified", "unverified"]
        payload.update(self.extra)
        return payload


def _complex_shape(criteria: AcquisitionCriteria, per_page: int) -> QueryShape:
    keyword = industry_keyword(criteria.industries, COMPLEX_INDUSTRY_CAP)
    if criteria.keywords:
        keyword = " ".join(filter(None, [keyword, *criteria.keywords]))

    narrow = len(criteria.industries) <= SIZE_FILTER_MAX_INDUSTRIES and len(criteria.roles) <= SIZE_FILTER_MAX_ROLES
    sizes = tuple(employee_range(size) for size in criteria.company_sizes) if narrow else ()

    revenue = criteria.revenue_range
    return QueryShape(
        strategy=SearchStrategy.COMPLEX,
        per_page=per_page,
        titles=tuple(criteria.roles[:COMPLEX_TITLE_CAP]),
        locations=tuple(location_combinations(criteria, COMPLEX_LOCATION_CAP)),
        keywords=keyword,
        employee_ranges=sizes,
        technology_uids=tuple(technology_uid(tech) for tech in criteria.technologies),
        revenue_min=revenue.min if revenue else None,
        revenue_max=revenue.max if revenue else None,
        email_required=criteria.requires(ContactRequirement.EMAIL),
    )


def _simplified_shape(criteria: AcquisitionCriteria, per_page: int) -> QueryShape:
    return QueryShape(
        strategy=SearchStrategy.SIMPLIFIED,
        per_page=per_page,
        titles=tuple(criteria.roles[:SIMPLIFIED_TITLE_CAP]),
        locations=tuple(location_combinations(criteria, SIMPLIFIED_LOCATION_CAP)),
        keywords=" OR ".join(criteria.industries[:SIMPLIFIED_INDUSTRY_CAP]) or None,
    )


def _minimal_shape(criteria: AcquisitionCriteria, per_page: int) -> QueryShape:
    strategy = SearchStrategy.MINIMAL
    if criteria.roles:
        return QueryShape(strategy=strategy, per_page=per_page, titles=(criteria.roles[0],))
    if criteria.industries:
        return QueryShape(strategy=strategy, per_page=per_page, keywords=criteria.industries[0])
    for values in (criteria.countries, criteria.states, criteria.cities):
        if values:
            return QueryShape(strategy=strategy, per_page=per_page, locations=(values[0],))
    return QueryShape(strategy=strategy, per_page=per_page)


def _broad_shape(per_page: int) -> QueryShape:
    return QueryShape(strategy=SearchStrategy.BROAD, per_page=per_page, titles=BROAD_TITLES)


def plan(criteria: AcquisitionCriteria, page_limit: int | None = None) -> list[QueryShape]:
    """Ordered query shapes for `criteria`, most specific first.

    Shapes that would send an identical query to an earlier one are dropped.
    """
    page_limit = page_limit or get_config().CONTACT_PROVIDER_PAGE_LIMIT
    per_page = min(criteria.lead_count, page_limit)

    candidates = [
        _complex_shape(criteria, per_page),
        _simplified_shape(criteria, per_page),
        _minimal_shape(criteria, per_page),
        _broad_shape(per_page),
    ]
    shapes: list[QueryShape] = []
    seen: set[tuple] = set()
    for shape in candidates:
        if shape.signature() in seen:
            continue
        seen.add(shape.signature())
        shapes.append(shape)
    return shapes

"""Convert raw provider records into scored, classified leads."""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Any, Iterable
from urllib.parse import urlparse

from app.core.enums import ContactRequirement, EmailStatus
from app.schemas.leads import AcquisitionCriteria, Lead, LeadMetadata
from app.services.industry_classifier import classify_organization

logger = logging.getLogger(__name__)

BASE_SCORE = 50
UNKNOWN = "Unknown"

PLACEHOLDER_EMAIL = "email_not_unlocked@domain.com"
_PLACEHOLDER_MARKERS = ("not_unlocked", "@domain.com", "redacted")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_SENIOR_TITLE_RE = re.compile(
    r"\b(?:ceo|cto|cfo|cmo|coo|chief|president|founder|owner|director|vp|svp|evp|vice president|head of|partner)\b",
    re.IGNORECASE,
)
_SLUG_RE = re.compile(r"[^a-z0-9]+")

SIZE_BANDS = (
    (10, "1-10"),
    (50, "11-50"),
    (200, "51-200"),
    (500, "201-500"),
    (1000, "501-1000"),
)
# Headcount proxy only; no real revenue data is used.
REVENUE_BANDS = (
    (10, "<$1M"),
    (50, "$1M-$10M"),
    (200, "$10M-$50M"),
    (500, "$50M-$100M"),
    (1000, "$100M-$500M"),
)


def is_placeholder_email(email: str | None) -> bool:
    if not email:
        return False
    lowered = email.strip().lower()
    return any(marker in lowered for marker in _PLACEHOLDER_MARKERS)


def usable_email(email: Any) -> str | None:
    """Return the email if it is a real address, not a redacted sentinel."""
    if not isinstance(email, str):
        return None
    email = email.strip()
    if not email or is_placeholder_email(email) or not _EMAIL_RE.match(email):
        return None
    return email


def company_size_band(employee_count: int | None) -> str:
    if not employee_count or employee_count < 1:
        return UNKNOWN
    for upper, label in SIZE_BANDS:
        if employee_count <= upper:
            return label
    return "1000+"


def revenue_bucket(employee_count: int | None) -> str:
    if not employee_count or employee_count < 1:
        return UNKNOWN
    for upper, label in REVENUE_BANDS:
        if employee_count <= upper:
            return label
    return "$500M+"


def format_location(record: dict[str, Any]) -> str:
    parts = [str(record.get(key)).strip() for key in ("city", "state", "country") if record.get(key)]
    parts = [part for part in parts if part]
    return ", ".join(parts) or UNKNOWN


def resolve_name(record: dict[str, Any]) -> str | None:
    name = record.get("name")
    if isinstance(name, str) and name.strip():
        return name.strip()
    first = (record.get("first_name") or "").strip()
    last = (record.get("last_name") or "").strip()
    if first and last:
        return f"{first} {last}"
    return None


def _organization(record: dict[str, Any]) -> dict[str, Any]:
    organization = record.get("organization") or record.get("account")
    return organization if isinstance(organization, dict) else {}


def _company_name(record: dict[str, Any]) -> str | None:
    name = _organization(record).get("name") or record.get("organization_name")
    return name.strip() if isinstance(name, str) and name.strip() else None


def _title(record: dict[str, Any]) -> str | None:
    title = record.get("title")
    return title.strip() if isinstance(title, str) and title.strip() else None


def _first_phone(record: dict[str, Any]) -> str | None:
    for entry in record.get("phone_numbers") or []:
        if isinstance(entry, dict):
            number = entry.get("sanitized_number") or entry.get("raw_number")
        else:
            number = entry
        if number:
            return str(number)
    direct = record.get("phone") or _organization(record).get("phone")
    return str(direct) if direct else None


def _employee_count(organization: dict[str, Any]) -> int | None:
    value = organization.get("estimated_num_employees")
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def company_domain(organization: dict[str, Any], company: str | None) -> str | None:
    domain = organization.get("primary_domain")
    if isinstance(domain, str) and domain.strip():
        return domain.strip().lower()
    website = organization.get("website_url")
    if isinstance(website, str) and website.strip():
        host = urlparse(website if "://" in website else f"https://{website}").hostname or ""
        host = host.lower()
        if host.startswith("www."):
            host = host[4:]
        if host:
            return host
    if company:
        slug = _SLUG_RE.sub("", company.lower())
        if slug:
            return f"{slug}.com"
    return None


def synthesize_email(name: str, domain: str | None) -> str | None:
    """Best-effort first.last@domain guess. Never a verified contact."""
    if not domain:
        return None
    parts = [_SLUG_RE.sub("", part.lower()) for part in name.split()]
    parts = [part for part in parts if part]
    if not parts:
        return None
    local = f"{parts[0]}.{parts[-1]}" if len(parts) > 1 else parts[0]
    return f"{local}@{domain}"


def score_record(record: dict[str, Any]) -> int:
    score = BASE_SCORE
    email = usable_email(record.get("email"))
    if email and record.get("email_status") == EmailStatus.VERIFIED.value:
        score += 20
    elif email:
        score += 10
    if _first_phone(record):
        score += 15
    if record.get("linkedin_url"):
        score += 10
    title = _title(record)
    if title and _SENIOR_TITLE_RE.search(title):
        score += 10

    organization = _organization(record)
    employees = _employee_count(organization) or 0
    if employees >= 100:
        score += 10
    elif employees >= 50:
        score += 5
    if organization.get("recent_news") or organization.get("news_articles"):
        score += 5
    return max(1, min(100, score))


def is_valid(record: dict[str, Any]) -> bool:
    return bool(resolve_name(record)) and bool(_company_name(record) or _title(record))


def meets_requirements(record: dict[str, Any], criteria: AcquisitionCriteria) -> bool:
    if criteria.requires(ContactRequirement.EMAIL) and not usable_email(record.get("email")):
        return False
    if criteria.requires(ContactRequirement.PHONE) and not _first_phone(record):
        return False
    if criteria.requires(ContactRequirement.LINKEDIN) and not record.get("linkedin_url"):
        return False
    return True


def _technologies(organization: dict[str, Any]) -> tuple[str, ...]:
    names = []
    for item in organization.get("current_technologies") or organization.get("technologies") or []:
        label = item.get("name") if isinstance(item, dict) else item
        if label:
            names.append(str(label))
    return tuple(names)


def _lead_id(record: dict[str, Any], name: str, company: str | None) -> str:
    source_id = record.get("id")
    if source_id:
        return str(source_id)
    digest = hashlib.sha1(f"{name}|{company or ''}|{record.get('title') or ''}".encode("utf-8")).hexdigest()
    return f"lead_{digest[:16]}"


def normalize_record(record: dict[str, Any]) -> Lead | None:
    """Normalize one record; None when it fails the validity gate."""
    if not isinstance(record, dict) or not is_valid(record):
        return None

    name = resolve_name(record)
    organization = _organization(record)
    company = _company_name(record)
    employees = _employee_count(organization)

    email = usable_email(record.get("email"))
    if email:
        status = record.get("email_status")
        email_status = EmailStatus.VERIFIED if status == EmailStatus.VERIFIED.value else EmailStatus.UNVERIFIED
    else:
        email = synthesize_email(name, company_domain(organization, company))
        email_status = EmailStatus.GUESSED if email else EmailStatus.UNAVAILABLE

    founded = organization.get("founded_year")
    departments = record.get("departments") or []
    return Lead(
        id=_lead_id(record, name, company),
        name=name,
        title=_title(record),
        company=company,
        industry=classify_organization(organization or {"name": company}),
        location=format_location(record),
        email=email,
        phone=_first_phone(record),
        linkedin_url=record.get("linkedin_url") or None,
        website=organization.get("website_url") or None,
        score=score_record(record),
        source_id=str(record["id"]) if record.get("id") else None,
        metadata=LeadMetadata(
            employee_count=employees,
            company_size=company_size_band(employees),
            revenue_bucket=revenue_bucket(employees),
            founded_year=int(founded) if isinstance(founded, (int, float)) or str(founded or "").isdigit() else None,
            departments=tuple(str(d) for d in departments if d),
            seniority=record.get("seniority") or None,
            email_status=email_status,
            technologies=_technologies(organization),
            country=record.get("country") or None,
        ),
    )


def normalize(records: Iterable[dict[str, Any]], criteria: AcquisitionCriteria) -> list[Lead]:
    """Gate, backfill, score and classify provider records.

    Records without a name, or without both employer and title, are dropped,
    as are records missing a contact channel the criteria require. Duplicate
    provider ids are emitted once.
    """
    leads: list[Lead] = []
    seen_ids: set[str] = set()
    dropped = 0
    for record in records:
        if not isinstance(record, dict) or not is_valid(record) or not meets_requirements(record, criteria):
            dropped += 1
            continue
        lead = normalize_record(record)
        if lead is None or lead.id in seen_ids:
            dropped += 1
            continue
        seen_ids.add(lead.id)
        leads.append(lead)

    if dropped:
        logger.debug(
            "result_normalizer.records_dropped",
            extra={"event": "result_normalizer.records_dropped", "dropped": dropped, "kept": len(leads)},
        )
    return leads

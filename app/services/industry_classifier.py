"""Two-tier industry classification for provider organizations.

Provider industry codes are often missing or wrong, so a keyword pass over
the organization's name and description backs up the code lookup.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

OTHER = "Other"

# Longest prefix wins; more specific entries come first in the lookup below.
SIC_PREFIXES: dict[str, str] = {
    "357": "Technology",
    "366": "Technology",
    "367": "Technology",
    "737": "Technology",
    "01": "Agriculture",
    "02": "Agriculture",
    "07": "Agriculture",
    "08": "Agriculture",
    "09": "Agriculture",
    "10": "Energy & Mining",
    "12": "Energy & Mining",
    "13": "Energy & Mining",
    "14": "Energy & Mining",
    "15": "Construction",
    "16": "Construction",
    "17": "Construction",
    "20": "Manufacturing",
    "21": "Manufacturing",
    "22": "Manufacturing",
    "23": "Manufacturing",
    "24": "Manufacturing",
    "25": "Manufacturing",
    "26": "Manufacturing",
    "27": "Manufacturing",
    "28": "Manufacturing",
    "29": "Manufacturing",
    "30": "Manufacturing",
    "31": "Manufacturing",
    "32": "Manufacturing",
    "33": "Manufacturing",
    "34": "Manufacturing",
    "35": "Manufacturing",
    "36": "Manufacturing",
    "37": "Manufacturing",
    "38": "Manufacturing",
    "39": "Manufacturing",
    "40": "Transportation & Logistics",
    "41": "Transportation & Logistics",
    "42": "Transportation & Logistics",
    "44": "Transportation & Logistics",
    "45": "Transportation & Logistics",
    "46": "Transportation & Logistics",
    "47": "Transportation & Logistics",
    "48": "Telecommunications",
    "49": "Energy & Mining",
    "50": "Retail & Wholesale",
    "51": "Retail & Wholesale",
    "52": "Retail & Wholesale",
    "53": "Retail & Wholesale",
    "54": "Retail & Wholesale",
    "55": "Retail & Wholesale",
    "56": "Retail & Wholesale",
    "57": "Retail & Wholesale",
    "58": "Hospitality",
    "59": "Retail & Wholesale",
    "60": "Finance",
    "61": "Finance",
    "62": "Finance",
    "63": "Finance",
    "64": "Finance",
    "65": "Real Estate",
    "67": "Finance",
    "70": "Hospitality",
    "73": "Professional Services",
    "78": "Media & Entertainment",
    "79": "Media & Entertainment",
    "80": "Healthcare",
    "81": "Professional Services",
    "82": "Education",
    "83": "Nonprofit",
    "86": "Nonprofit",
    "87": "Professional Services",
    "91": "Government",
    "92": "Government",
    "93": "Government",
    "94": "Government",
    "95": "Government",
    "96": "Government",
    "97": "Government",
    "99": "Government",
}

INDUSTRY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Technology": ("software", "saas", "cloud", "technology", "tech", "platform", "data", "ai", "cyber", "digital", "app", "it services"),
    "Healthcare": ("health", "medical", "clinic", "hospital", "pharma", "biotech", "care", "therapeutics", "dental"),
    "Finance": ("bank", "finance", "financial", "capital", "fintech", "insurance", "invest", "credit", "wealth", "payments"),
    "Real Estate": ("real estate", "realty", "properties", "property", "homes", "mortgage"),
    "Manufacturing": ("manufacturing", "industrial", "factory", "machinery", "fabrication", "components"),
    "Retail & Wholesale": ("retail", "store", "shop", "ecommerce", "e-commerce", "wholesale", "brands", "apparel"),
    "Education": ("education", "school", "university", "academy", "learning", "college", "edtech", "training"),
    "Professional Services": ("consulting", "consultancy", "agency", "legal", "law", "accounting", "advisory", "marketing", "staffing"),
    "Construction": ("construction", "builders", "contracting", "engineering", "architecture"),
    "Transportation & Logistics": ("logistics", "shipping", "freight", "transport", "trucking", "delivery", "supply chain"),
    "Energy & Mining": ("energy", "solar", "oil", "gas", "mining", "power", "renewable", "utilities"),
    "Media & Entertainment": ("media", "entertainment", "studio", "publishing", "news", "film", "music", "gaming"),
    "Hospitality": ("hotel", "restaurant", "hospitality", "travel", "resort", "catering"),
    "Telecommunications": ("telecom", "wireless", "network", "broadband", "communications"),
    "Agriculture": ("farm", "agriculture", "agri", "crop", "food production"),
    "Nonprofit": ("foundation", "nonprofit", "non-profit", "charity"),
    "Government": ("government", "municipal", "federal", "agency of", "public sector"),
}

NAME_WEIGHT = 2
DESCRIPTION_WEIGHT = 1

_KEYWORD_PATTERNS = {
    industry: [re.compile(rf"\b{re.escape(keyword)}\b") for keyword in keywords]
    for industry, keywords in INDUSTRY_KEYWORDS.items()
}
_SORTED_PREFIXES = sorted(SIC_PREFIXES, key=len, reverse=True)


def classify_codes(codes: Iterable[Any]) -> str | None:
    """Map the first recognizable SIC code to a sector."""
    for code in codes:
        digits = re.sub(r"\D", "", str(code or ""))
        if not digits:
            continue
        if digits in SIC_PREFIXES:
            return SIC_PREFIXES[digits]
        for prefix in _SORTED_PREFIXES:
            if digits.startswith(prefix):
                return SIC_PREFIXES[prefix]
    return None


def classify_keywords(name: str | None, description: str | None) -> str | None:
    name_text = (name or "").lower()
    description_text = (description or "").lower()
    if not name_text and not description_text:
        return None

    best_industry: str | None = None
    best_score = 0
    for industry, patterns in _KEYWORD_PATTERNS.items():
        score = 0
        for pattern in patterns:
            if pattern.search(name_text):
                score += NAME_WEIGHT
            if pattern.search(description_text):
                score += DESCRIPTION_WEIGHT
        # Ties keep the earlier table entry.
        if score > best_score:
            best_industry, best_score = industry, score
    return best_industry


def classify_organization(organization: dict[str, Any] | None) -> str:
    if not organization:
        return OTHER

    codes = organization.get("sic_codes") or []
    if isinstance(codes, (str, int)):
        codes = [codes]
    by_code = classify_codes(codes)
    if by_code:
        return by_code

    description = organization.get("short_description") or organization.get("seo_description")
    keywords = organization.get("keywords") or []
    if isinstance(keywords, list) and keywords:
        description = " ".join(filter(None, [description, " ".join(str(k) for k in keywords)]))
    by_keyword = classify_keywords(organization.get("name"), description)
    return by_keyword or OTHER

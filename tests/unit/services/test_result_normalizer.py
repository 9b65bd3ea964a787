from __future__ import annotations

import itertools

import pytest

from app.core.enums import EmailStatus
from app.schemas.leads import AcquisitionCriteria
from app.services.result_normalizer import (
    PLACEHOLDER_EMAIL,
    company_domain,
    company_size_band,
    format_location,
    normalize,
    revenue_bucket,
    score_record,
    synthesize_email,
    usable_email,
)


def test_complete_record_is_normalized_and_scored(make_person):
    leads = normalize([make_person()], AcquisitionCriteria())

    assert len(leads) == 1
    lead = leads[0]
    assert lead.name == "Dana Whitfield"
    assert lead.company == "Northwind Software"
    assert lead.industry == "Technology"
    assert lead.location == "San Francisco, California, United States"
    assert lead.phone == "+14155550100"
    assert lead.source_id == "p-1"
    # 50 + 20 verified + 15 phone + 10 linkedin + 10 senior + 10 headcount
    assert lead.score == 100
    assert lead.metadata.company_size == "201-500"
    assert lead.metadata.revenue_bucket == "$50M-$100M"
    assert lead.metadata.email_status is EmailStatus.VERIFIED
    assert lead.metadata.technologies == ("Salesforce", "AWS")
    assert lead.metadata.founded_year == 2012


def test_validity_gate_drops_records_without_name_or_employer_and_title(make_person):
    nameless = make_person(id="p-2", name=None, first_name=None, last_name=None)
    jobless = make_person(id="p-3", title=None, organization=None)
    only_first_name = make_person(id="p-4", name="", first_name="Ana", last_name="")
    valid = make_person(id="p-5")

    for permutation in itertools.permutations([nameless, jobless, only_first_name, valid]):
        leads = normalize(list(permutation), AcquisitionCriteria())
        assert [lead.id for lead in leads] == ["p-5"]


def test_first_and_last_name_resolve_display_name(make_person):
    record = make_person(name=None, first_name="Lee", last_name="Park", organization=None)

    lead = normalize([record], AcquisitionCriteria())[0]

    assert lead.name == "Lee Park"
    assert lead.company is None
    assert lead.title == "VP of Engineering"


def test_email_requirement_excludes_placeholder_addresses(make_person):
    placeholder = make_person(id="p-2", email=PLACEHOLDER_EMAIL)
    missing = make_person(id="p-3", email=None)
    present = make_person(id="p-4")

    leads = normalize([placeholder, missing, present], AcquisitionCriteria(requirements=["email"]))

    assert [lead.id for lead in leads] == ["p-4"]


def test_phone_and_linkedin_requirements(make_person):
    no_phone = make_person(id="p-2", phone_numbers=[])
    no_linkedin = make_person(id="p-3", linkedin_url=None)

    criteria = AcquisitionCriteria(requirements=["phone", "linkedin"])

    assert normalize([no_phone, no_linkedin], criteria) == []


def test_missing_email_is_backfilled_as_a_guess(make_person):
    record = make_person(email=PLACEHOLDER_EMAIL, email_status="unavailable")

    lead = normalize([record], AcquisitionCriteria())[0]

    assert lead.email == "dana.whitfield@northwind.io"
    assert lead.metadata.email_status is EmailStatus.GUESSED
    # The guessed address earns no email points.
    assert lead.score == 95


def test_company_domain_fallbacks():
    assert company_domain({"primary_domain": "acme.com"}, "Acme") == "acme.com"
    assert company_domain({"website_url": "https://www.acme.io/about"}, "Acme") == "acme.io"
    assert company_domain({}, "Acme & Sons, Inc.") == "acmesonsinc.com"
    assert company_domain({}, None) is None


def test_synthesize_email_handles_single_names():
    assert synthesize_email("Prince", "example.com") == "prince@example.com"
    assert synthesize_email("José María López", "example.com") == "jos.lpez@example.com"
    assert synthesize_email("Dana Whitfield", None) is None


def test_usable_email_rejects_sentinels():
    assert usable_email(PLACEHOLDER_EMAIL) is None
    assert usable_email("someone@domain.com") is None
    assert usable_email("not-an-email") is None
    assert usable_email(" a@b.co ") == "a@b.co"


def test_score_components_and_clamping(make_person):
    bare = {"name": "Sam Doe", "title": "Analyst", "organization": {"name": "Tiny"}}
    assert score_record(bare) == 50

    unverified = dict(bare, email="sam@tiny.co", email_status="unverified")
    assert score_record(unverified) == 60

    mid_size = dict(bare, organization={"name": "Mid", "estimated_num_employees": 60, "recent_news": [{"id": 1}]})
    assert score_record(mid_size) == 60

    assert score_record(make_person(organization=dict(make_person()["organization"], recent_news=[{}]))) == 100


@pytest.mark.parametrize(
    "title, expected",
    [
        ("SVP Sales", 60),
        ("EVP, Operations", 60),
        ("Chief Revenue Officer", 60),
        ("Head of Growth", 60),
        ("Sales Associate", 50),
        ("Developer Advocate", 50),
    ],
)
def test_senior_titles_earn_bonus(title, expected):
    record = {"name": "Sam Doe", "title": title, "organization": {"name": "Tiny"}}

    assert score_record(record) == expected


def test_bands():
    assert company_size_band(None) == "Unknown"
    assert company_size_band(10) == "1-10"
    assert company_size_band(11) == "11-50"
    assert company_size_band(1000) == "501-1000"
    assert company_size_band(1001) == "1000+"
    assert revenue_bucket(5) == "<$1M"
    assert revenue_bucket(150) == "$10M-$50M"
    assert revenue_bucket(20000) == "$500M+"


def test_format_location():
    assert format_location({"city": "Austin", "country": "United States"}) == "Austin, United States"
    assert format_location({}) == "Unknown"


def test_duplicate_provider_ids_emitted_once(make_person):
    leads = normalize([make_person(), make_person()], AcquisitionCriteria())
    assert len(leads) == 1

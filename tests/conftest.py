from __future__ import annotations

from pathlib import Path
from typing import Any

import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Base
from app.schemas.leads import AcquisitionCriteria
from app.services.cache_gateway import CacheGateway


def build_memory_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def build_file_session_factory(db_path: Path):
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def person(**overrides: Any) -> dict[str, Any]:
    """A realistic provider person record."""
    record: dict[str, Any] = {
        "id": "p-1",
        "name": "Dana Whitfield",
        "first_name": "Dana",
        "last_name": "Whitfield",
        "title": "VP of Engineering",
        "email": "dana@northwind.io",
        "email_status": "verified",
        "linkedin_url": "https://www.linkedin.com/in/dana-whitfield",
        "phone_numbers": [{"raw_number": "+1 415 555 0100", "sanitized_number": "+14155550100"}],
        "city": "San Francisco",
        "state": "California",
        "country": "United States",
        "seniority": "vp",
        "departments": ["engineering"],
        "organization": {
            "name": "Northwind Software",
            "primary_domain": "northwind.io",
            "website_url": "https://www.northwind.io",
            "estimated_num_employees": 240,
            "founded_year": 2012,
            "sic_codes": ["7372"],
            "technologies": [{"name": "Salesforce"}, {"name": "AWS"}],
        },
    }
    record.update(overrides)
    return record


@pytest.fixture
def session_factory():
    return build_memory_session_factory()


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def file_session_factory(tmp_path):
    return build_file_session_factory(tmp_path / "ledger.db")


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def cache(fake_redis):
    return CacheGateway(client=fake_redis, ttl_seconds=3600)


@pytest.fixture
def full_criteria():
    return AcquisitionCriteria(
        industries=["Software", "Healthcare", "Finance"],
        roles=["CTO", "VP Engineering", "Head of Data"],
        company_sizes=["51-200", "201-500"],
        countries=["United States"],
        states=["California"],
        cities=["San Francisco"],
        keywords=["analytics"],
        technologies=["Salesforce"],
        revenue_range={"min": 1_000_000, "max": 50_000_000},
        lead_count=10,
        requirements=["email"],
    )


@pytest.fixture
def make_person():
    return person

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.models import LeadGeneration
from app.schemas.leads import (
    AcquisitionCriteria,
    AcquisitionResult,
    Lead,
    LeadGenerationDetail,
    LeadGenerationSummary,
    QualityMetrics,
)
from app.services.base_service import BaseService
from app.services.result_normalizer import usable_email

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


def quality_metrics(leads: list[dict[str, Any]]) -> QualityMetrics:
    """Contact-channel coverage for a stored batch of leads."""
    if not leads:
        return QualityMetrics()
    employee_counts = [
        lead.get("metadata", {}).get("employee_count")
        for lead in leads
        if lead.get("metadata", {}).get("employee_count")
    ]
    countries = {
        lead.get("metadata", {}).get("country") or lead.get("location", "").split(", ")[-1]
        for lead in leads
        if lead.get("location") and lead.get("location") != "Unknown"
    }
    return QualityMetrics(
        email_count=sum(1 for lead in leads if usable_email(lead.get("email"))),
        phone_count=sum(1 for lead in leads if lead.get("phone")),
        linkedin_count=sum(1 for lead in leads if lead.get("linkedin_url")),
        avg_employee_count=round(sum(employee_counts) / len(employee_counts)) if employee_counts else 0,
        countries_represented=len(countries),
    )


class LeadGenerationStore(BaseService):
    """Durable storage for acquired leads, referenced by settlement."""

    def __init__(self, db: Session | None = None) -> None:
        super().__init__(db)

    def save(
        self,
        user_id: str,
        workspace_id: str,
        leads: list[Lead],
        criteria: AcquisitionCriteria,
        result: AcquisitionResult | None = None,
        campaign_name: str | None = None,
    ) -> str:
        serialized = [lead.model_dump(mode="json") for lead in leads]
        average_score = sum(lead.score for lead in leads) / len(leads) if leads else 0.0
        title = campaign_name or f"Lead Generation - {', '.join(criteria.industries) or 'All industries'}"
        tags = ["lead-generation", *criteria.industries, *criteria.roles]

        with self.store_guard("lead_generation.save"):
            record = LeadGeneration(
                user_id=user_id,
                workspace_id=workspace_id,
                title=title[:500],
                leads=serialized,
                criteria=criteria.model_dump(mode="json"),
                lead_count=len(leads),
                total_found=result.total_found if result else len(leads),
                strategy=result.strategy.value if result and result.strategy else None,
                from_cache=bool(result and result.from_cache),
                generation_ms=result.elapsed_time_ms if result else 0,
                average_score=round(average_score, 2),
                tags=tags,
            )
            self.db.add(record)
            self.commit()
            record_id = record.id

        logger.info(
            "lead_generation.saved",
            extra={
                "event": "lead_generation.saved",
                "record_id": record_id,
                "user_id": user_id,
                "workspace_id": workspace_id,
                "lead_count": len(leads),
            },
        )
        return record_id

    @staticmethod
    def _summary(record: LeadGeneration) -> LeadGenerationSummary:
        summary = LeadGenerationSummary.model_validate(record)
        return summary.model_copy(update={"quality": quality_metrics(record.leads or [])})

    def list_for_user(
        self,
        user_id: str,
        workspace_id: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[LeadGenerationSummary]:
        with self.store_guard("lead_generation.list"):
            query = self.db.query(LeadGeneration).filter(LeadGeneration.user_id == user_id)
            if workspace_id:
                query = query.filter(LeadGeneration.workspace_id == workspace_id)
            records = query.order_by(LeadGeneration.created_at.desc()).limit(limit).all()
        return [self._summary(record) for record in records]

    def get(self, user_id: str, record_id: str) -> LeadGenerationDetail:
        with self.store_guard("lead_generation.get"):
            record = (
                self.db.query(LeadGeneration)
                .filter(LeadGeneration.id == record_id, LeadGeneration.user_id == user_id)
                .first()
            )
        if record is None:
            raise NotFoundError(f"Lead generation {record_id} not found.")
        summary = self._summary(record)
        return LeadGenerationDetail(**summary.model_dump(), leads=record.leads or [])

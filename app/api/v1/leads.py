"""Lead generation endpoints for API v1."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from app.core.dependencies import Caller, get_acquisition_service, get_caller, get_lead_store
from app.schemas.leads import AcquisitionOutcome, LeadGenerationDetail, LeadGenerationRequest, LeadGenerationSummary
from app.services.lead_acquisition_service import LeadAcquisitionService
from app.services.lead_generation_store import LeadGenerationStore

router = APIRouter(prefix="/lead-generation", tags=["lead-generation"])


@router.post("", response_model=AcquisitionOutcome, status_code=status.HTTP_201_CREATED)
def generate_leads(
    payload: LeadGenerationRequest,
    caller: Caller = Depends(get_caller),
    service: LeadAcquisitionService = Depends(get_acquisition_service),
) -> AcquisitionOutcome:
    return service.acquire_and_settle(
        payload.criteria,
        user_id=caller.user_id,
        workspace_id=caller.workspace_id,
        campaign_name=payload.campaign_name,
    )


@router.get("", response_model=list[LeadGenerationSummary])
def list_lead_generations(
    limit: int = Query(default=50, ge=1, le=200),
    all_workspaces: bool = Query(default=False),
    caller: Caller = Depends(get_caller),
    store: LeadGenerationStore = Depends(get_lead_store),
) -> list[LeadGenerationSummary]:
    workspace_id = None if all_workspaces else caller.workspace_id
    return store.list_for_user(caller.user_id, workspace_id=workspace_id, limit=limit)


@router.get("/{record_id}", response_model=LeadGenerationDetail)
def get_lead_generation(
    record_id: str,
    caller: Caller = Depends(get_caller),
    store: LeadGenerationStore = Depends(get_lead_store),
) -> LeadGenerationDetail:
    return store.get(caller.user_id, record_id)

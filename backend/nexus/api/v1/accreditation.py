"""Accreditation submission and review endpoints"""
from fastapi import APIRouter, Depends, Path

from nexus.api.deps import get_accreditation_service, get_current_user_id
from nexus.schemas.investor import (
    AccreditationRecordResponse,
    ReviewAccreditationRequest,
    SubmitAccreditationRequest,
    SubmitAccreditationResponse,
)
from nexus.services.accreditation import AccreditationCriteria, AccreditationService

router = APIRouter()


@router.post("/submit", response_model=SubmitAccreditationResponse)
async def submit_accreditation(
    request: SubmitAccreditationRequest,
    user_id: str = Depends(get_current_user_id),
    service: AccreditationService = Depends(get_accreditation_service),
):
    """Submit the accreditation questionnaire for review"""
    answers = request.responses.model_dump(
        exclude={"exclude_primary_residence", "net_worth_breakdown", "income_by_year"}
    )
    breakdown = request.responses.net_worth_breakdown
    answers["investor_type"] = request.responses.investor_type.value
    record, determination = await service.submit(
        user_id,
        AccreditationCriteria(**answers),
        responses=request.responses.model_dump(mode="json", by_alias=True),
        uploaded_documents=[doc.model_dump() for doc in request.uploaded_documents],
        net_worth_breakdown=breakdown.model_dump() if breakdown else None,
        income_by_year=request.responses.income_by_year,
    )
    return SubmitAccreditationResponse(
        accreditation_id=record.id,
        status=determination.status,
        reasoning=determination.reasoning,
        verification_needed=determination.verification_needed,
    )


@router.post("/{accreditation_id}/review", response_model=AccreditationRecordResponse)
async def review_accreditation(
    request: ReviewAccreditationRequest,
    accreditation_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: AccreditationService = Depends(get_accreditation_service),
):
    """Record a reviewer's verdict on a submission"""
    record = await service.review(
        user_id,
        accreditation_id,
        request.verified_status.value,
        request.notes,
    )
    return AccreditationRecordResponse.model_validate(record)

"""Investor status and eligibility endpoints"""
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Path

from nexus.api.deps import get_current_user_id, get_eligibility_evaluator
from nexus.schemas.investor import (
    InvestmentCheckRequest,
    InvestmentCheckResponse,
    InvestmentLimitResponse,
    InvestorStatusEnvelope,
    InvestorStatusResponse,
    RecordInvestmentRequest,
    RecordInvestmentResponse,
)
from nexus.services.eligibility import EligibilityEvaluator
from nexus.services.investment_limits import InvestmentLimit, format_investment_limit

router = APIRouter()


def _limit_response(limit: Optional[InvestmentLimit]) -> Optional[InvestmentLimitResponse]:
    if limit is None:
        return None
    return InvestmentLimitResponse(**asdict(limit), display=format_investment_limit(limit))


@router.get("/status", response_model=InvestorStatusEnvelope)
async def get_investor_status(
    user_id: str = Depends(get_current_user_id),
    evaluator: EligibilityEvaluator = Depends(get_eligibility_evaluator),
):
    """Current investor's accreditation status and investment limit"""
    status = await evaluator.get_investor_status(user_id)
    data = asdict(status)
    data["investment_limit"] = _limit_response(status.investment_limit)
    return InvestorStatusEnvelope(status=InvestorStatusResponse(**data))


@router.post("/status", response_model=InvestmentCheckResponse, response_model_exclude_none=True)
async def check_investment(
    request: InvestmentCheckRequest,
    user_id: str = Depends(get_current_user_id),
    evaluator: EligibilityEvaluator = Depends(get_eligibility_evaluator),
):
    """Check whether the current investor may invest ``amount``"""
    result = await evaluator.evaluate(user_id, request.amount)
    return InvestmentCheckResponse(
        allowed=result.allowed,
        reason=result.reason,
        limit=_limit_response(result.limit),
    )


@router.post("/{investor_id}/investments", response_model=RecordInvestmentResponse)
async def record_investment(
    request: RecordInvestmentRequest,
    investor_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    evaluator: EligibilityEvaluator = Depends(get_eligibility_evaluator),
):
    """Record a confirmed, committed investment against the investor's running total"""
    total = await evaluator.record_investment(user_id, investor_id, request.amount, request.reference)
    return RecordInvestmentResponse(investor_id=investor_id, total_invested=total)

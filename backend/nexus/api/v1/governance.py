"""Governance rule endpoints"""
from typing import List

from fastapi import APIRouter, Depends, Query

from nexus.api.deps import get_current_user_id, get_proposal_service
from nexus.schemas.governance import GovernanceRuleRequest, GovernanceRuleResponse
from nexus.services.governance import ProposalService

router = APIRouter()


@router.get("/rules", response_model=List[GovernanceRuleResponse])
async def list_governance_rules(
    subsidiary_id: str = Query(...),
    user_id: str = Depends(get_current_user_id),
    service: ProposalService = Depends(get_proposal_service),
):
    """Active governance rules for a subsidiary"""
    rules = await service.list_governance_rules(subsidiary_id)
    return [GovernanceRuleResponse.model_validate(r) for r in rules]


@router.post("/rules", response_model=GovernanceRuleResponse)
async def save_governance_rule(
    request: GovernanceRuleRequest,
    user_id: str = Depends(get_current_user_id),
    service: ProposalService = Depends(get_proposal_service),
):
    """Create a rule, or update it when ``id`` is given"""
    data = request.model_dump()
    data["vote_weight_type"] = request.vote_weight_type.value
    rule = await service.save_governance_rule(user_id, data)
    return GovernanceRuleResponse.model_validate(rule)

"""Cap-table proposal endpoints"""
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from nexus.api.deps import get_current_user_id, get_proposal_service
from nexus.schemas.governance import (
    CreateProposalRequest,
    ExecuteProposalResponse,
    ProposalEnvelope,
    ProposalListResponse,
    ProposalResponse,
    ProposalStatus,
    VoteEnvelope,
    VoteRequest,
    VoteResponse,
    VotingResultsResponse,
)
from nexus.services.governance import ProposalService

router = APIRouter()


@router.get("", response_model=ProposalListResponse)
async def list_proposals(
    subsidiary_id: Optional[str] = Query(None),
    status: Optional[ProposalStatus] = Query(None),
    user_id: str = Depends(get_current_user_id),
    service: ProposalService = Depends(get_proposal_service),
):
    """List proposals, newest first, optionally filtered by subsidiary and status"""
    proposals = await service.list_proposals(subsidiary_id, status.value if status else None)
    return ProposalListResponse(proposals=[ProposalResponse.model_validate(p) for p in proposals])


@router.post("", response_model=ProposalEnvelope, status_code=201)
async def create_proposal(
    request: CreateProposalRequest,
    user_id: str = Depends(get_current_user_id),
    service: ProposalService = Depends(get_proposal_service),
):
    """Create a draft proposal (subsidiary admins and super admins)"""
    proposal = await service.create_proposal(user_id, request.model_dump())
    return ProposalEnvelope(proposal=ProposalResponse.model_validate(proposal))


@router.get("/{proposal_id}", response_model=ProposalEnvelope)
async def get_proposal(
    proposal_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: ProposalService = Depends(get_proposal_service),
):
    proposal = await service.get_proposal(proposal_id)
    return ProposalEnvelope(proposal=ProposalResponse.model_validate(proposal))


@router.get("/{proposal_id}/results", response_model=VotingResultsResponse)
async def get_voting_results(
    proposal_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: ProposalService = Depends(get_proposal_service),
):
    """Weighted tallies and whether the approval rule is currently met"""
    return VotingResultsResponse(**await service.get_voting_results(proposal_id, user_id))


@router.post("/{proposal_id}/start-voting", response_model=ProposalEnvelope)
async def start_voting(
    proposal_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: ProposalService = Depends(get_proposal_service),
):
    """Open a draft proposal for voting"""
    proposal = await service.start_voting(user_id, proposal_id)
    return ProposalEnvelope(proposal=ProposalResponse.model_validate(proposal))


@router.post("/{proposal_id}/vote", response_model=VoteEnvelope, status_code=201)
async def vote_on_proposal(
    request: VoteRequest,
    proposal_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: ProposalService = Depends(get_proposal_service),
):
    """Cast the current user's vote"""
    vote = await service.cast_vote(
        user_id,
        proposal_id,
        request.vote_choice,
        request.acknowledgments.model_dump(),
        signature_data=request.signature_data,
        rationale=request.rationale,
    )
    return VoteEnvelope(vote=VoteResponse.model_validate(vote))


@router.post("/{proposal_id}/close", response_model=ProposalEnvelope)
async def close_voting(
    proposal_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: ProposalService = Depends(get_proposal_service),
):
    """End voting; the proposal becomes approved or rejected"""
    proposal = await service.close_voting(user_id, proposal_id)
    return ProposalEnvelope(proposal=ProposalResponse.model_validate(proposal))


@router.post("/{proposal_id}/execute", response_model=ExecuteProposalResponse)
async def execute_proposal(
    proposal_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    service: ProposalService = Depends(get_proposal_service),
):
    """Mark an approved proposal as executed"""
    proposal = await service.execute_proposal(user_id, proposal_id)
    return ExecuteProposalResponse(
        message="Proposal executed successfully",
        proposal_id=proposal.id,
        proposal=ProposalResponse.model_validate(proposal),
    )

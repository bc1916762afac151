"""Governance schemas"""
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class VoteChoice(str, Enum):
    FOR = "for"
    AGAINST = "against"
    ABSTAIN = "abstain"


class ProposalStatus(str, Enum):
    DRAFT = "draft"
    VOTING = "voting"
    APPROVED = "approved"
    EXECUTED = "executed"
    REJECTED = "rejected"


class VoteWeightType(str, Enum):
    EQUAL = "equal"
    OWNERSHIP_PERCENTAGE = "ownership_percentage"
    SHARE_CLASS_WEIGHTED = "share_class_weighted"


class CreateProposalRequest(BaseModel):
    subsidiary_id: str = Field(min_length=1)
    proposal_type: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: Optional[str] = None
    rationale: Optional[str] = None
    proposed_changes: Dict[str, Any]
    dilution_impact: Optional[Dict[str, Any]] = None
    ownership_before: Optional[Any] = None
    ownership_after: Optional[Any] = None
    valuation_impact: Optional[Dict[str, Any]] = None
    governance_rule_id: Optional[str] = None
    approval_threshold_used: Optional[float] = Field(default=None, ge=0, le=100)
    requires_unanimous: bool = False
    total_voting_power: Optional[float] = Field(default=None, gt=0)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class Acknowledgments(BaseModel):
    """Voter acknowledgments; each must be answered explicitly"""
    understands_dilution: bool
    acknowledged_terms: bool
    reviewed_financials: bool

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class VoteRequest(BaseModel):
    vote_choice: VoteChoice
    acknowledgments: Acknowledgments
    signature_data: Optional[str] = None
    rationale: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ProposalResponse(BaseModel):
    id: str
    subsidiary_id: str
    proposal_type: str
    title: str
    description: Optional[str] = None
    rationale: Optional[str] = None
    proposed_changes: Dict[str, Any]
    dilution_impact: Optional[Dict[str, Any]] = None
    ownership_before: Optional[Any] = None
    ownership_after: Optional[Any] = None
    valuation_impact: Optional[Dict[str, Any]] = None
    governance_rule_id: Optional[str] = None
    approval_threshold_used: Optional[float] = None
    requires_unanimous: bool = False
    total_voting_power: Optional[float] = None
    status: ProposalStatus
    votes_for: float
    votes_against: float
    votes_abstain: float
    vote_start_at: Optional[datetime] = None
    vote_end_at: Optional[datetime] = None
    proposed_by: str
    executed_by: Optional[str] = None
    executed_at: Optional[datetime] = None
    execution_notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ProposalEnvelope(BaseModel):
    proposal: ProposalResponse


class ProposalListResponse(BaseModel):
    proposals: List[ProposalResponse]


class VoteResponse(BaseModel):
    id: str
    proposal_id: str
    voter_id: str
    vote_choice: VoteChoice
    vote_weight: float
    ownership_snapshot: Optional[Dict[str, Any]] = None
    understands_dilution: bool
    acknowledged_terms: bool
    reviewed_financials: bool
    signature_data: Optional[str] = None
    rationale: Optional[str] = None
    voted_at: datetime

    class Config:
        from_attributes = True


class VoteEnvelope(BaseModel):
    vote: VoteResponse


class ExecuteProposalResponse(BaseModel):
    message: str
    proposal_id: str
    proposal: ProposalResponse


class VotingResultsResponse(BaseModel):
    proposal_id: str
    status: ProposalStatus
    votes_for: float
    votes_against: float
    votes_abstain: float
    total_voting_power: Optional[float] = None
    for_percentage: float
    against_percentage: float
    threshold: float
    is_approved: bool
    requires_unanimous: bool
    has_voted: bool = False


class GovernanceRuleRequest(BaseModel):
    id: Optional[str] = None
    subsidiary_id: str = Field(min_length=1)
    rule_type: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: Optional[str] = None
    requires_approval: bool = True
    approval_threshold: float = Field(default=50.0, ge=0, le=100)
    vote_weight_type: VoteWeightType = VoteWeightType.OWNERSHIP_PERCENTAGE
    eligible_voters: Optional[Any] = None
    voting_period_days: int = Field(default=7, ge=1)
    notice_period_days: int = Field(default=0, ge=0)
    founder_veto: bool = False
    board_approval_required: bool = False
    requires_unanimous: bool = False
    exemptions: Optional[Any] = None
    is_active: bool = True

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class GovernanceRuleResponse(BaseModel):
    id: str
    subsidiary_id: str
    rule_type: str
    title: str
    description: Optional[str] = None
    requires_approval: bool
    approval_threshold: float
    vote_weight_type: VoteWeightType
    eligible_voters: Optional[Any] = None
    voting_period_days: int
    notice_period_days: int
    founder_veto: bool
    board_approval_required: bool
    requires_unanimous: bool
    exemptions: Optional[Any] = None
    is_active: bool

    class Config:
        from_attributes = True

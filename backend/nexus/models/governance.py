"""Governance models"""
import uuid
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Text, JSON, UniqueConstraint, CheckConstraint,
)

from nexus.models.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class GovernanceRule(Base):
    """Per-subsidiary voting configuration"""
    __tablename__ = "governance_rules"

    id = Column(String(36), primary_key=True, default=_uuid)
    subsidiary_id = Column(String(36), nullable=False, index=True)
    rule_type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    requires_approval = Column(Boolean, default=True)
    approval_threshold = Column(Float, nullable=False, default=50.0)  # percent
    vote_weight_type = Column(String(30), nullable=False, default="ownership_percentage")  # equal, ownership_percentage, share_class_weighted
    eligible_voters = Column(JSON, nullable=True)
    voting_period_days = Column(Integer, nullable=False, default=7)
    notice_period_days = Column(Integer, nullable=False, default=0)
    founder_veto = Column(Boolean, default=False)
    board_approval_required = Column(Boolean, default=False)
    requires_unanimous = Column(Boolean, default=False)
    exemptions = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<GovernanceRule {self.rule_type} ({self.subsidiary_id[:8]}...)>"


class Proposal(Base):
    """Capital-change proposal for a subsidiary"""
    __tablename__ = "cap_table_proposals"

    id = Column(String(36), primary_key=True, default=_uuid)
    subsidiary_id = Column(String(36), nullable=False, index=True)
    proposal_type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    rationale = Column(Text, nullable=True)
    proposed_changes = Column(JSON, nullable=False)
    dilution_impact = Column(JSON, nullable=True)
    ownership_before = Column(JSON, nullable=True)
    ownership_after = Column(JSON, nullable=True)
    valuation_impact = Column(JSON, nullable=True)
    governance_rule_id = Column(String(36), ForeignKey("governance_rules.id"), nullable=True)
    approval_threshold_used = Column(Float, nullable=True)
    requires_unanimous = Column(Boolean, default=False)
    total_voting_power = Column(Float, nullable=True)

    status = Column(String(20), nullable=False, default="draft")  # draft, voting, approved, executed, rejected
    votes_for = Column(Float, nullable=False, default=0)
    votes_against = Column(Float, nullable=False, default=0)
    votes_abstain = Column(Float, nullable=False, default=0)
    vote_start_at = Column(DateTime, nullable=True)
    vote_end_at = Column(DateTime, nullable=True)

    proposed_by = Column(String(36), nullable=False)
    executed_by = Column(String(36), nullable=True)
    executed_at = Column(DateTime, nullable=True)
    execution_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "votes_for >= 0 AND votes_against >= 0 AND votes_abstain >= 0",
            name="ck_cap_table_proposals_tallies",
        ),
    )

    def __repr__(self):
        return f"<Proposal {self.title} ({self.status})>"


class Vote(Base):
    """A single investor's vote on a proposal"""
    __tablename__ = "proposal_votes"

    id = Column(String(36), primary_key=True, default=_uuid)
    proposal_id = Column(String(36), ForeignKey("cap_table_proposals.id"), nullable=False, index=True)
    voter_id = Column(String(36), nullable=False, index=True)
    vote_choice = Column(String(10), nullable=False)  # for, against, abstain
    vote_weight = Column(Float, nullable=False)
    ownership_snapshot = Column(JSON, nullable=True)
    understands_dilution = Column(Boolean, nullable=False)
    acknowledged_terms = Column(Boolean, nullable=False)
    reviewed_financials = Column(Boolean, nullable=False)
    signature_data = Column(Text, nullable=True)
    rationale = Column(Text, nullable=True)
    voted_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("proposal_id", "voter_id", name="uq_proposal_votes_proposal_voter"),
    )

    def __repr__(self):
        return f"<Vote {self.voter_id[:8]}... ({self.vote_choice})>"


class CapTableEntry(Base):
    """Ownership row for a holder in a subsidiary"""
    __tablename__ = "cap_table"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    subsidiary_id = Column(String(36), nullable=False, index=True)
    share_class = Column(String(50), nullable=True)
    shares = Column(Float, nullable=False, default=0)
    ownership_percentage = Column(Float, nullable=False, default=0)
    votes_per_share = Column(Float, nullable=False, default=1)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "subsidiary_id", name="uq_cap_table_user_subsidiary"),
    )

    def to_snapshot(self) -> dict:
        """Plain-dict copy stored on votes for audit"""
        return {
            "user_id": self.user_id,
            "subsidiary_id": self.subsidiary_id,
            "share_class": self.share_class,
            "shares": self.shares,
            "ownership_percentage": self.ownership_percentage,
            "votes_per_share": self.votes_per_share,
        }

    def __repr__(self):
        return f"<CapTableEntry {self.user_id[:8]}... {self.ownership_percentage}%>"

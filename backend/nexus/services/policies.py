"""
Governance Policies

Role checks, vote weighting, approval rules and the activity trail are
injected into the workflow services so each can be swapped without
touching the state machine. The database-backed defaults live here too.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.models.admin import AdminRole, ActivityLog
from nexus.models.governance import CapTableEntry, GovernanceRule, Proposal
from nexus.schemas.governance import VoteWeightType

logger = structlog.get_logger()


@dataclass(frozen=True)
class Tally:
    """Weighted vote totals for a proposal"""
    votes_for: float = 0.0
    votes_against: float = 0.0
    votes_abstain: float = 0.0

    @property
    def total(self) -> float:
        return self.votes_for + self.votes_against + self.votes_abstain

    @property
    def decisive(self) -> float:
        return self.votes_for + self.votes_against

    @classmethod
    def of(cls, proposal: Proposal) -> "Tally":
        return cls(
            votes_for=proposal.votes_for or 0.0,
            votes_against=proposal.votes_against or 0.0,
            votes_abstain=proposal.votes_abstain or 0.0,
        )


# =============================================================================
# Interfaces
# =============================================================================

class RoleChecker(ABC):
    @abstractmethod
    async def is_super_admin(self, user_id: str) -> bool: ...

    @abstractmethod
    async def is_subsidiary_admin(self, user_id: str, subsidiary_id: str) -> bool: ...

    async def can_manage(self, user_id: str, subsidiary_id: str) -> bool:
        """Subsidiary admins manage their own subsidiary; super admins manage all."""
        if await self.is_subsidiary_admin(user_id, subsidiary_id):
            return True
        return await self.is_super_admin(user_id)


class VoteWeightOracle(ABC):
    @abstractmethod
    async def calculate_vote_weight(self, proposal: Proposal, voter_id: str) -> Optional[float]:
        """Weight of the voter's ballot, or None when it cannot be determined."""

    async def ownership_snapshot(self, proposal: Proposal, voter_id: str) -> Optional[Dict[str, Any]]:
        return None


class ApprovalPolicy(ABC):
    @abstractmethod
    def is_approved(self, proposal: Proposal, tally: Tally) -> bool: ...

    def threshold_for(self, proposal: Proposal) -> float:
        return proposal.approval_threshold_used or 0.0


class ActivitySink(ABC):
    @abstractmethod
    async def log_activity(
        self,
        action_type: str,
        proposal_id: Optional[str] = None,
        user_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Append to the activity trail. Must never raise."""


# =============================================================================
# Database-backed defaults
# =============================================================================

class DatabaseRoleChecker(RoleChecker):
    """Role checks against non-revoked rows of ``admin_roles``"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def is_super_admin(self, user_id: str) -> bool:
        result = await self.db.execute(
            select(AdminRole.id).where(
                AdminRole.user_id == user_id,
                AdminRole.role_type == "super_admin",
                AdminRole.revoked_at.is_(None),
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def is_subsidiary_admin(self, user_id: str, subsidiary_id: str) -> bool:
        result = await self.db.execute(
            select(AdminRole.id).where(
                AdminRole.user_id == user_id,
                AdminRole.role_type == "subsidiary_admin",
                AdminRole.subsidiary_id == subsidiary_id,
                AdminRole.revoked_at.is_(None),
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None


class CapTableVoteWeightOracle(VoteWeightOracle):
    """
    Weights ballots from the voter's cap-table row in the proposal's subsidiary.

    The weighting scheme comes from the proposal's governance rule:
    ``equal`` gives every holder 1, ``ownership_percentage`` uses the
    ownership percentage, ``share_class_weighted`` uses shares times votes
    per share. Holders without a cap-table row get None.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _entry(self, proposal: Proposal, voter_id: str) -> Optional[CapTableEntry]:
        result = await self.db.execute(
            select(CapTableEntry).where(
                CapTableEntry.user_id == voter_id,
                CapTableEntry.subsidiary_id == proposal.subsidiary_id,
            )
        )
        return result.scalar_one_or_none()

    async def _weight_type(self, proposal: Proposal) -> str:
        if proposal.governance_rule_id is None:
            return VoteWeightType.OWNERSHIP_PERCENTAGE.value
        rule = await self.db.get(GovernanceRule, proposal.governance_rule_id)
        return rule.vote_weight_type if rule else VoteWeightType.OWNERSHIP_PERCENTAGE.value

    async def calculate_vote_weight(self, proposal: Proposal, voter_id: str) -> Optional[float]:
        entry = await self._entry(proposal, voter_id)
        if entry is None:
            return None

        weight_type = await self._weight_type(proposal)
        if weight_type == VoteWeightType.EQUAL.value:
            return 1.0
        if weight_type == VoteWeightType.SHARE_CLASS_WEIGHTED.value:
            return entry.shares * entry.votes_per_share
        return entry.ownership_percentage

    async def ownership_snapshot(self, proposal: Proposal, voter_id: str) -> Optional[Dict[str, Any]]:
        entry = await self._entry(proposal, voter_id)
        return entry.to_snapshot() if entry else None


class ThresholdApprovalPolicy(ApprovalPolicy):
    """
    Percentage-threshold approval.

    Unanimous proposals pass with at least one vote for and none against.
    Otherwise ``votes_for`` must reach the threshold percentage of the
    proposal's total voting power, or of the decisive (for + against)
    votes when no total is recorded.
    """

    def __init__(self, default_threshold: float = 50.0):
        self.default_threshold = default_threshold

    def threshold_for(self, proposal: Proposal) -> float:
        if proposal.approval_threshold_used is not None:
            return proposal.approval_threshold_used
        return self.default_threshold

    def is_approved(self, proposal: Proposal, tally: Tally) -> bool:
        if tally.votes_for <= 0:
            return False
        if proposal.requires_unanimous:
            return tally.votes_against == 0

        base = proposal.total_voting_power or tally.decisive
        if base <= 0:
            return False
        return tally.votes_for / base * 100 >= self.threshold_for(proposal)


class DatabaseActivitySink(ActivitySink):
    """Writes activity rows inside a savepoint so a failure never aborts the caller."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log_activity(
        self,
        action_type: str,
        proposal_id: Optional[str] = None,
        user_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            async with self.db.begin_nested():
                self.db.add(ActivityLog(
                    proposal_id=proposal_id,
                    user_id=user_id,
                    actor_id=actor_id,
                    action_type=action_type,
                    details=details,
                    created_at=datetime.utcnow(),
                ))
        except SQLAlchemyError as e:
            logger.warning(
                "Failed to record activity",
                action_type=action_type,
                proposal_id=proposal_id,
                user_id=user_id,
                error=str(e),
            )

"""
Proposal Lifecycle

State machine for capital-change proposals:

    draft -> voting -> approved -> executed
                    -> rejected

``executed`` and ``rejected`` are terminal. Each transition is a single
guarded UPDATE on the expected current status, so two racing requests
cannot both move the same proposal.
"""
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.config import get_settings
from nexus.models.governance import GovernanceRule, Proposal, Vote
from nexus.schemas.governance import ProposalStatus, VoteChoice
from nexus.services.errors import Conflict, Forbidden, NotFound, ValidationFailed
from nexus.services.policies import (
    ActivitySink,
    ApprovalPolicy,
    RoleChecker,
    Tally,
    VoteWeightOracle,
)

logger = structlog.get_logger()

TRANSITIONS = {
    ProposalStatus.DRAFT: {ProposalStatus.VOTING},
    ProposalStatus.VOTING: {ProposalStatus.APPROVED, ProposalStatus.REJECTED},
    ProposalStatus.APPROVED: {ProposalStatus.EXECUTED},
    ProposalStatus.EXECUTED: set(),
    ProposalStatus.REJECTED: set(),
}

TALLY_COLUMNS = {
    VoteChoice.FOR: Proposal.votes_for,
    VoteChoice.AGAINST: Proposal.votes_against,
    VoteChoice.ABSTAIN: Proposal.votes_abstain,
}

REQUIRED_PROPOSAL_FIELDS = ("subsidiary_id", "proposal_type", "title", "proposed_changes")


def can_transition(current: str, target: str) -> bool:
    return ProposalStatus(target) in TRANSITIONS[ProposalStatus(current)]


class ProposalService:
    """Create, vote on, close and execute proposals."""

    def __init__(
        self,
        db: AsyncSession,
        roles: RoleChecker,
        weights: VoteWeightOracle,
        approval: ApprovalPolicy,
        activity: ActivitySink,
        fallback_vote_weight: Optional[float] = None,
    ):
        self.db = db
        self.roles = roles
        self.weights = weights
        self.approval = approval
        self.activity = activity
        if fallback_vote_weight is None:
            fallback_vote_weight = get_settings().fallback_vote_weight
        self.fallback_vote_weight = fallback_vote_weight

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_proposal(self, proposal_id: str) -> Proposal:
        proposal = await self.db.get(Proposal, proposal_id)
        if proposal is None:
            raise NotFound("Proposal not found")
        return proposal

    async def list_proposals(
        self,
        subsidiary_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Proposal]:
        query = select(Proposal)
        if subsidiary_id:
            query = query.where(Proposal.subsidiary_id == subsidiary_id)
        if status:
            query = query.where(Proposal.status == status)
        result = await self.db.execute(query.order_by(Proposal.created_at.desc()))
        return list(result.scalars().all())

    async def has_user_voted(self, proposal_id: str, user_id: str) -> bool:
        result = await self.db.execute(
            select(Vote.id).where(Vote.proposal_id == proposal_id, Vote.voter_id == user_id)
        )
        return result.scalar_one_or_none() is not None

    async def get_voting_results(self, proposal_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        proposal = await self.get_proposal(proposal_id)
        tally = Tally.of(proposal)

        power = proposal.total_voting_power or tally.total
        for_pct = tally.votes_for / power * 100 if power else 0.0
        against_pct = tally.votes_against / power * 100 if power else 0.0

        return {
            "proposal_id": proposal.id,
            "status": proposal.status,
            "votes_for": tally.votes_for,
            "votes_against": tally.votes_against,
            "votes_abstain": tally.votes_abstain,
            "total_voting_power": proposal.total_voting_power,
            "for_percentage": for_pct,
            "against_percentage": against_pct,
            "threshold": self.approval.threshold_for(proposal),
            "is_approved": self.approval.is_approved(proposal, tally),
            "requires_unanimous": bool(proposal.requires_unanimous),
            "has_voted": await self.has_user_voted(proposal_id, user_id) if user_id else False,
        }

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def _require_admin(self, actor_id: str, subsidiary_id: str, action: str) -> None:
        if not await self.roles.can_manage(actor_id, subsidiary_id):
            raise Forbidden(f"Only admins can {action} proposals")

    async def _transition(
        self,
        proposal: Proposal,
        expected: ProposalStatus,
        target: ProposalStatus,
        **values,
    ) -> Proposal:
        """Move ``proposal`` from ``expected`` to ``target`` or raise Conflict."""
        if not can_transition(expected.value, target.value):
            raise Conflict(f"Cannot move a {expected.value} proposal to {target.value}")

        result = await self.db.execute(
            update(Proposal)
            .where(Proposal.id == proposal.id, Proposal.status == expected.value)
            .values(status=target.value, updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise Conflict(f"Proposal is no longer {expected.value}")

        await self.db.refresh(proposal)
        logger.info(
            "Proposal transitioned",
            proposal_id=proposal.id,
            from_status=expected.value,
            to_status=target.value,
        )
        return proposal

    async def create_proposal(self, actor_id: str, payload: Dict[str, Any]) -> Proposal:
        missing = [name for name in REQUIRED_PROPOSAL_FIELDS if not payload.get(name)]
        if missing:
            raise ValidationFailed("Missing required fields")

        subsidiary_id = payload["subsidiary_id"]
        await self._require_admin(actor_id, subsidiary_id, "create")

        if payload.get("governance_rule_id"):
            rule = await self.db.get(GovernanceRule, payload["governance_rule_id"])
            if rule is None or rule.subsidiary_id != subsidiary_id:
                raise ValidationFailed("Governance rule does not belong to this subsidiary")
            if payload.get("approval_threshold_used") is None:
                payload["approval_threshold_used"] = rule.approval_threshold
            if rule.requires_unanimous:
                payload["requires_unanimous"] = True

        now = datetime.utcnow()
        proposal = Proposal(
            **payload,
            status=ProposalStatus.DRAFT.value,
            votes_for=0,
            votes_against=0,
            votes_abstain=0,
            proposed_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(proposal)
        await self.db.flush()

        logger.info(
            "Proposal created",
            proposal_id=proposal.id,
            subsidiary_id=subsidiary_id,
            proposal_type=proposal.proposal_type,
            proposed_by=actor_id,
        )
        await self.activity.log_activity(
            action_type="created",
            proposal_id=proposal.id,
            actor_id=actor_id,
        )
        return proposal

    async def start_voting(self, actor_id: str, proposal_id: str) -> Proposal:
        proposal = await self.get_proposal(proposal_id)
        await self._require_admin(actor_id, proposal.subsidiary_id, "open voting on")

        if proposal.status != ProposalStatus.DRAFT.value:
            raise Conflict("Only draft proposals can be opened for voting")

        period_days = get_settings().default_voting_period_days
        if proposal.governance_rule_id:
            rule = await self.db.get(GovernanceRule, proposal.governance_rule_id)
            if rule is not None:
                period_days = rule.voting_period_days

        vote_start = datetime.utcnow()
        proposal = await self._transition(
            proposal,
            ProposalStatus.DRAFT,
            ProposalStatus.VOTING,
            vote_start_at=vote_start,
            vote_end_at=vote_start + timedelta(days=period_days),
        )
        await self.activity.log_activity(
            action_type="vote_started",
            proposal_id=proposal.id,
            actor_id=actor_id,
            details={"vote_end_at": proposal.vote_end_at.isoformat()},
        )
        return proposal

    async def _resolve_weight(self, proposal: Proposal, voter_id: str) -> float:
        """Oracle weight, or the configured fallback when it is missing, non-finite or not positive."""
        try:
            weight = await self.weights.calculate_vote_weight(proposal, voter_id)
        except Exception as e:
            logger.warning(
                "Vote weight oracle failed, using fallback weight",
                proposal_id=proposal.id,
                voter_id=voter_id,
                fallback=self.fallback_vote_weight,
                error=str(e),
            )
            return self.fallback_vote_weight

        if weight is None or not math.isfinite(float(weight)) or weight <= 0:
            logger.info(
                "No usable vote weight, using fallback weight",
                proposal_id=proposal.id,
                voter_id=voter_id,
                weight=weight,
                fallback=self.fallback_vote_weight,
            )
            return self.fallback_vote_weight
        return float(weight)

    async def cast_vote(
        self,
        actor_id: str,
        proposal_id: str,
        choice: VoteChoice,
        acknowledgments: Dict[str, bool],
        signature_data: Optional[str] = None,
        rationale: Optional[str] = None,
    ) -> Vote:
        """
        Record ``actor_id``'s vote and add its weight to the matching tally.

        The vote insert, the tally increment and any resulting approval
        happen in the caller's transaction. The unique (proposal, voter)
        constraint backs the duplicate check.
        """
        choice = VoteChoice(choice)
        proposal = await self.get_proposal(proposal_id)
        if proposal.status != ProposalStatus.VOTING.value:
            raise Conflict("Proposal is not open for voting")

        if await self.has_user_voted(proposal_id, actor_id):
            raise Conflict("You have already voted on this proposal")

        weight = await self._resolve_weight(proposal, actor_id)
        snapshot = await self.weights.ownership_snapshot(proposal, actor_id)

        vote = Vote(
            proposal_id=proposal_id,
            voter_id=actor_id,
            vote_choice=choice.value,
            vote_weight=weight,
            ownership_snapshot=snapshot,
            understands_dilution=acknowledgments["understands_dilution"],
            acknowledged_terms=acknowledgments["acknowledged_terms"],
            reviewed_financials=acknowledgments["reviewed_financials"],
            signature_data=signature_data,
            rationale=rationale,
            voted_at=datetime.utcnow(),
        )
        try:
            async with self.db.begin_nested():
                self.db.add(vote)
        except IntegrityError as e:
            raise Conflict("You have already voted on this proposal") from e

        column = TALLY_COLUMNS[choice]
        result = await self.db.execute(
            update(Proposal)
            .where(Proposal.id == proposal_id, Proposal.status == ProposalStatus.VOTING.value)
            .values({column.key: column + weight, "updated_at": datetime.utcnow()})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise Conflict("Proposal is not open for voting")
        await self.db.refresh(proposal)

        logger.info(
            "Vote cast",
            proposal_id=proposal_id,
            voter_id=actor_id,
            choice=choice.value,
            weight=weight,
        )
        await self.activity.log_activity(
            action_type="vote_cast",
            proposal_id=proposal_id,
            actor_id=actor_id,
            details={"vote_choice": choice.value, "vote_weight": weight},
        )

        # Deadline-based approval is only evaluated when a vote arrives.
        if (
            self.approval.is_approved(proposal, Tally.of(proposal))
            and proposal.vote_end_at is not None
            and datetime.utcnow() > proposal.vote_end_at
        ):
            try:
                await self._transition(proposal, ProposalStatus.VOTING, ProposalStatus.APPROVED)
            except Conflict:
                logger.info("Proposal already left voting", proposal_id=proposal_id)
            else:
                await self.activity.log_activity(action_type="approved", proposal_id=proposal_id)

        return vote

    async def close_voting(self, actor_id: str, proposal_id: str) -> Proposal:
        """Admin action ending the vote: approved if the policy passes, else rejected."""
        proposal = await self.get_proposal(proposal_id)
        await self._require_admin(actor_id, proposal.subsidiary_id, "close")

        if proposal.status != ProposalStatus.VOTING.value:
            raise Conflict("Proposal is not open for voting")

        approved = self.approval.is_approved(proposal, Tally.of(proposal))
        target = ProposalStatus.APPROVED if approved else ProposalStatus.REJECTED
        proposal = await self._transition(proposal, ProposalStatus.VOTING, target)
        await self.activity.log_activity(
            action_type=target.value,
            proposal_id=proposal.id,
            actor_id=actor_id,
            details={
                "votes_for": proposal.votes_for,
                "votes_against": proposal.votes_against,
                "votes_abstain": proposal.votes_abstain,
            },
        )
        return proposal

    async def execute_proposal(self, actor_id: str, proposal_id: str) -> Proposal:
        """
        Mark an approved proposal executed.

        Applying the change to the subsidiary's cap table is not part of
        this step.
        """
        proposal = await self.get_proposal(proposal_id)
        await self._require_admin(actor_id, proposal.subsidiary_id, "execute")

        if proposal.status != ProposalStatus.APPROVED.value:
            raise Conflict("Only approved proposals can be executed")

        proposal = await self._transition(
            proposal,
            ProposalStatus.APPROVED,
            ProposalStatus.EXECUTED,
            executed_at=datetime.utcnow(),
            executed_by=actor_id,
            execution_notes="Proposal executed successfully",
        )
        await self.activity.log_activity(
            action_type="executed",
            proposal_id=proposal.id,
            actor_id=actor_id,
        )
        return proposal

    # -------------------------------------------------------------------------
    # Governance rules
    # -------------------------------------------------------------------------

    async def list_governance_rules(self, subsidiary_id: str) -> List[GovernanceRule]:
        result = await self.db.execute(
            select(GovernanceRule)
            .where(GovernanceRule.subsidiary_id == subsidiary_id, GovernanceRule.is_active.is_(True))
            .order_by(GovernanceRule.rule_type)
        )
        return list(result.scalars().all())

    async def save_governance_rule(self, actor_id: str, data: Dict[str, Any]) -> GovernanceRule:
        await self._require_admin(actor_id, data["subsidiary_id"], "configure governance for")

        rule_id = data.pop("id", None)
        if rule_id:
            rule = await self.db.get(GovernanceRule, rule_id)
            if rule is None:
                raise NotFound("Governance rule not found")
            if rule.subsidiary_id != data["subsidiary_id"]:
                raise ValidationFailed("Governance rule does not belong to this subsidiary")
            for key, value in data.items():
                setattr(rule, key, value)
        else:
            rule = GovernanceRule(**data)
            self.db.add(rule)

        await self.db.flush()
        logger.info("Governance rule saved", rule_id=rule.id, subsidiary_id=rule.subsidiary_id)
        return rule

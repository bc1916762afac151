"""Integration tests for the proposal lifecycle service"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select, update

from nexus.models import ActivityLog, GovernanceRule, Proposal, Vote
from nexus.services.errors import Conflict, Forbidden, NotFound, ValidationFailed
from nexus.services.governance import ProposalService
from nexus.services.policies import (
    CapTableVoteWeightOracle,
    DatabaseActivitySink,
    DatabaseRoleChecker,
    ThresholdApprovalPolicy,
    VoteWeightOracle,
)
from conftest import ADMIN_ID, INVESTOR_ID, OTHER_INVESTOR_ID, SUBSIDIARY_ID, SUPER_ADMIN_ID

ACKS = {"understands_dilution": True, "acknowledged_terms": True, "reviewed_financials": True}


class FixedWeightOracle(VoteWeightOracle):
    def __init__(self, weights):
        self.weights = weights

    async def calculate_vote_weight(self, proposal, voter_id):
        return self.weights.get(voter_id)


class BrokenOracle(VoteWeightOracle):
    async def calculate_vote_weight(self, proposal, voter_id):
        raise ConnectionError("weight service unreachable")


def _service(db_session, weights=None):
    return ProposalService(
        db_session,
        DatabaseRoleChecker(db_session),
        weights or CapTableVoteWeightOracle(db_session),
        ThresholdApprovalPolicy(default_threshold=50.0),
        DatabaseActivitySink(db_session),
        fallback_vote_weight=1.0,
    )


async def _actions(db_session, proposal_id):
    result = await db_session.execute(
        select(ActivityLog.action_type)
        .where(ActivityLog.proposal_id == proposal_id)
        .order_by(ActivityLog.id)
    )
    return list(result.scalars().all())


class TestCreateProposal:
    """Tests for proposal creation"""

    @pytest.mark.asyncio
    async def test_subsidiary_admin_creates_draft(self, db_session, seed):
        await seed.admin()

        proposal = await _service(db_session).create_proposal(ADMIN_ID, {
            "subsidiary_id": SUBSIDIARY_ID,
            "proposal_type": "equity_issuance",
            "title": "Seed extension",
            "proposed_changes": {"issue_shares": 50_000},
        })

        assert proposal.status == "draft"
        assert proposal.votes_for == 0
        assert proposal.proposed_by == ADMIN_ID
        assert await _actions(db_session, proposal.id) == ["created"]

    @pytest.mark.asyncio
    async def test_super_admin_creates_for_any_subsidiary(self, db_session, seed):
        await seed.super_admin()

        proposal = await _service(db_session).create_proposal(SUPER_ADMIN_ID, {
            "subsidiary_id": "some-other-subsidiary",
            "proposal_type": "stock_split",
            "title": "2-for-1 split",
            "proposed_changes": {"ratio": 2},
        })

        assert proposal.subsidiary_id == "some-other-subsidiary"

    @pytest.mark.asyncio
    async def test_admin_of_other_subsidiary_forbidden(self, db_session, seed):
        await seed.admin(subsidiary_id="some-other-subsidiary")

        with pytest.raises(Forbidden):
            await _service(db_session).create_proposal(ADMIN_ID, {
                "subsidiary_id": SUBSIDIARY_ID,
                "proposal_type": "equity_issuance",
                "title": "Seed extension",
                "proposed_changes": {"issue_shares": 1},
            })

        count = await db_session.scalar(select(func.count(Proposal.id)))
        assert count == 0

    @pytest.mark.asyncio
    async def test_missing_fields_rejected(self, db_session, seed):
        await seed.admin()

        with pytest.raises(ValidationFailed, match="Missing required fields"):
            await _service(db_session).create_proposal(ADMIN_ID, {
                "subsidiary_id": SUBSIDIARY_ID,
                "proposal_type": "equity_issuance",
                "title": "",
                "proposed_changes": {"issue_shares": 1},
            })

    @pytest.mark.asyncio
    async def test_governance_rule_sets_threshold_and_period(self, db_session, seed):
        await seed.admin()
        rule = GovernanceRule(
            subsidiary_id=SUBSIDIARY_ID,
            rule_type="equity_issuance",
            title="Supermajority for issuance",
            approval_threshold=75.0,
            vote_weight_type="equal",
            voting_period_days=14,
            requires_unanimous=False,
        )
        db_session.add(rule)
        await db_session.flush()
        service = _service(db_session)

        proposal = await service.create_proposal(ADMIN_ID, {
            "subsidiary_id": SUBSIDIARY_ID,
            "proposal_type": "equity_issuance",
            "title": "Seed extension",
            "proposed_changes": {"issue_shares": 1},
            "governance_rule_id": rule.id,
        })
        assert proposal.approval_threshold_used == 75.0

        proposal = await service.start_voting(ADMIN_ID, proposal.id)
        assert proposal.status == "voting"
        assert proposal.vote_end_at - proposal.vote_start_at == timedelta(days=14)


class TestCastVote:
    """Tests for voting and tally updates"""

    @pytest.mark.asyncio
    async def test_vote_adds_weight_to_tally(self, db_session, seed):
        proposal = await seed.proposal()
        service = _service(db_session, FixedWeightOracle({INVESTOR_ID: 250.0}))

        vote = await service.cast_vote(INVESTOR_ID, proposal.id, "for", ACKS)

        assert vote.vote_weight == 250.0
        await db_session.refresh(proposal)
        assert proposal.votes_for == 250.0
        assert proposal.status == "voting"

    @pytest.mark.asyncio
    async def test_second_vote_rejected_and_tally_unchanged(self, db_session, seed):
        proposal = await seed.proposal()
        service = _service(db_session, FixedWeightOracle({INVESTOR_ID: 250.0}))
        await service.cast_vote(INVESTOR_ID, proposal.id, "for", ACKS)

        with pytest.raises(Conflict, match="already voted"):
            await service.cast_vote(INVESTOR_ID, proposal.id, "against", ACKS)

        await db_session.refresh(proposal)
        assert proposal.votes_for == 250.0
        assert proposal.votes_against == 0

    @pytest.mark.asyncio
    async def test_unique_constraint_backs_duplicate_check(self, db_session, seed, monkeypatch):
        proposal = await seed.proposal()
        service = _service(db_session, FixedWeightOracle({INVESTOR_ID: 250.0}))
        await service.cast_vote(INVESTOR_ID, proposal.id, "for", ACKS)

        async def never_voted(proposal_id, user_id):
            return False

        # Simulates a concurrent request that passed the read check
        monkeypatch.setattr(service, "has_user_voted", never_voted)

        with pytest.raises(Conflict, match="already voted"):
            await service.cast_vote(INVESTOR_ID, proposal.id, "for", ACKS)

        await db_session.refresh(proposal)
        assert proposal.votes_for == 250.0
        votes = await db_session.scalar(select(func.count(Vote.id)).where(Vote.proposal_id == proposal.id))
        assert votes == 1

    @pytest.mark.asyncio
    async def test_tally_sum_matches_weights(self, db_session, seed):
        proposal = await seed.proposal()
        weights = {f"voter-{i}": float(w) for i, w in enumerate([12.5, 30, 7.25, 1, 49.25])}
        choices = ["for", "against", "abstain", "for", "against"]
        service = _service(db_session, FixedWeightOracle(weights))

        for voter_id, choice in zip(weights, choices):
            await service.cast_vote(voter_id, proposal.id, choice, ACKS)

        await db_session.refresh(proposal)
        assert proposal.votes_for + proposal.votes_against + proposal.votes_abstain == sum(weights.values())
        assert proposal.votes_for == 13.5
        assert proposal.votes_against == 79.25
        assert proposal.votes_abstain == 7.25

    @pytest.mark.asyncio
    async def test_not_open_for_voting(self, db_session, seed):
        proposal = await seed.proposal(status="draft")

        with pytest.raises(Conflict, match="not open for voting"):
            await _service(db_session).cast_vote(INVESTOR_ID, proposal.id, "for", ACKS)

    @pytest.mark.asyncio
    async def test_unknown_proposal(self, db_session):
        with pytest.raises(NotFound):
            await _service(db_session).cast_vote(INVESTOR_ID, "missing", "for", ACKS)

    @pytest.mark.asyncio
    async def test_missing_weight_uses_fallback(self, db_session, seed):
        proposal = await seed.proposal()

        vote = await _service(db_session, FixedWeightOracle({})).cast_vote(INVESTOR_ID, proposal.id, "for", ACKS)

        assert vote.vote_weight == 1.0

    @pytest.mark.asyncio
    async def test_oracle_failure_uses_fallback(self, db_session, seed):
        proposal = await seed.proposal()

        vote = await _service(db_session, BrokenOracle()).cast_vote(INVESTOR_ID, proposal.id, "against", ACKS)

        assert vote.vote_weight == 1.0
        await db_session.refresh(proposal)
        assert proposal.votes_against == 1.0

    @pytest.mark.asyncio
    async def test_negative_weight_uses_fallback(self, db_session, seed):
        proposal = await seed.proposal()
        service = _service(db_session, FixedWeightOracle({INVESTOR_ID: -5.0}))

        vote = await service.cast_vote(INVESTOR_ID, proposal.id, "for", ACKS)

        assert vote.vote_weight == 1.0
        await db_session.refresh(proposal)
        assert proposal.votes_for == 1.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("weight", [float("nan"), float("inf")])
    async def test_non_finite_weight_uses_fallback(self, db_session, seed, weight):
        proposal = await seed.proposal()
        service = _service(db_session, FixedWeightOracle({INVESTOR_ID: weight}))

        vote = await service.cast_vote(INVESTOR_ID, proposal.id, "against", ACKS)

        assert vote.vote_weight == 1.0
        await db_session.refresh(proposal)
        assert proposal.votes_against == 1.0
        assert proposal.votes_for == 0

    @pytest.mark.asyncio
    async def test_cap_table_weight_and_snapshot(self, db_session, seed):
        proposal = await seed.proposal()
        await seed.holder(INVESTOR_ID, ownership_percentage=12.5, shares=125_000)

        vote = await _service(db_session).cast_vote(INVESTOR_ID, proposal.id, "for", ACKS)

        assert vote.vote_weight == 12.5
        assert vote.ownership_snapshot["ownership_percentage"] == 12.5

    @pytest.mark.asyncio
    async def test_approves_when_voting_period_has_ended(self, db_session, seed):
        proposal = await seed.proposal(vote_end_at=datetime.utcnow() - timedelta(hours=1))
        service = _service(db_session, FixedWeightOracle({INVESTOR_ID: 60.0}))

        await service.cast_vote(INVESTOR_ID, proposal.id, "for", ACKS)

        await db_session.refresh(proposal)
        assert proposal.status == "approved"
        assert await _actions(db_session, proposal.id) == ["vote_cast", "approved"]

    @pytest.mark.asyncio
    async def test_stays_voting_before_deadline(self, db_session, seed):
        proposal = await seed.proposal()
        service = _service(db_session, FixedWeightOracle({INVESTOR_ID: 60.0}))

        await service.cast_vote(INVESTOR_ID, proposal.id, "for", ACKS)

        await db_session.refresh(proposal)
        assert proposal.status == "voting"


class TestCloseAndExecute:
    """Tests for the closing and execution transitions"""

    @pytest.mark.asyncio
    async def test_close_approves_passing_proposal(self, db_session, seed):
        await seed.admin()
        proposal = await seed.proposal(votes_for=70.0, votes_against=30.0)

        proposal = await _service(db_session).close_voting(ADMIN_ID, proposal.id)

        assert proposal.status == "approved"

    @pytest.mark.asyncio
    async def test_close_rejects_failing_proposal(self, db_session, seed):
        await seed.admin()
        proposal = await seed.proposal(votes_for=30.0, votes_against=70.0)

        proposal = await _service(db_session).close_voting(ADMIN_ID, proposal.id)

        assert proposal.status == "rejected"
        with pytest.raises(Conflict):
            await _service(db_session).execute_proposal(ADMIN_ID, proposal.id)

    @pytest.mark.asyncio
    async def test_close_requires_admin(self, db_session, seed):
        proposal = await seed.proposal()

        with pytest.raises(Forbidden):
            await _service(db_session).close_voting(INVESTOR_ID, proposal.id)

    @pytest.mark.asyncio
    async def test_execute_draft_rejected(self, db_session, seed):
        await seed.admin()
        proposal = await seed.proposal(status="draft")

        with pytest.raises(Conflict, match="Only approved proposals can be executed"):
            await _service(db_session).execute_proposal(ADMIN_ID, proposal.id)

        await db_session.refresh(proposal)
        assert proposal.status == "draft"

    @pytest.mark.asyncio
    async def test_execute_approved(self, db_session, seed):
        await seed.admin()
        proposal = await seed.proposal(status="approved")

        proposal = await _service(db_session).execute_proposal(ADMIN_ID, proposal.id)

        assert proposal.status == "executed"
        assert proposal.executed_by == ADMIN_ID
        assert proposal.executed_at is not None
        assert proposal.execution_notes == "Proposal executed successfully"
        assert await _actions(db_session, proposal.id) == ["executed"]

    @pytest.mark.asyncio
    async def test_execute_twice_rejected(self, db_session, seed):
        await seed.admin()
        proposal = await seed.proposal(status="approved")
        service = _service(db_session)
        await service.execute_proposal(ADMIN_ID, proposal.id)

        with pytest.raises(Conflict):
            await service.execute_proposal(ADMIN_ID, proposal.id)

    @pytest.mark.asyncio
    async def test_execute_forbidden_for_investor(self, db_session, seed):
        proposal = await seed.proposal(status="approved")

        with pytest.raises(Forbidden):
            await _service(db_session).execute_proposal(OTHER_INVESTOR_ID, proposal.id)

        await db_session.refresh(proposal)
        assert proposal.status == "approved"

    @pytest.mark.asyncio
    async def test_guarded_update_detects_concurrent_transition(self, db_session, seed):
        await seed.admin()
        proposal = await seed.proposal(status="approved")

        # Another request executes it behind this session's back
        await db_session.execute(
            update(Proposal)
            .where(Proposal.id == proposal.id)
            .values(status="executed")
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(Conflict, match="no longer approved"):
            await _service(db_session).execute_proposal(ADMIN_ID, proposal.id)

    @pytest.mark.asyncio
    async def test_start_voting_only_from_draft(self, db_session, seed):
        await seed.admin()
        proposal = await seed.proposal(status="voting")

        with pytest.raises(Conflict, match="Only draft proposals"):
            await _service(db_session).start_voting(ADMIN_ID, proposal.id)


class TestVotingResults:
    @pytest.mark.asyncio
    async def test_results_reflect_tallies(self, db_session, seed):
        proposal = await seed.proposal(votes_for=40.0, votes_against=10.0, total_voting_power=100.0)

        results = await _service(db_session).get_voting_results(proposal.id, INVESTOR_ID)

        assert results["for_percentage"] == 40.0
        assert results["against_percentage"] == 10.0
        assert results["threshold"] == 50.0
        assert results["is_approved"] is False
        assert results["has_voted"] is False

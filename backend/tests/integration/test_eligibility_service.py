"""Integration tests for the eligibility evaluator against a real session"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from nexus.models import ActivityLog, InvestorProfile
from nexus.services.eligibility import (
    EligibilityEvaluator,
    REASON_NO_LIMIT,
    REASON_PENDING_REVIEW,
    REASON_VERIFICATION_REQUIRED,
)
from nexus.services.errors import DependencyFailure, Forbidden, NotFound, ValidationFailed
from nexus.services.investment_limits import DefaultInvestmentLimitRule, InvestmentLimitRule
from nexus.services.policies import DatabaseActivitySink, DatabaseRoleChecker
from conftest import INVESTOR_ID, OTHER_INVESTOR_ID, SUPER_ADMIN_ID


class FailingLimitRule(InvestmentLimitRule):
    async def calculate(self, profile, annual_income, net_worth):
        raise RuntimeError("rule engine unavailable")


def _evaluator(db_session, limit_rule=None):
    return EligibilityEvaluator(
        db_session,
        limit_rule or DefaultInvestmentLimitRule(),
        DatabaseRoleChecker(db_session),
        DatabaseActivitySink(db_session),
    )


class TestInvestorStatus:
    """Tests for reading an investor's status"""

    @pytest.mark.asyncio
    async def test_missing_profile_gets_default_status(self, db_session):
        status = await _evaluator(db_session).get_investor_status(OTHER_INVESTOR_ID)

        assert status.accreditation_status == "unknown"
        assert status.is_verified is False
        assert status.residence_state == "NM"
        assert status.is_us_person is True
        assert status.can_invest is False
        assert status.investment_limit is None

    @pytest.mark.asyncio
    async def test_verified_non_accredited_domestic(self, db_session, seed):
        await seed.profile()
        await seed.accreditation()

        status = await _evaluator(db_session).get_investor_status(INVESTOR_ID)

        assert status.is_verified is True
        assert status.can_invest is True
        assert status.investment_limit.max_investment == 5_000
        assert status.investment_limit.remaining_capacity == 5_000
        assert "non-accredited domestic investors" in status.limit_explanation

    @pytest.mark.asyncio
    async def test_joint_income_used_without_individual_income(self, db_session, seed):
        await seed.profile()
        await seed.accreditation(annual_income=None, joint_income=200_000, net_worth=400_000)

        status = await _evaluator(db_session).get_investor_status(INVESTOR_ID)

        assert status.investment_limit.max_investment == 20_000

    @pytest.mark.asyncio
    async def test_latest_submission_wins(self, db_session, seed):
        await seed.profile()
        await seed.accreditation(created_at=datetime.utcnow() - timedelta(days=30))
        await seed.accreditation(verified_status="pending", created_at=datetime.utcnow())

        status = await _evaluator(db_session).get_investor_status(INVESTOR_ID)

        assert status.is_verified is False
        assert status.verification_pending is True

    @pytest.mark.asyncio
    async def test_limit_engine_failure_is_not_unlimited(self, db_session, seed):
        await seed.profile()
        await seed.accreditation()

        with pytest.raises(DependencyFailure):
            await _evaluator(db_session, FailingLimitRule()).get_investor_status(INVESTOR_ID)


class TestEvaluate:
    """Tests for the worked eligibility scenarios"""

    @pytest.mark.asyncio
    async def test_over_cap_denied_with_remaining_capacity(self, db_session, seed):
        await seed.profile()
        await seed.accreditation()
        evaluator = _evaluator(db_session)

        denied = await evaluator.evaluate(INVESTOR_ID, 6_000)
        assert denied.allowed is False
        assert "$5,000" in denied.reason

        allowed = await evaluator.evaluate(INVESTOR_ID, 5_000)
        assert allowed.allowed is True
        assert allowed.reason is None

    @pytest.mark.asyncio
    async def test_after_confirmed_investment(self, db_session, seed):
        await seed.profile(total_invested=3_000)
        await seed.accreditation()
        evaluator = _evaluator(db_session)

        assert (await evaluator.evaluate(INVESTOR_ID, 2_000)).allowed is True
        denied = await evaluator.evaluate(INVESTOR_ID, 2_001)
        assert denied.allowed is False
        assert "$2,000" in denied.reason

    @pytest.mark.asyncio
    async def test_unknown_status_always_denied(self, db_session, seed):
        await seed.profile(accreditation_status="unknown")
        await seed.accreditation()
        evaluator = _evaluator(db_session)

        for amount in (1, 5_000, 1_000_000):
            result = await evaluator.evaluate(INVESTOR_ID, amount)
            assert result.allowed is False
            assert result.reason == REASON_VERIFICATION_REQUIRED

    @pytest.mark.asyncio
    async def test_pending_review_denied(self, db_session, seed):
        await seed.profile()
        await seed.accreditation(verified_status="pending")

        result = await _evaluator(db_session).evaluate(INVESTOR_ID, 100)

        assert result.reason == REASON_PENDING_REVIEW

    @pytest.mark.asyncio
    async def test_no_financials_denied(self, db_session, seed):
        await seed.profile()
        await seed.accreditation(annual_income=None, net_worth=None)

        result = await _evaluator(db_session).evaluate(INVESTOR_ID, 100)

        assert result.reason == REASON_NO_LIMIT

    @pytest.mark.asyncio
    async def test_repeat_evaluation_is_identical(self, db_session, seed):
        await seed.profile(total_invested=4_500)
        await seed.accreditation()
        evaluator = _evaluator(db_session)

        first = await evaluator.evaluate(INVESTOR_ID, 750)
        second = await evaluator.evaluate(INVESTOR_ID, 750)

        assert first == second

    @pytest.mark.asyncio
    async def test_evaluate_does_not_write(self, db_session, seed):
        await seed.profile()
        await seed.accreditation()

        await _evaluator(db_session).evaluate(INVESTOR_ID, 6_000)

        rows = (await db_session.execute(select(ActivityLog))).scalars().all()
        assert rows == []


class TestRecordInvestment:
    """Tests for the running-total increment"""

    @pytest.mark.asyncio
    async def test_increments_total(self, db_session, seed):
        await seed.profile(total_invested=1_000)
        await seed.super_admin()
        evaluator = _evaluator(db_session)

        assert await evaluator.record_investment(SUPER_ADMIN_ID, INVESTOR_ID, 1_500, "WIRE-001") == 2_500
        assert await evaluator.record_investment(SUPER_ADMIN_ID, INVESTOR_ID, 500) == 3_000

        profile = await db_session.get(InvestorProfile, INVESTOR_ID)
        await db_session.refresh(profile)
        assert profile.total_invested == 3_000

        logged = (await db_session.execute(
            select(ActivityLog).where(ActivityLog.action_type == "investment_recorded")
        )).scalars().all()
        assert len(logged) == 2

    @pytest.mark.asyncio
    async def test_recorded_investment_reduces_capacity(self, db_session, seed):
        await seed.profile()
        await seed.accreditation()
        await seed.super_admin()
        evaluator = _evaluator(db_session)

        await evaluator.record_investment(SUPER_ADMIN_ID, INVESTOR_ID, 3_000)

        status = await evaluator.get_investor_status(INVESTOR_ID)
        assert status.investment_limit.remaining_capacity == 2_000

    @pytest.mark.asyncio
    async def test_requires_super_admin(self, db_session, seed):
        await seed.profile()

        with pytest.raises(Forbidden):
            await _evaluator(db_session).record_investment(INVESTOR_ID, INVESTOR_ID, 1_000)

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amount(self, db_session, seed):
        await seed.super_admin()

        with pytest.raises(ValidationFailed):
            await _evaluator(db_session).record_investment(SUPER_ADMIN_ID, INVESTOR_ID, 0)

    @pytest.mark.asyncio
    async def test_unknown_investor(self, db_session, seed):
        await seed.super_admin()

        with pytest.raises(NotFound):
            await _evaluator(db_session).record_investment(SUPER_ADMIN_ID, OTHER_INVESTOR_ID, 100)

"""Eligibility evaluation for investor status and proposed investment amounts."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.models.investor import InvestorProfile, AccreditationResponse
from nexus.schemas.investor import AccreditationStatus, VerifiedStatus
from nexus.services.errors import DependencyFailure, Forbidden, NotFound, ValidationFailed
from nexus.services.investment_limits import (
    InvestmentLimit,
    InvestmentLimitRule,
    format_currency,
    investment_limit_explanation,
)
from nexus.services.policies import ActivitySink, RoleChecker

logger = structlog.get_logger()

REASON_VERIFICATION_REQUIRED = "Please complete accreditation verification before investing"
REASON_PENDING_REVIEW = "Your accreditation is pending review. Please wait for admin approval."
REASON_NOT_VERIFIED = "Your accreditation status has not been verified"
REASON_NO_LIMIT = "Unable to determine investment limit. Please contact support."


@dataclass
class InvestorStatus:
    accreditation_status: str
    is_verified: bool
    verification_pending: bool
    residence_state: str
    residence_country: str
    is_us_person: bool
    can_invest: bool
    investment_limit: Optional[InvestmentLimit] = None
    limit_explanation: str = ""


@dataclass
class EligibilityResult:
    allowed: bool
    reason: Optional[str] = None
    limit: Optional[InvestmentLimit] = None


def _default_status() -> InvestorStatus:
    return InvestorStatus(
        accreditation_status=AccreditationStatus.UNKNOWN.value,
        is_verified=False,
        verification_pending=False,
        residence_state="NM",
        residence_country="United States",
        is_us_person=True,
        can_invest=False,
        limit_explanation=investment_limit_explanation(AccreditationStatus.UNKNOWN.value, True),
    )


def decide(status: InvestorStatus, amount: float) -> EligibilityResult:
    """Allow or deny ``amount`` for an investor in ``status``.

    Checks run in order and the first failing one decides.
    """
    if status.accreditation_status == AccreditationStatus.UNKNOWN.value:
        return EligibilityResult(allowed=False, reason=REASON_VERIFICATION_REQUIRED)

    if not status.is_verified:
        if status.verification_pending:
            return EligibilityResult(allowed=False, reason=REASON_PENDING_REVIEW)
        return EligibilityResult(allowed=False, reason=REASON_NOT_VERIFIED)

    limit = status.investment_limit
    if limit is None:
        return EligibilityResult(allowed=False, reason=REASON_NO_LIMIT)

    if amount > limit.remaining_capacity:
        return EligibilityResult(
            allowed=False,
            reason=(
                "Investment amount exceeds your remaining capacity of "
                f"{format_currency(limit.remaining_capacity)}"
            ),
            limit=limit,
        )

    return EligibilityResult(allowed=True, limit=limit)


class EligibilityEvaluator:
    """Reads investor state and applies the limit rule engine.

    ``evaluate`` has no side effects; only ``record_investment`` writes.
    """

    def __init__(
        self,
        db: AsyncSession,
        limit_rule: InvestmentLimitRule,
        roles: RoleChecker,
        activity: ActivitySink,
    ):
        self.db = db
        self.limit_rule = limit_rule
        self.roles = roles
        self.activity = activity

    async def _latest_accreditation(self, user_id: str) -> Optional[AccreditationResponse]:
        result = await self.db.execute(
            select(AccreditationResponse)
            .where(AccreditationResponse.investor_id == user_id)
            .order_by(AccreditationResponse.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_investor_status(self, user_id: str) -> InvestorStatus:
        profile = await self.db.get(InvestorProfile, user_id)
        if profile is None:
            return _default_status()

        accreditation = await self._latest_accreditation(user_id)
        accreditation_status = profile.accreditation_status or AccreditationStatus.UNKNOWN.value
        verified = accreditation.verified_status if accreditation else None

        investment_limit = None
        if accreditation is not None:
            annual_income = accreditation.annual_income or accreditation.joint_income
            try:
                quote = await self.limit_rule.calculate(profile, annual_income, accreditation.net_worth)
            except Exception as e:
                logger.error("Investment limit calculation failed", investor_id=user_id, error=str(e))
                raise DependencyFailure("Investment limit calculation failed") from e
            if quote is not None:
                investment_limit = InvestmentLimit.from_quote(quote, profile.total_invested or 0.0)

        is_us_person = True if profile.is_us_person is None else profile.is_us_person
        is_verified = verified == VerifiedStatus.VERIFIED.value
        can_invest = (
            is_verified
            and accreditation_status != AccreditationStatus.UNKNOWN.value
            and (investment_limit is None or investment_limit.remaining_capacity > 0)
        )

        return InvestorStatus(
            accreditation_status=accreditation_status,
            is_verified=is_verified,
            verification_pending=verified == VerifiedStatus.PENDING.value,
            residence_state=profile.residence_state or "NM",
            residence_country=profile.residence_country or "United States",
            is_us_person=is_us_person,
            can_invest=can_invest,
            investment_limit=investment_limit,
            limit_explanation=investment_limit_explanation(accreditation_status, is_us_person),
        )

    async def evaluate(self, user_id: str, amount: float) -> EligibilityResult:
        status = await self.get_investor_status(user_id)
        result = decide(status, amount)
        logger.info(
            "Eligibility evaluated",
            investor_id=user_id,
            amount=amount,
            allowed=result.allowed,
            reason=result.reason,
        )
        return result

    async def record_investment(
        self,
        actor_id: str,
        investor_id: str,
        amount: float,
        reference: Optional[str] = None,
    ) -> float:
        """
        Add a confirmed investment to the investor's running total.

        Call only once the investment has actually committed. The increment
        is a single SQL expression so concurrent confirmations do not lose
        updates. Returns the new total.
        """
        if amount <= 0:
            raise ValidationFailed("Invalid amount")
        if not await self.roles.is_super_admin(actor_id):
            raise Forbidden("Only admins can record confirmed investments")

        result = await self.db.execute(
            update(InvestorProfile)
            .where(InvestorProfile.id == investor_id)
            .values(
                total_invested=InvestorProfile.total_invested + amount,
                updated_at=datetime.utcnow(),
            )
            .returning(InvestorProfile.total_invested)
        )
        new_total = result.scalar_one_or_none()
        if new_total is None:
            raise NotFound("Investor profile not found")

        logger.info(
            "Investment recorded",
            investor_id=investor_id,
            amount=amount,
            total_invested=new_total,
        )
        await self.activity.log_activity(
            action_type="investment_recorded",
            user_id=investor_id,
            actor_id=actor_id,
            details={"amount": amount, "reference": reference, "total_invested": new_total},
        )
        return new_total

"""
Accreditation Determination

Classifies an investor under SEC Rule 501 of Regulation D from their
self-reported questionnaire answers, and records submissions and reviews.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.models.investor import InvestorProfile, AccreditationResponse
from nexus.schemas.investor import AccreditationStatus, InvestorType, VerifiedStatus
from nexus.services.errors import Forbidden, NotFound, ValidationFailed
from nexus.services.policies import ActivitySink, RoleChecker

logger = structlog.get_logger()

QUALIFIED_PURCHASER_THRESHOLD = 5_000_000
INDIVIDUAL_INCOME_THRESHOLD = 200_000
JOINT_INCOME_THRESHOLD = 300_000
NET_WORTH_THRESHOLD = 1_000_000
ENTITY_ASSETS_THRESHOLD = 5_000_000


@dataclass
class AccreditationCriteria:
    """Questionnaire answers used for the determination"""
    investor_type: str = InvestorType.INDIVIDUAL.value
    annual_income: Optional[float] = None
    joint_income: Optional[float] = None
    net_worth: Optional[float] = None
    has_series_license: bool = False
    license_type: Optional[str] = None
    entity_assets: Optional[float] = None
    all_owners_accredited: Optional[bool] = None
    is_501c3: Optional[bool] = None
    trust_assets: Optional[float] = None
    trustor_accredited: Optional[bool] = None


@dataclass
class AccreditationResult:
    status: str
    reasoning: List[str] = field(default_factory=list)
    verification_needed: List[str] = field(default_factory=list)

    @property
    def meets_requirements(self) -> bool:
        return self.status != AccreditationStatus.NON_ACCREDITED.value


def _money(value: float) -> str:
    return f"${value:,.0f}"


def _at_least(value: Optional[float], threshold: float) -> bool:
    return value is not None and value >= threshold


def determine_accreditation(criteria: AccreditationCriteria) -> AccreditationResult:
    """Determine accreditation status based on SEC Rule 501"""
    result = AccreditationResult(status=AccreditationStatus.NON_ACCREDITED.value)
    kind = criteria.investor_type

    # Qualified purchaser first
    if kind == InvestorType.INDIVIDUAL.value and _at_least(criteria.net_worth, QUALIFIED_PURCHASER_THRESHOLD):
        result.status = AccreditationStatus.QUALIFIED_PURCHASER.value
        result.reasoning.append("Net worth exceeds $5,000,000 qualifying as a Qualified Purchaser")
        result.verification_needed.append("Bank/brokerage statements showing net worth")
    elif kind == InvestorType.ENTITY.value and _at_least(criteria.entity_assets, QUALIFIED_PURCHASER_THRESHOLD):
        result.status = AccreditationStatus.QUALIFIED_PURCHASER.value
        result.reasoning.append("Entity has assets exceeding $5,000,000 qualifying as a Qualified Purchaser")
        result.verification_needed.append("Financial statements showing entity assets")

    if result.status == AccreditationStatus.NON_ACCREDITED.value:
        if kind == InvestorType.INDIVIDUAL.value:
            _check_individual(criteria, result)
        elif kind == InvestorType.ENTITY.value:
            _check_entity(criteria, result)
        elif kind == InvestorType.TRUST.value:
            _check_trust(criteria, result)

    if result.status == AccreditationStatus.NON_ACCREDITED.value:
        result.reasoning.append("Does not meet any of the SEC Rule 501 accredited investor criteria")
        if kind == InvestorType.INDIVIDUAL.value:
            if not _at_least(criteria.annual_income, INDIVIDUAL_INCOME_THRESHOLD):
                result.reasoning.append("Individual income is below $200,000 threshold")
            if not _at_least(criteria.joint_income, JOINT_INCOME_THRESHOLD):
                result.reasoning.append("Joint income is below $300,000 threshold")
            if not _at_least(criteria.net_worth, NET_WORTH_THRESHOLD):
                result.reasoning.append("Net worth is below $1,000,000 threshold (excluding primary residence)")
            if not criteria.has_series_license:
                result.reasoning.append("Does not hold Series 7, 65, or 82 license")

    return result


def _check_individual(criteria: AccreditationCriteria, result: AccreditationResult) -> None:
    accredited = AccreditationStatus.ACCREDITED.value

    if _at_least(criteria.annual_income, INDIVIDUAL_INCOME_THRESHOLD):
        result.status = accredited
        result.reasoning.append(
            f"Individual annual income of {_money(criteria.annual_income)} exceeds $200,000 threshold for the past 2 years"
        )
        result.verification_needed.append("Tax returns (Form 1040) for the past 2 years")
    if _at_least(criteria.joint_income, JOINT_INCOME_THRESHOLD):
        result.status = accredited
        result.reasoning.append(
            f"Joint annual income of {_money(criteria.joint_income)} exceeds $300,000 threshold for the past 2 years"
        )
        result.verification_needed.append("Joint tax returns for the past 2 years")
    if _at_least(criteria.net_worth, NET_WORTH_THRESHOLD):
        result.status = accredited
        result.reasoning.append(
            f"Net worth of {_money(criteria.net_worth)} exceeds $1,000,000 threshold (excluding primary residence)"
        )
        result.verification_needed.append("Bank/brokerage statements or CPA letter confirming net worth")
    if criteria.has_series_license:
        result.status = accredited
        license_name = criteria.license_type or "Series 7, 65, or 82"
        result.reasoning.append(
            f"Holds professional license in good standing ({license_name}) qualifying as an accredited investor"
        )
        result.verification_needed.append("Copy of professional license (Series 7, 65, or 82)")


def _check_entity(criteria: AccreditationCriteria, result: AccreditationResult) -> None:
    accredited = AccreditationStatus.ACCREDITED.value

    if _at_least(criteria.entity_assets, ENTITY_ASSETS_THRESHOLD):
        result.status = accredited
        result.reasoning.append(
            f"Entity has total assets of {_money(criteria.entity_assets)} exceeding $5,000,000"
        )
        result.verification_needed.append("Audited financial statements")
    if criteria.all_owners_accredited:
        result.status = accredited
        result.reasoning.append("All equity owners of the entity are accredited investors")
        result.verification_needed.append("Accreditation verification for all equity owners")
    if criteria.is_501c3 and _at_least(criteria.entity_assets, ENTITY_ASSETS_THRESHOLD):
        result.status = accredited
        result.reasoning.append("501(c)(3) organization with assets exceeding $5,000,000")
        result.verification_needed.append("501(c)(3) determination letter and financial statements")


def _check_trust(criteria: AccreditationCriteria, result: AccreditationResult) -> None:
    accredited = AccreditationStatus.ACCREDITED.value

    if _at_least(criteria.trust_assets, ENTITY_ASSETS_THRESHOLD):
        result.status = accredited
        result.reasoning.append("Trust has assets exceeding $5,000,000")
        result.verification_needed.append("Trust agreement and financial statements")
    if criteria.trustor_accredited:
        result.status = accredited
        result.reasoning.append("Trust formed by an accredited investor (revocable trust)")
        result.verification_needed.append("Accreditation verification of trustor")


def calculate_net_worth(
    total_assets: float,
    total_liabilities: float,
    primary_residence_value: float = 0,
    primary_residence_mortgage: float = 0,
) -> float:
    """
    Net worth excluding the primary residence.

    The residence and its mortgage are both left out, except for any
    mortgage balance in excess of the home's value, which still counts
    as a liability.
    """
    assets_excluding_home = total_assets - primary_residence_value
    underwater = max(0, primary_residence_mortgage - primary_residence_value)
    liabilities = total_liabilities - primary_residence_mortgage + underwater
    return assets_excluding_home - liabilities


def validate_income_history(income_by_year: Dict[int, float]) -> Dict[str, object]:
    """
    Check the two most recent years against the individual income threshold.

    ``qualifying_income`` is the lower of those two years, the figure the
    income test has to hold for.
    """
    years = sorted(income_by_year)
    if len(years) < 2:
        return {
            "is_consistent": False,
            "meets_threshold": False,
            "threshold": INDIVIDUAL_INCOME_THRESHOLD,
            "qualifying_income": None,
        }

    recent = [income_by_year[year] for year in years[-2:]]
    return {
        "is_consistent": True,
        "meets_threshold": all(income >= INDIVIDUAL_INCOME_THRESHOLD for income in recent),
        "threshold": INDIVIDUAL_INCOME_THRESHOLD,
        "qualifying_income": min(recent),
    }


def apply_financial_details(
    criteria: AccreditationCriteria,
    net_worth_breakdown: Optional[Dict[str, float]] = None,
    income_by_year: Optional[Dict[int, float]] = None,
) -> AccreditationCriteria:
    """
    Replace self-reported figures with ones derived from supporting detail.

    A balance-sheet breakdown sets ``net_worth`` (primary residence
    excluded). An income history covering at least two years sets
    ``annual_income`` to the lower of the two most recent years; a shorter
    history leaves the reported income alone.
    """
    changes = {}
    if net_worth_breakdown:
        changes["net_worth"] = calculate_net_worth(**net_worth_breakdown)
    if income_by_year:
        history = validate_income_history(income_by_year)
        if history["is_consistent"]:
            changes["annual_income"] = history["qualifying_income"]
    return replace(criteria, **changes) if changes else criteria


class AccreditationService:
    """Stores questionnaire submissions and reviewer decisions."""

    def __init__(self, db: AsyncSession, roles: RoleChecker, activity: ActivitySink):
        self.db = db
        self.roles = roles
        self.activity = activity

    async def submit(
        self,
        user_id: str,
        criteria: AccreditationCriteria,
        responses: Optional[dict] = None,
        uploaded_documents: Optional[list] = None,
        net_worth_breakdown: Optional[Dict[str, float]] = None,
        income_by_year: Optional[Dict[int, float]] = None,
    ) -> tuple[AccreditationResponse, AccreditationResult]:
        """Record a submission as pending review and update the investor profile."""
        criteria = apply_financial_details(criteria, net_worth_breakdown, income_by_year)
        determination = determine_accreditation(criteria)

        profile = await self.db.get(InvestorProfile, user_id)
        if profile is None:
            profile = InvestorProfile(id=user_id, total_invested=0)
            self.db.add(profile)

        record = AccreditationResponse(
            investor_id=user_id,
            investor_type=criteria.investor_type,
            annual_income=criteria.annual_income,
            joint_income=criteria.joint_income,
            net_worth=criteria.net_worth,
            has_series_license=criteria.has_series_license,
            license_type=criteria.license_type,
            entity_assets=criteria.entity_assets,
            all_owners_accredited=criteria.all_owners_accredited,
            is_501c3=criteria.is_501c3,
            trust_assets=criteria.trust_assets,
            trustor_accredited=criteria.trustor_accredited,
            responses=responses,
            uploaded_documents=uploaded_documents or None,
            determination=determination.status,
            determination_reasoning="; ".join(determination.reasoning),
            verified_status=VerifiedStatus.PENDING.value,
            created_at=datetime.utcnow(),
        )
        self.db.add(record)

        profile.accreditation_status = determination.status
        profile.onboarding_completed = False
        profile.onboarding_step = "document_review"
        await self.db.flush()

        logger.info(
            "Accreditation submitted",
            investor_id=user_id,
            accreditation_id=record.id,
            determination=determination.status,
        )
        await self.activity.log_activity(
            action_type="accreditation_submitted",
            user_id=user_id,
            actor_id=user_id,
            details={"accreditation_id": record.id, "determination": determination.status},
        )
        return record, determination

    async def review(
        self,
        reviewer_id: str,
        accreditation_id: str,
        verified_status: str,
        notes: Optional[str] = None,
    ) -> AccreditationResponse:
        """Set the reviewer's verdict. Super admins only."""
        if not await self.roles.is_super_admin(reviewer_id):
            raise Forbidden("Only admins can review accreditation submissions")
        if verified_status == VerifiedStatus.PENDING.value:
            raise ValidationFailed("A review must set a final verification status")

        record = await self.db.get(AccreditationResponse, accreditation_id)
        if record is None:
            raise NotFound("Accreditation submission not found")

        record.verified_status = verified_status
        record.reviewed_by = reviewer_id
        record.reviewed_at = datetime.utcnow()
        record.review_notes = notes
        await self.db.flush()

        logger.info(
            "Accreditation reviewed",
            accreditation_id=accreditation_id,
            verified_status=verified_status,
            reviewer=reviewer_id,
        )
        await self.activity.log_activity(
            action_type="accreditation_reviewed",
            user_id=record.investor_id,
            actor_id=reviewer_id,
            details={"accreditation_id": accreditation_id, "verified_status": verified_status},
        )
        return record

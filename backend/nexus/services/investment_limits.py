"""
Investment Limits

Limit rule engine for how much an investor may put into a private offering,
plus the capacity arithmetic the eligibility checks rely on.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from nexus.config import get_settings
from nexus.models.investor import InvestorProfile
from nexus.schemas.investor import AccreditationStatus

NM_SECURITIES_ACT = "New Mexico Uniform Securities Act, NMSA 1978 Chapter 58, Article 13C"
SEC_RULE_501 = "SEC Rule 501 of Regulation D"
REGULATION_S = "SEC Regulation S and applicable foreign securities regulations"


@dataclass
class LimitQuote:
    """Output of a limit rule engine"""
    max_investment: float
    limit_description: str
    legal_reference: str


@dataclass
class InvestmentLimit:
    """A quote applied to the investor's running total"""
    max_investment: float
    limit_description: str
    legal_reference: str
    total_invested: float
    remaining_capacity: float

    @classmethod
    def from_quote(cls, quote: LimitQuote, total_invested: float) -> "InvestmentLimit":
        return cls(
            max_investment=quote.max_investment,
            limit_description=quote.limit_description,
            legal_reference=quote.legal_reference,
            total_invested=total_invested,
            remaining_capacity=remaining_capacity(quote.max_investment, total_invested),
        )


def remaining_capacity(max_investment: float, total_invested: float) -> float:
    """Capacity left under the cap, floored at zero.

    Prior investments above the cap are absorbed here rather than reported.
    """
    return max(0.0, max_investment - (total_invested or 0.0))


def format_currency(amount: float) -> str:
    """Format a dollar amount with thousands separators"""
    if float(amount).is_integer():
        return f"${amount:,.0f}"
    return f"${amount:,.2f}"


def is_unlimited(max_investment: float) -> bool:
    return max_investment >= get_settings().no_limit_sentinel


def format_investment_limit(limit: InvestmentLimit) -> str:
    if is_unlimited(limit.max_investment):
        return "No investment limit"
    return f"{format_currency(limit.max_investment)} maximum"


def investment_limit_explanation(accreditation_status: str, is_us_person: bool) -> str:
    if accreditation_status in (
        AccreditationStatus.ACCREDITED.value,
        AccreditationStatus.QUALIFIED_PURCHASER.value,
    ):
        return "As an accredited investor, you have no investment limit."

    if accreditation_status == AccreditationStatus.NON_ACCREDITED.value:
        if is_us_person:
            return (
                "Under New Mexico securities law, non-accredited domestic investors may invest up to "
                "the greater of $5,000 or 10% of their annual income or net worth."
            )
        return (
            "International non-accredited investors may invest up to 5% of their annual income or "
            "net worth, subject to applicable foreign securities regulations."
        )

    return "Please complete accreditation verification to determine your investment limit."


class InvestmentLimitRule(ABC):
    """Pluggable limit rule engine"""

    @abstractmethod
    async def calculate(
        self,
        profile: InvestorProfile,
        annual_income: Optional[float],
        net_worth: Optional[float],
    ) -> Optional[LimitQuote]:
        """Return the investor's cap, or None when no limit can be determined."""


class DefaultInvestmentLimitRule(InvestmentLimitRule):
    """
    Default limits.

    Accredited investors and qualified purchasers are uncapped. Domestic
    non-accredited investors may invest the greater of the floor amount or
    10% of the smaller of income and net worth; international ones 5% of
    that same base with no floor.
    """

    def __init__(
        self,
        floor: Optional[float] = None,
        domestic_pct: Optional[float] = None,
        international_pct: Optional[float] = None,
        no_limit: Optional[float] = None,
    ):
        settings = get_settings()
        self.floor = settings.non_accredited_floor if floor is None else floor
        self.domestic_pct = settings.domestic_limit_pct if domestic_pct is None else domestic_pct
        self.international_pct = (
            settings.international_limit_pct if international_pct is None else international_pct
        )
        self.no_limit = settings.no_limit_sentinel if no_limit is None else no_limit

    async def calculate(
        self,
        profile: InvestorProfile,
        annual_income: Optional[float],
        net_worth: Optional[float],
    ) -> Optional[LimitQuote]:
        status = profile.accreditation_status
        if status in (
            AccreditationStatus.ACCREDITED.value,
            AccreditationStatus.QUALIFIED_PURCHASER.value,
        ):
            return LimitQuote(
                max_investment=self.no_limit,
                limit_description="No investment limit for accredited investors",
                legal_reference=SEC_RULE_501,
            )

        if status != AccreditationStatus.NON_ACCREDITED.value:
            return None

        reported = [v for v in (annual_income, net_worth) if v is not None]
        if not reported:
            return None
        base = max(0.0, min(reported))

        if profile.is_us_person is False:
            return LimitQuote(
                max_investment=base * self.international_pct / 100,
                limit_description=(
                    f"{self.international_pct:g}% of annual income or net worth (international investor)"
                ),
                legal_reference=REGULATION_S,
            )

        return LimitQuote(
            max_investment=max(self.floor, base * self.domestic_pct / 100),
            limit_description=(
                f"Greater of {format_currency(self.floor)} or {self.domestic_pct:g}% "
                "of annual income or net worth"
            ),
            legal_reference=NM_SECURITIES_ACT,
        )

"""Schemas for investor status, eligibility and accreditation APIs"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from enum import Enum


# =============================================================================
# Enums
# =============================================================================

class AccreditationStatus(str, Enum):
    UNKNOWN = "unknown"
    NON_ACCREDITED = "non_accredited"
    ACCREDITED = "accredited"
    QUALIFIED_PURCHASER = "qualified_purchaser"


class VerifiedStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    NEEDS_MORE_INFO = "needs_more_info"


class InvestorType(str, Enum):
    INDIVIDUAL = "individual"
    ENTITY = "entity"
    TRUST = "trust"


class CamelModel(BaseModel):
    """Base for payloads exchanged with the portal front end (camelCase keys)"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# =============================================================================
# Investor status / eligibility
# =============================================================================

class InvestmentLimitResponse(CamelModel):
    max_investment: float
    limit_description: str
    legal_reference: str
    remaining_capacity: float
    total_invested: float
    display: str  # "$X maximum" or "No investment limit"


class InvestorStatusResponse(CamelModel):
    accreditation_status: AccreditationStatus
    is_verified: bool
    residence_state: str
    residence_country: str
    is_us_person: bool
    investment_limit: Optional[InvestmentLimitResponse] = None
    can_invest: bool
    verification_pending: bool
    limit_explanation: str = ""


class InvestorStatusEnvelope(BaseModel):
    success: bool = True
    status: InvestorStatusResponse


class InvestmentCheckRequest(BaseModel):
    amount: float = Field(gt=0)


class InvestmentCheckResponse(CamelModel):
    success: bool = True
    allowed: bool
    reason: Optional[str] = None
    limit: Optional[InvestmentLimitResponse] = None


class RecordInvestmentRequest(BaseModel):
    amount: float = Field(gt=0)
    reference: Optional[str] = None  # commitment / wire reference


class RecordInvestmentResponse(CamelModel):
    success: bool = True
    investor_id: str
    total_invested: float


# =============================================================================
# Accreditation
# =============================================================================

class NetWorthBreakdown(CamelModel):
    """Balance-sheet figures; net worth is derived excluding the primary residence"""
    total_assets: float = Field(ge=0)
    total_liabilities: float = Field(default=0, ge=0)
    primary_residence_value: float = Field(default=0, ge=0)
    primary_residence_mortgage: float = Field(default=0, ge=0)


class AccreditationCriteria(CamelModel):
    """Self-reported questionnaire answers"""
    investor_type: InvestorType = InvestorType.INDIVIDUAL
    annual_income: Optional[float] = Field(default=None, ge=0)
    joint_income: Optional[float] = Field(default=None, ge=0)
    net_worth: Optional[float] = None
    exclude_primary_residence: Optional[bool] = None
    has_series_license: bool = False
    license_type: Optional[str] = None
    entity_assets: Optional[float] = Field(default=None, ge=0)
    all_owners_accredited: Optional[bool] = None
    is_501c3: Optional[bool] = Field(default=None, alias="is501c3")
    trust_assets: Optional[float] = Field(default=None, ge=0)
    trustor_accredited: Optional[bool] = None
    net_worth_breakdown: Optional[NetWorthBreakdown] = None
    income_by_year: Optional[Dict[int, float]] = None  # tax year -> individual income


class UploadedDocument(BaseModel):
    url: str
    name: str
    size: Optional[int] = None


class SubmitAccreditationRequest(CamelModel):
    responses: AccreditationCriteria
    uploaded_documents: List[UploadedDocument] = []


class SubmitAccreditationResponse(CamelModel):
    success: bool = True
    accreditation_id: str
    status: AccreditationStatus
    reasoning: List[str]
    verification_needed: List[str]


class ReviewAccreditationRequest(CamelModel):
    verified_status: VerifiedStatus
    notes: Optional[str] = None


class AccreditationRecordResponse(CamelModel):
    id: str
    investor_id: str
    investor_type: str
    determination: str
    determination_reasoning: Optional[str] = None
    verified_status: VerifiedStatus
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: datetime
    responses: Optional[Dict[str, Any]] = None

"""Investor profile and accreditation models"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Float, Boolean, DateTime, ForeignKey, Text, JSON, CheckConstraint

from nexus.models.database import Base


class InvestorProfile(Base):
    """Investor profile keyed by the authenticated user id"""
    __tablename__ = "investor_profiles"

    id = Column(String(36), primary_key=True)
    accreditation_status = Column(String(30), nullable=False, default="unknown")  # unknown, non_accredited, accredited, qualified_purchaser
    residence_state = Column(String(2), nullable=True, default="NM")
    residence_country = Column(String(100), nullable=True, default="United States")
    is_us_person = Column(Boolean, nullable=True, default=True)

    # Running total of confirmed investments (USD). Only ever incremented in SQL.
    total_invested = Column(Float, nullable=False, default=0)

    onboarding_step = Column(String(50), nullable=True)
    onboarding_completed = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("total_invested >= 0", name="ck_investor_profiles_total_invested"),
    )

    def __repr__(self):
        return f"<InvestorProfile {self.id[:8]}... ({self.accreditation_status})>"


class AccreditationResponse(Base):
    """One accreditation questionnaire submission.

    Immutable once created; only the review columns are set afterwards,
    by a reviewer rather than the investor.
    """
    __tablename__ = "accreditation_responses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    investor_id = Column(String(36), ForeignKey("investor_profiles.id"), nullable=False, index=True)
    investor_type = Column(String(20), nullable=False, default="individual")  # individual, entity, trust

    # Self-reported financials (USD)
    annual_income = Column(Float, nullable=True)
    joint_income = Column(Float, nullable=True)
    net_worth = Column(Float, nullable=True)
    has_series_license = Column(Boolean, default=False)
    license_type = Column(String(50), nullable=True)
    entity_assets = Column(Float, nullable=True)
    all_owners_accredited = Column(Boolean, nullable=True)
    is_501c3 = Column(Boolean, nullable=True)
    trust_assets = Column(Float, nullable=True)
    trustor_accredited = Column(Boolean, nullable=True)
    responses = Column(JSON, nullable=True)
    uploaded_documents = Column(JSON, nullable=True)

    determination = Column(String(30), nullable=False)
    determination_reasoning = Column(Text, nullable=True)

    # Review
    verified_status = Column(String(20), nullable=False, default="pending")  # pending, verified, rejected, needs_more_info
    reviewed_by = Column(String(36), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<AccreditationResponse {self.id[:8]}... ({self.verified_status})>"

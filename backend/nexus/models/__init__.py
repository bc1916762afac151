"""Database models"""
from nexus.models.database import Base, get_db
from nexus.models.investor import InvestorProfile, AccreditationResponse
from nexus.models.governance import GovernanceRule, Proposal, Vote, CapTableEntry
from nexus.models.admin import AdminRole, ActivityLog

__all__ = [
    "Base",
    "get_db",
    "InvestorProfile",
    "AccreditationResponse",
    # Governance
    "GovernanceRule",
    "Proposal",
    "Vote",
    "CapTableEntry",
    # Administration
    "AdminRole",
    "ActivityLog",
]

"""Nexus workflow services"""
from .errors import WorkflowError, Unauthorized, Forbidden, ValidationFailed, NotFound, Conflict, DependencyFailure
from .investment_limits import (
    InvestmentLimit,
    InvestmentLimitRule,
    DefaultInvestmentLimitRule,
    LimitQuote,
    remaining_capacity,
)
from .policies import (
    Tally,
    RoleChecker,
    VoteWeightOracle,
    ApprovalPolicy,
    ActivitySink,
    ThresholdApprovalPolicy,
)
from .eligibility import EligibilityEvaluator, EligibilityResult, InvestorStatus
from .governance import ProposalService
from .admin import AdminRoleService

__all__ = [
    # Errors
    "WorkflowError",
    "Unauthorized",
    "Forbidden",
    "ValidationFailed",
    "NotFound",
    "Conflict",
    "DependencyFailure",
    # Investment limits
    "InvestmentLimit",
    "InvestmentLimitRule",
    "DefaultInvestmentLimitRule",
    "LimitQuote",
    "remaining_capacity",
    # Policies
    "Tally",
    "RoleChecker",
    "VoteWeightOracle",
    "ApprovalPolicy",
    "ActivitySink",
    "ThresholdApprovalPolicy",
    # Workflows
    "EligibilityEvaluator",
    "EligibilityResult",
    "InvestorStatus",
    "ProposalService",
    "AdminRoleService",
]

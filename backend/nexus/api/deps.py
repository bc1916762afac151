"""Request-scoped dependencies: session user and workflow services"""
from typing import Optional

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.config import get_settings
from nexus.models.database import get_db
from nexus.services.admin import AdminRoleService
from nexus.services.accreditation import AccreditationService
from nexus.services.eligibility import EligibilityEvaluator
from nexus.services.errors import Unauthorized
from nexus.services.governance import ProposalService
from nexus.services.investment_limits import DefaultInvestmentLimitRule, InvestmentLimitRule
from nexus.services.policies import (
    ActivitySink,
    ApprovalPolicy,
    CapTableVoteWeightOracle,
    DatabaseActivitySink,
    DatabaseRoleChecker,
    RoleChecker,
    ThresholdApprovalPolicy,
    VoteWeightOracle,
)

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)


def decode_session_token(token: str) -> str:
    """Return the user id carried in a session token"""
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.info("Rejected session token", error=str(e))
        raise Unauthorized() from e

    user_id = claims.get("sub")
    if not user_id:
        raise Unauthorized()
    return user_id


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise Unauthorized()
    return decode_session_token(credentials.credentials)


def get_role_checker(db: AsyncSession = Depends(get_db)) -> RoleChecker:
    return DatabaseRoleChecker(db)


def get_activity_sink(db: AsyncSession = Depends(get_db)) -> ActivitySink:
    return DatabaseActivitySink(db)


def get_vote_weight_oracle(db: AsyncSession = Depends(get_db)) -> VoteWeightOracle:
    return CapTableVoteWeightOracle(db)


def get_approval_policy() -> ApprovalPolicy:
    return ThresholdApprovalPolicy(default_threshold=get_settings().default_approval_threshold)


def get_limit_rule() -> InvestmentLimitRule:
    return DefaultInvestmentLimitRule()


def get_eligibility_evaluator(
    db: AsyncSession = Depends(get_db),
    limit_rule: InvestmentLimitRule = Depends(get_limit_rule),
    roles: RoleChecker = Depends(get_role_checker),
    activity: ActivitySink = Depends(get_activity_sink),
) -> EligibilityEvaluator:
    return EligibilityEvaluator(db, limit_rule, roles, activity)


def get_accreditation_service(
    db: AsyncSession = Depends(get_db),
    roles: RoleChecker = Depends(get_role_checker),
    activity: ActivitySink = Depends(get_activity_sink),
) -> AccreditationService:
    return AccreditationService(db, roles, activity)


def get_admin_role_service(
    db: AsyncSession = Depends(get_db),
    roles: RoleChecker = Depends(get_role_checker),
    activity: ActivitySink = Depends(get_activity_sink),
) -> AdminRoleService:
    return AdminRoleService(db, roles, activity)


def get_proposal_service(
    db: AsyncSession = Depends(get_db),
    roles: RoleChecker = Depends(get_role_checker),
    weights: VoteWeightOracle = Depends(get_vote_weight_oracle),
    approval: ApprovalPolicy = Depends(get_approval_policy),
    activity: ActivitySink = Depends(get_activity_sink),
) -> ProposalService:
    return ProposalService(db, roles, weights, approval, activity)

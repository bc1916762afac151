"""
Admin Role Management

Super admins grant and revoke admin roles. Revocation stamps ``revoked_at``
instead of deleting the row, and role checks only consider rows that are
still active, so a revoked admin loses access on their next request.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nexus.models.admin import AdminRole
from nexus.services.errors import Conflict, Forbidden, NotFound, ValidationFailed
from nexus.services.policies import ActivitySink, RoleChecker

logger = structlog.get_logger()

ROLE_TYPES = ("super_admin", "subsidiary_admin")
DEFAULT_PERMISSIONS = {"data_room": True, "subsidiary_edit": True}


class AdminRoleService:
    """Grants, revokes and lists admin roles."""

    def __init__(self, db: AsyncSession, roles: RoleChecker, activity: ActivitySink):
        self.db = db
        self.roles = roles
        self.activity = activity

    async def list_roles(self, actor_id: str, user_id: str) -> List[AdminRole]:
        """Active roles for ``user_id``. Users may list their own; super admins anyone's."""
        if actor_id != user_id and not await self.roles.is_super_admin(actor_id):
            raise Forbidden("Only super admins can view other users' roles")

        result = await self.db.execute(
            select(AdminRole)
            .where(AdminRole.user_id == user_id, AdminRole.revoked_at.is_(None))
            .order_by(AdminRole.role_type)
        )
        return list(result.scalars().all())

    async def grant_role(
        self,
        actor_id: str,
        user_id: str,
        role_type: str,
        subsidiary_id: Optional[str] = None,
        permissions: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> AdminRole:
        if not await self.roles.is_super_admin(actor_id):
            raise Forbidden("Only super admins can grant roles")
        if role_type not in ROLE_TYPES:
            raise ValidationFailed(f"Unknown role type: {role_type}")
        if role_type == "subsidiary_admin" and not subsidiary_id:
            raise ValidationFailed("Subsidiary admin must have a subsidiary ID")

        role = AdminRole(
            user_id=user_id,
            role_type=role_type,
            subsidiary_id=subsidiary_id if role_type == "subsidiary_admin" else None,
            permissions=permissions or dict(DEFAULT_PERMISSIONS),
            granted_by=actor_id,
            granted_at=datetime.utcnow(),
            notes=notes,
        )
        self.db.add(role)
        await self.db.flush()

        logger.info(
            "Admin role granted",
            role_id=role.id,
            user_id=user_id,
            role_type=role_type,
            subsidiary_id=role.subsidiary_id,
            granted_by=actor_id,
        )
        await self.activity.log_activity(
            action_type="grant_role",
            user_id=user_id,
            actor_id=actor_id,
            details={"role_id": role.id, "role_type": role_type, "subsidiary_id": role.subsidiary_id},
        )
        return role

    async def revoke_role(self, actor_id: str, role_id: str) -> AdminRole:
        if not await self.roles.is_super_admin(actor_id):
            raise Forbidden("Only super admins can revoke roles")

        role = await self.db.get(AdminRole, role_id)
        if role is None:
            raise NotFound("Admin role not found")
        if role.revoked_at is not None:
            raise Conflict("Admin role is already revoked")

        role.revoked_at = datetime.utcnow()
        await self.db.flush()

        logger.info("Admin role revoked", role_id=role_id, user_id=role.user_id, revoked_by=actor_id)
        await self.activity.log_activity(
            action_type="revoke_role",
            user_id=role.user_id,
            actor_id=actor_id,
            details={"role_id": role_id, "role_type": role.role_type, "subsidiary_id": role.subsidiary_id},
        )
        return role

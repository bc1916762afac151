"""Admin role schemas"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, Dict, Any
from enum import Enum


class RoleType(str, Enum):
    SUPER_ADMIN = "super_admin"
    SUBSIDIARY_ADMIN = "subsidiary_admin"


class GrantRoleRequest(BaseModel):
    user_id: str
    role_type: RoleType
    subsidiary_id: Optional[str] = None
    permissions: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class AdminRoleResponse(BaseModel):
    id: str
    user_id: str
    role_type: RoleType
    subsidiary_id: Optional[str] = None
    permissions: Optional[Dict[str, Any]] = None
    granted_by: Optional[str] = None
    granted_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True

"""Admin role and activity log models"""
import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON

from nexus.models.database import Base


class AdminRole(Base):
    """Admin grant, either global or scoped to one subsidiary"""
    __tablename__ = "admin_roles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    role_type = Column(String(20), nullable=False)  # super_admin, subsidiary_admin
    subsidiary_id = Column(String(36), nullable=True, index=True)
    permissions = Column(JSON, nullable=True)
    granted_by = Column(String(36), nullable=True)
    granted_at = Column(DateTime, default=datetime.utcnow)
    revoked_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    def __repr__(self):
        return f"<AdminRole {self.user_id[:8]}... ({self.role_type})>"


class ActivityLog(Base):
    """Append-only activity trail for proposals and investors"""
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    proposal_id = Column(String(36), nullable=True, index=True)
    user_id = Column(String(36), nullable=True, index=True)
    actor_id = Column(String(36), nullable=True)
    action_type = Column(String(50), nullable=False, index=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<ActivityLog {self.action_type} ({self.id})>"

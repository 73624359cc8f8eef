"""
Models package - imports all database models
"""
from app.database import Base
from app.models.base import TimestampMixin, UUIDMixin, utcnow
from app.models.organization import (
    Organization, OrganizationMembership, Team, TeamMembership, OrganizationAIConfig
)
from app.models.user import User, RegistrationSource
from app.models.role import Role, Permission, RolePermission, UserRoleAssignment
from app.models.integration import ExternalConnection, KnowledgeDocument, SyncStatus
from app.models.audit import AuditLog

# Export all models for easy import
__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "utcnow",
    "Organization",
    "OrganizationMembership",
    "Team",
    "TeamMembership",
    "OrganizationAIConfig",
    "User",
    "RegistrationSource",
    "Role",
    "Permission",
    "RolePermission",
    "UserRoleAssignment",
    "ExternalConnection",
    "KnowledgeDocument",
    "SyncStatus",
    "AuditLog",
]

"""
Role and Permission models

A role or permission with organization_id NULL belongs to the platform scope;
otherwise it belongs to that organization. Name uniqueness per scope is
enforced by the services because NULL never collides in a unique index.
"""
from sqlalchemy import Column, String, Boolean, Integer, Text, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.base import UUIDMixin, TimestampMixin


class Role(Base, UUIDMixin, TimestampMixin):
    """Leveled permission bundle, platform or organization scoped"""
    __tablename__ = "roles"

    name = Column(String(100), nullable=False)
    display_name = Column(String(255), nullable=False)
    description = Column(Text)
    level = Column(Integer, nullable=False, default=0)
    is_system = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(255))

    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True)

    role_permissions = relationship(
        "RolePermission", back_populates="role", cascade="all, delete-orphan", passive_deletes=True
    )
    assignments = relationship(
        "UserRoleAssignment", back_populates="role", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index('ix_roles_organization_id', 'organization_id'),
        Index('ix_roles_is_active', 'is_active'),
        Index('ix_roles_level', 'level'),
    )


class Permission(Base, UUIDMixin, TimestampMixin):
    """Atomic capability keyed by (resource, action)"""
    __tablename__ = "permissions"

    name = Column(String(150), nullable=False)
    display_name = Column(String(255), nullable=False)
    description = Column(Text)
    category = Column(String(50), nullable=False)
    resource = Column(String(100), nullable=False)
    action = Column(String(50), nullable=False)
    is_system = Column(Boolean, default=False, nullable=False)

    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True)

    role_permissions = relationship(
        "RolePermission", back_populates="permission", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index('ix_permissions_organization_id', 'organization_id'),
        Index('ix_permissions_name', 'name'),
        Index('ix_permissions_resource_action', 'resource', 'action'),
    )


class RolePermission(Base, UUIDMixin, TimestampMixin):
    """Grant of a permission to a role"""
    __tablename__ = "role_permissions"

    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    permission_id = Column(String(36), ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False)
    granted_by = Column(String(255))

    role = relationship("Role", back_populates="role_permissions")
    permission = relationship("Permission", back_populates="role_permissions")

    __table_args__ = (
        Index('ix_role_permissions_role_id', 'role_id'),
        Index('ix_role_permissions_permission_id', 'permission_id'),
        UniqueConstraint('role_id', 'permission_id', name='uq_role_permission'),
    )


class UserRoleAssignment(Base, UUIDMixin, TimestampMixin):
    """Role held by a user, optionally expiring"""
    __tablename__ = "user_roles"

    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True)
    assigned_by = Column(String(255))
    expires_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    user = relationship("User", back_populates="role_assignments")
    role = relationship("Role", back_populates="assignments")

    __table_args__ = (
        Index('ix_user_roles_user_id', 'user_id'),
        Index('ix_user_roles_role_id', 'role_id'),
        Index('ix_user_roles_organization_id', 'organization_id'),
        UniqueConstraint('user_id', 'role_id', name='uq_user_role'),
    )

"""
Organization, membership, team and AI configuration models
"""
from sqlalchemy import Column, String, Boolean, Text, JSON, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
from app.models.base import UUIDMixin, TimestampMixin


class Organization(Base, UUIDMixin, TimestampMixin):
    """Tenant boundary"""
    __tablename__ = "organizations"

    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    description = Column(Text)
    size = Column(String(20))  # small, medium, large, enterprise
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(255))

    memberships = relationship("OrganizationMembership", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)
    teams = relationship("Team", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        Index('ix_organizations_slug', 'slug'),
        Index('ix_organizations_is_active', 'is_active'),
    )


class OrganizationMembership(Base, UUIDMixin, TimestampMixin):
    """User membership in an organization, with the coarse legacy role"""
    __tablename__ = "organization_memberships"

    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), default="user", nullable=False)  # user, admin, super_admin
    title = Column(String(255))
    department = Column(String(255))
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_accessed_at = Column(DateTime(timezone=True))

    user = relationship("User", back_populates="memberships")
    organization = relationship("Organization", back_populates="memberships")

    __table_args__ = (
        Index('ix_org_memberships_user_id', 'user_id'),
        Index('ix_org_memberships_organization_id', 'organization_id'),
        UniqueConstraint('user_id', 'organization_id', name='uq_org_membership'),
    )


class Team(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "teams"

    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    created_by = Column(String(255))

    organization = relationship("Organization", back_populates="teams")
    members = relationship("TeamMembership", back_populates="team", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        Index('ix_teams_organization_id', 'organization_id'),
        UniqueConstraint('organization_id', 'name', name='uq_team_name_organization'),
    )


class TeamMembership(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "team_memberships"

    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), default="member", nullable=False)  # member, lead, admin

    team = relationship("Team", back_populates="members")

    __table_args__ = (
        Index('ix_team_memberships_team_id', 'team_id'),
        UniqueConstraint('team_id', 'user_id', name='uq_team_membership'),
    )


class OrganizationAIConfig(Base, UUIDMixin, TimestampMixin):
    """Welcome screen configuration shown by the browser assistant"""
    __tablename__ = "organization_ai_configs"

    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, unique=True)
    welcome_title = Column(String(255))
    welcome_description = Column(Text)
    welcome_messages = Column(JSON, default=list, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    updated_by = Column(String(255))

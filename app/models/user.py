"""
User model

Users are owned by the external identity provider; the primary key is the
provider's opaque user id.
"""
from sqlalchemy import Column, String, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.base import TimestampMixin


class RegistrationSource:
    WEB = "web"
    ZING = "zing"


class User(Base, TimestampMixin):
    """User model"""
    __tablename__ = "users"

    id = Column(String(255), primary_key=True, nullable=False)
    email = Column(String(255), nullable=False)
    name = Column(String(255))
    registration_source = Column(String(20), default=RegistrationSource.WEB, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Organization the dashboard opens by default
    active_organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True)

    memberships = relationship("OrganizationMembership", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    role_assignments = relationship("UserRoleAssignment", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        Index('ix_users_email', 'email'),
    )

    @property
    def is_zing_user(self) -> bool:
        return self.registration_source == RegistrationSource.ZING

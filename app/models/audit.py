"""
Audit log model for tracking security-relevant changes
"""
from sqlalchemy import Column, String, Text, Index
from app.database import Base
from app.models.base import UUIDMixin, TimestampMixin


class AuditLog(Base, UUIDMixin, TimestampMixin):
    """Audit log model"""
    __tablename__ = "audit_logs"

    # Kept as plain columns so entries outlive the rows they describe
    user_id = Column(String(255), nullable=True)
    organization_id = Column(String(36), nullable=True)

    action = Column(String(100), nullable=False)  # e.g., 'role_assigned', 'organization_created'
    resource = Column(String(100))  # e.g., 'role', 'permission', 'organization'
    resource_id = Column(String(255))

    ip_address = Column(String(45))
    user_agent = Column(Text)

    details = Column(Text)  # JSON string with additional details
    status = Column(String(20), nullable=False)  # 'success', 'failure', 'warning'

    __table_args__ = (
        Index('ix_audit_logs_user_id', 'user_id'),
        Index('ix_audit_logs_organization_id', 'organization_id'),
        Index('ix_audit_logs_action', 'action'),
        Index('ix_audit_logs_resource', 'resource'),
        Index('ix_audit_logs_created_at', 'created_at'),
    )

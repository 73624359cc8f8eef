"""
Base classes and mixins for database models
"""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from datetime import datetime, timezone
import uuid


def utcnow() -> datetime:
    """Timezone-aware current time used for expiry and sync bookkeeping"""
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps"""
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class UUIDMixin:
    """Mixin for UUID primary key"""
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()), nullable=False)

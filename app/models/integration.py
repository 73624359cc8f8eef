"""
External data-source connections and the documents synced from them
"""
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Index, UniqueConstraint
from app.database import Base
from app.models.base import UUIDMixin, TimestampMixin


class SyncStatus:
    IDLE = "idle"
    SYNCING = "syncing"
    COMPLETED = "completed"
    FAILED = "failed"


class ExternalConnection(Base, UUIDMixin, TimestampMixin):
    """OAuth connection from an organization to a third-party workspace"""
    __tablename__ = "external_connections"

    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    provider = Column(String(50), nullable=False)  # notion, slack, google, microsoft
    workspace_name = Column(String(255))
    access_token = Column(Text, nullable=False)
    connected_by = Column(String(255))

    sync_status = Column(String(20), default=SyncStatus.IDLE, nullable=False)
    items_synced = Column(Integer, default=0, nullable=False)
    items_total = Column(Integer, default=0, nullable=False)
    last_sync_at = Column(DateTime(timezone=True))
    last_error = Column(Text)

    __table_args__ = (
        Index('ix_external_connections_organization_id', 'organization_id'),
        UniqueConstraint('organization_id', 'provider', name='uq_external_connection_provider'),
    )


class KnowledgeDocument(Base, UUIDMixin, TimestampMixin):
    """Plain-text copy of a page pulled from an external workspace"""
    __tablename__ = "knowledge_documents"

    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    connection_id = Column(String(36), ForeignKey("external_connections.id", ondelete="CASCADE"), nullable=False)
    external_id = Column(String(255), nullable=False)
    title = Column(String(500))
    url = Column(Text)
    content = Column(Text)
    last_edited_at = Column(String(40))

    __table_args__ = (
        Index('ix_knowledge_documents_organization_id', 'organization_id'),
        UniqueConstraint('connection_id', 'external_id', name='uq_knowledge_document_external'),
    )

"""
Services package initialization for Zashboard.
Service classes are constructed per request with an AsyncSession; the
analytics store and sync runner are process-wide and live on app.state.
"""

from .authorization_service import AuthorizationService
from .rbac_service import RBACService
from .org_rbac_service import OrganizationRBACService
from .organization_service import OrganizationService
from .user_service import UserService
from .audit_service import AuditService
from .analytics_service import AnalyticsService
from .analytics_store import AnalyticsStore
from .sync_service import SyncService, SyncTaskRunner

__all__ = [
    "AuthorizationService",
    "RBACService",
    "OrganizationRBACService",
    "OrganizationService",
    "UserService",
    "AuditService",
    "AnalyticsService",
    "AnalyticsStore",
    "SyncService",
    "SyncTaskRunner",
]

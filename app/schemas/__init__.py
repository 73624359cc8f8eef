"""
Schemas package - imports all Pydantic schemas
"""
from app.schemas.base import (
    ActionStatus, TimestampSchema, UUIDSchema, MessageResponse,
    PaginatedResponse, TokenPayload
)
from app.schemas.organization import (
    OrganizationSize, LegacyMemberRole, TeamRole,
    OrganizationBase, OrganizationCreate, OrganizationUpdate, OrganizationResponse, OrganizationSummary,
    MemberAdd, MemberUpdate, MemberResponse,
    TeamCreate, TeamResponse, TeamMemberAdd, TeamMemberResponse,
    AIConfigUpdate, AIConfigResponse
)
from app.schemas.role import (
    RoleBase, RoleCreate, RoleUpdate, RoleResponse,
    PermissionBase, PermissionCreate, PermissionResponse,
    PermissionsByCategoryResponse, RoleWithPermissions,
    RolePermissionAssign, UserRoleAssign, AssignedRoleResponse, UserAccessResponse
)
from app.schemas.user import UserResponse, UserProfileResponse
from app.schemas.audit import AuditLogResponse, UserActivitySummary
from app.schemas.analytics import (
    EventIngest, BatchIngest, IngestResponse, SampleDataAction,
    DeleteOldDataRequest, DeleteOldDataResponse, PrivacyExportRequest
)
from app.schemas.integration import ConnectionCreate, ConnectionResponse, SyncStartedResponse

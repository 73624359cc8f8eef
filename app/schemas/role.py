"""
Role and Permission-related schemas
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from app.schemas.base import UUIDSchema, TimestampSchema

ROLE_NAME_PATTERN = r"^[a-z][a-z0-9_]*$"


class RoleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, pattern=ROLE_NAME_PATTERN)
    display_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    level: int = Field(..., ge=1, le=100)


class RoleCreate(RoleBase):
    pass


class RoleUpdate(BaseModel):
    """Only presentation fields are mutable; name and level are fixed at creation"""
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None


class RoleResponse(UUIDSchema, TimestampSchema):
    name: str
    display_name: str
    description: Optional[str] = None
    level: int
    is_system: bool
    is_active: bool
    organization_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PermissionBase(BaseModel):
    name: Optional[str] = Field(None, max_length=150)
    display_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=50)
    resource: str = Field(..., min_length=1, max_length=100)
    action: str = Field(..., min_length=1, max_length=50)


class PermissionCreate(PermissionBase):
    pass


class PermissionResponse(UUIDSchema, TimestampSchema):
    name: str
    display_name: str
    description: Optional[str] = None
    category: str
    resource: str
    action: str
    is_system: bool
    organization_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PermissionsByCategoryResponse(BaseModel):
    category: str
    permissions: List[PermissionResponse]


class RoleWithPermissions(RoleResponse):
    permissions: List[PermissionResponse] = []


class RolePermissionAssign(BaseModel):
    permission_ids: List[str]


class UserRoleAssign(BaseModel):
    role_id: str
    expires_at: Optional[datetime] = None


class AssignedRoleResponse(BaseModel):
    """Role held by a user together with the assignment metadata"""
    role: RoleResponse
    assigned_by: Optional[str] = None
    assigned_at: datetime
    expires_at: Optional[datetime] = None


class UserAccessResponse(BaseModel):
    """Effective roles and permissions of a user at one scope"""
    user_id: str
    organization_id: Optional[str] = None
    roles: List[RoleResponse]
    permissions: List[str]
    highest_level: int

"""
Organization-related schemas
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from enum import Enum
from app.schemas.base import UUIDSchema, TimestampSchema


class OrganizationSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    ENTERPRISE = "enterprise"


class LegacyMemberRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class TeamRole(str, Enum):
    MEMBER = "member"
    LEAD = "lead"
    ADMIN = "admin"


class OrganizationBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    size: Optional[OrganizationSize] = None


class OrganizationCreate(OrganizationBase):
    owner_user_id: Optional[str] = None  # defaults to the creator


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    size: Optional[OrganizationSize] = None
    is_active: Optional[bool] = None


class OrganizationResponse(OrganizationBase, UUIDSchema, TimestampSchema):
    is_active: bool
    created_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class OrganizationSummary(OrganizationResponse):
    member_count: int = 0
    my_role: Optional[str] = None


class MemberAdd(BaseModel):
    user_id: str
    role: LegacyMemberRole = LegacyMemberRole.USER
    title: Optional[str] = None
    department: Optional[str] = None


class MemberUpdate(BaseModel):
    role: Optional[LegacyMemberRole] = None
    title: Optional[str] = None
    department: Optional[str] = None


class MemberResponse(UUIDSchema):
    user_id: str
    organization_id: str
    role: str
    title: Optional[str] = None
    department: Optional[str] = None
    joined_at: datetime
    last_accessed_at: Optional[datetime] = None
    email: Optional[str] = None
    name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class TeamResponse(UUIDSchema, TimestampSchema):
    organization_id: str
    name: str
    description: Optional[str] = None
    created_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TeamMemberAdd(BaseModel):
    user_id: str
    role: TeamRole = TeamRole.MEMBER


class TeamMemberResponse(UUIDSchema):
    team_id: str
    user_id: str
    role: str

    model_config = ConfigDict(from_attributes=True)


class AIConfigUpdate(BaseModel):
    welcome_title: Optional[str] = Field(None, max_length=255)
    welcome_description: Optional[str] = None
    welcome_messages: Optional[List[str]] = None
    enabled: Optional[bool] = None


class AIConfigResponse(BaseModel):
    organization_id: str
    welcome_title: Optional[str] = None
    welcome_description: Optional[str] = None
    welcome_messages: List[str] = []
    enabled: bool = True
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

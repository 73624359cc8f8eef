"""
User-related schemas
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from app.schemas.base import TimestampSchema
from app.schemas.role import RoleResponse


class UserResponse(TimestampSchema):
    id: str
    email: str
    name: Optional[str] = None
    registration_source: str
    is_active: bool
    active_organization_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserProfileResponse(UserResponse):
    roles: List[RoleResponse] = []
    permissions: List[str] = []
    is_platform_super_admin: bool = False

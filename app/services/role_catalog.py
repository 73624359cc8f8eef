"""
Built-in roles and permissions for the platform and for every organization
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Dict, List, Optional
from app.models import Role, Permission, RolePermission
import logging

logger = logging.getLogger(__name__)

PERMISSION_CATEGORIES = ("users", "analytics", "roles", "permissions", "system", "settings")
PERMISSION_ACTIONS = ("read", "write", "delete", "manage", "export", "assign")

PLATFORM_SUPER_ADMIN = "super_admin"

ORG_SUPER_ADMIN_LEVEL = 100
ORG_ADMIN_LEVEL = 50
ORG_MEMBER_LEVEL = 10

# (resource, action, display name)
PLATFORM_PERMISSIONS = [
    ("users", "read", "View users"),
    ("users", "write", "Edit users"),
    ("users", "delete", "Delete users"),
    ("analytics", "read", "View analytics"),
    ("analytics", "export", "Export analytics data"),
    ("analytics", "delete", "Delete analytics data"),
    ("roles", "read", "View roles"),
    ("roles", "write", "Create and edit roles"),
    ("roles", "delete", "Delete roles"),
    ("roles", "assign", "Assign roles to users"),
    ("permissions", "read", "View permissions"),
    ("permissions", "manage", "Manage permissions"),
    ("system", "read", "View system health"),
    ("system", "manage", "Manage system"),
    ("settings", "read", "View settings"),
    ("settings", "write", "Edit settings"),
]

# name -> (display name, level, granted permission names or "*")
PLATFORM_ROLES = {
    "super_admin": ("Super Admin", 100, "*"),
    "admin": ("Administrator", 90, [
        "users:read", "users:write", "analytics:read", "analytics:export",
        "roles:read", "roles:write", "roles:assign", "permissions:read",
        "system:read", "settings:read", "settings:write",
    ]),
    "analyst": ("Analyst", 50, ["analytics:read", "analytics:export", "system:read"]),
    "viewer": ("Viewer", 10, ["analytics:read"]),
}

# (resource, action, category, display name)
ORG_PERMISSIONS = [
    ("members", "read", "users", "View members"),
    ("members", "write", "users", "Manage members"),
    ("roles", "read", "roles", "View organization roles"),
    ("roles", "write", "roles", "Create and edit organization roles"),
    ("roles", "delete", "roles", "Delete organization roles"),
    ("permissions", "read", "permissions", "View organization permissions"),
    ("permissions", "write", "permissions", "Create organization permissions"),
    ("teams", "read", "users", "View teams"),
    ("teams", "write", "users", "Manage teams"),
    ("ai_config", "read", "settings", "View AI configuration"),
    ("ai_config", "write", "settings", "Edit AI configuration"),
    ("settings", "write", "settings", "Edit organization settings"),
    ("integrations", "read", "settings", "View integrations"),
    ("integrations", "write", "settings", "Manage integrations"),
]

ORG_ROLES = {
    "super_admin": ("Super Admin", ORG_SUPER_ADMIN_LEVEL, "*"),
    "admin": ("Admin", ORG_ADMIN_LEVEL, [
        "org:members:read", "org:members:write", "org:roles:read", "org:permissions:read",
        "org:teams:read", "org:teams:write", "org:ai_config:read", "org:ai_config:write",
        "org:integrations:read", "org:integrations:write",
    ]),
    "member": ("Member", ORG_MEMBER_LEVEL, [
        "org:members:read", "org:teams:read", "org:ai_config:read",
    ]),
}


def permission_name(resource: str, action: str, organization_scoped: bool = False) -> str:
    name = f"{resource}:{action}"
    return f"org:{name}" if organization_scoped else name


def _grant(db: AsyncSession, role: Role, grants, permissions: Dict[str, Permission]) -> None:
    names = list(permissions) if grants == "*" else grants
    for name in names:
        db.add(RolePermission(role_id=role.id, permission_id=permissions[name].id))


async def seed_organization_rbac(
    db: AsyncSession,
    organization_id: str,
    created_by: Optional[str] = None
) -> Dict[str, Role]:
    """Create the system roles and permission catalogue of a new organization"""
    permissions: Dict[str, Permission] = {}
    for resource, action, category, display_name in ORG_PERMISSIONS:
        permission = Permission(
            name=permission_name(resource, action, organization_scoped=True),
            display_name=display_name,
            category=category,
            resource=resource,
            action=action,
            is_system=True,
            organization_id=organization_id,
        )
        db.add(permission)
        permissions[permission.name] = permission
    await db.flush()

    roles: Dict[str, Role] = {}
    for name, (display_name, level, grants) in ORG_ROLES.items():
        role = Role(
            name=name,
            display_name=display_name,
            level=level,
            is_system=True,
            is_active=True,
            organization_id=organization_id,
            created_by=created_by,
        )
        db.add(role)
        roles[name] = role
    await db.flush()

    for name, (_, _, grants) in ORG_ROLES.items():
        _grant(db, roles[name], grants, permissions)
    await db.flush()

    logger.info(f"Seeded {len(roles)} roles and {len(permissions)} permissions for organization {organization_id}")
    return roles


async def seed_platform_rbac(db: AsyncSession) -> List[str]:
    """Create missing platform roles and permissions; returns names of created roles"""
    result = await db.execute(select(Permission).where(Permission.organization_id.is_(None)))
    permissions = {p.name: p for p in result.scalars().all()}

    for resource, action, display_name in PLATFORM_PERMISSIONS:
        name = permission_name(resource, action)
        if name in permissions:
            continue
        permission = Permission(
            name=name,
            display_name=display_name,
            category=resource,
            resource=resource,
            action=action,
            is_system=True,
        )
        db.add(permission)
        permissions[name] = permission
    await db.flush()

    result = await db.execute(select(Role).where(Role.organization_id.is_(None)))
    existing = {r.name for r in result.scalars().all()}

    created = []
    for name, (display_name, level, grants) in PLATFORM_ROLES.items():
        if name in existing:
            continue
        role = Role(name=name, display_name=display_name, level=level, is_system=True, is_active=True)
        db.add(role)
        await db.flush()
        _grant(db, role, grants, permissions)
        created.append(name)
    await db.flush()

    if created:
        logger.info(f"Seeded platform roles: {', '.join(created)}")
    return created

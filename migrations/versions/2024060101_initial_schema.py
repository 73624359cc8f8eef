"""
Initial database schema creation.
This migration creates all tables for the Zashboard service.
Revision ID: 2024060101
Revises:
Create Date: 2024-06-01 01:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic
revision = '2024060101'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Organizations table
    op.create_table(
        'organizations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('size', sa.String(20), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.String(255), nullable=True),
        *_timestamps()
    )
    op.create_index('ix_organizations_slug', 'organizations', ['slug'])
    op.create_index('ix_organizations_is_active', 'organizations', ['is_active'])

    # Users table, keyed by the identity provider's user id
    op.create_table(
        'users',
        sa.Column('id', sa.String(255), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('registration_source', sa.String(20), nullable=False, server_default='web'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            'active_organization_id', sa.String(36),
            sa.ForeignKey('organizations.id', ondelete='SET NULL'), nullable=True
        ),
        *_timestamps()
    )
    op.create_index('ix_users_email', 'users', ['email'])

    # Organization memberships table
    op.create_table(
        'organization_memberships',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'organization_id', sa.String(36),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),
        sa.Column('title', sa.String(255), nullable=True),
        sa.Column('department', sa.String(255), nullable=True),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('last_accessed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'organization_id', name='uq_org_membership')
    )
    op.create_index('ix_org_memberships_user_id', 'organization_memberships', ['user_id'])
    op.create_index('ix_org_memberships_organization_id', 'organization_memberships', ['organization_id'])

    # Teams table
    op.create_table(
        'teams',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column(
            'organization_id', sa.String(36),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('organization_id', 'name', name='uq_team_name_organization')
    )
    op.create_index('ix_teams_organization_id', 'teams', ['organization_id'])

    # Team memberships table
    op.create_table(
        'team_memberships',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('team_id', sa.String(36), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(255), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='member'),
        *_timestamps(),
        sa.UniqueConstraint('team_id', 'user_id', name='uq_team_membership')
    )
    op.create_index('ix_team_memberships_team_id', 'team_memberships', ['team_id'])

    # Assistant welcome screen configuration
    op.create_table(
        'organization_ai_configs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column(
            'organization_id', sa.String(36),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, unique=True
        ),
        sa.Column('welcome_title', sa.String(255), nullable=True),
        sa.Column('welcome_description', sa.Text(), nullable=True),
        sa.Column('welcome_messages', sa.JSON(), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('updated_by', sa.String(255), nullable=True),
        *_timestamps()
    )

    # Roles table; organization_id NULL means platform scope
    op.create_table(
        'roles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_system', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.String(255), nullable=True),
        sa.Column(
            'organization_id', sa.String(36),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=True
        ),
        *_timestamps()
    )
    op.create_index('ix_roles_organization_id', 'roles', ['organization_id'])
    op.create_index('ix_roles_is_active', 'roles', ['is_active'])
    op.create_index('ix_roles_level', 'roles', ['level'])

    # Permissions table
    op.create_table(
        'permissions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('resource', sa.String(100), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('is_system', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            'organization_id', sa.String(36),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=True
        ),
        *_timestamps()
    )
    op.create_index('ix_permissions_organization_id', 'permissions', ['organization_id'])
    op.create_index('ix_permissions_name', 'permissions', ['name'])
    op.create_index('ix_permissions_resource_action', 'permissions', ['resource', 'action'])

    # Role permissions table
    op.create_table(
        'role_permissions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('role_id', sa.String(36), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'permission_id', sa.String(36),
            sa.ForeignKey('permissions.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('granted_by', sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('role_id', 'permission_id', name='uq_role_permission')
    )
    op.create_index('ix_role_permissions_role_id', 'role_permissions', ['role_id'])
    op.create_index('ix_role_permissions_permission_id', 'role_permissions', ['permission_id'])

    # User role assignments table
    op.create_table(
        'user_roles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', sa.String(36), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'organization_id', sa.String(36),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=True
        ),
        sa.Column('assigned_by', sa.String(255), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'role_id', name='uq_user_role')
    )
    op.create_index('ix_user_roles_user_id', 'user_roles', ['user_id'])
    op.create_index('ix_user_roles_role_id', 'user_roles', ['role_id'])
    op.create_index('ix_user_roles_organization_id', 'user_roles', ['organization_id'])

    # Audit logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=True),
        sa.Column('organization_id', sa.String(36), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('resource', sa.String(100), nullable=True),
        sa.Column('resource_id', sa.String(255), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        *_timestamps()
    )
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_organization_id', 'audit_logs', ['organization_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_resource', 'audit_logs', ['resource'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])

    # External connections table
    op.create_table(
        'external_connections',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column(
            'organization_id', sa.String(36),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('provider', sa.String(50), nullable=False),
        sa.Column('workspace_name', sa.String(255), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('connected_by', sa.String(255), nullable=True),
        sa.Column('sync_status', sa.String(20), nullable=False, server_default='idle'),
        sa.Column('items_synced', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('items_total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('organization_id', 'provider', name='uq_external_connection_provider')
    )
    op.create_index('ix_external_connections_organization_id', 'external_connections', ['organization_id'])

    # Knowledge documents table
    op.create_table(
        'knowledge_documents',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column(
            'organization_id', sa.String(36),
            sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column(
            'connection_id', sa.String(36),
            sa.ForeignKey('external_connections.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('external_id', sa.String(255), nullable=False),
        sa.Column('title', sa.String(500), nullable=True),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('last_edited_at', sa.String(40), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('connection_id', 'external_id', name='uq_knowledge_document_external')
    )
    op.create_index('ix_knowledge_documents_organization_id', 'knowledge_documents', ['organization_id'])


def downgrade() -> None:
    op.drop_table('knowledge_documents')
    op.drop_table('external_connections')
    op.drop_table('audit_logs')
    op.drop_table('user_roles')
    op.drop_table('role_permissions')
    op.drop_table('permissions')
    op.drop_table('roles')
    op.drop_table('organization_ai_configs')
    op.drop_table('team_memberships')
    op.drop_table('teams')
    op.drop_table('organization_memberships')
    op.drop_table('users')
    op.drop_table('organizations')

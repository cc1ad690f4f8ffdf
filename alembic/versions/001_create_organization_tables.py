"""Create organization tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create organizations, owned addresses/contacts and memberships."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    op.create_table(
        'organizations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('uuid_generate_v4()')),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('legal_code', sa.String(255), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        sa.Column('tags', postgresql.ARRAY(sa.Text), nullable=False, server_default='{}'),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('updated_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('LENGTH(name) > 0', name='organization_name_not_empty'),
        sa.CheckConstraint("status IN ('active', 'inactive', 'blocked')", name='organization_status_valid'),
    )
    op.create_index('ix_organizations_tenant_id', 'organizations', ['tenant_id'])
    op.create_index('ix_organizations_deleted_at', 'organizations', ['deleted_at'])
    op.create_index('idx_organizations_tags', 'organizations', ['tags'], postgresql_using='gin')
    # Serves the default listing: live rows, newest first.
    op.create_index(
        'idx_organizations_live_created',
        'organizations',
        [sa.text('created_at DESC'), 'id'],
        postgresql_where=sa.text('deleted_at IS NULL'),
    )

    op.create_table(
        'org_addresses',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.Column('type', sa.String(16), nullable=False),
        sa.Column('country', sa.String(255), nullable=False, server_default=''),
        sa.Column('region', sa.String(255), nullable=False, server_default=''),
        sa.Column('city', sa.String(255), nullable=False, server_default=''),
        sa.Column('street', sa.String(512), nullable=False, server_default=''),
        sa.Column('zip', sa.String(32), nullable=False, server_default=''),
        sa.CheckConstraint("type IN ('legal', 'actual', 'shipping')", name='org_address_type_valid'),
    )
    op.create_index('ix_org_addresses_organization_id', 'org_addresses', ['organization_id'])

    op.create_table(
        'org_contacts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer, nullable=False, server_default='0'),
        sa.Column('type', sa.String(16), nullable=False),
        sa.Column('value', sa.String(512), nullable=False),
        sa.Column('is_primary', sa.Boolean, nullable=False, server_default='false'),
        sa.CheckConstraint("type IN ('email', 'phone')", name='org_contact_type_valid'),
    )
    op.create_index('ix_org_contacts_organization_id', 'org_contacts', ['organization_id'])

    op.create_table(
        'org_members',
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.PrimaryKeyConstraint('user_id', 'org_id'),
    )
    op.create_index('ix_org_members_org_id', 'org_members', ['org_id'])


def downgrade() -> None:
    """Drop organization tables."""
    op.drop_table('org_members')
    op.drop_table('org_contacts')
    op.drop_table('org_addresses')
    op.drop_table('organizations')

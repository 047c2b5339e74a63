"""initial EMI locker schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-16 00:00:00.000000

This migration creates the complete EMI locker schema from scratch:
- shops: tenants, with settings and the denormalized statistics snapshot
- users: superadmins, shop owners and EMI customers (with device mirror)
- session_tokens: opaque bearer sessions (only the SHA-256 hash is stored)
- devices: one enrolled handset per customer, lock state is authoritative here
- activity_logs: append-only audit trail
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # shops: tenants. owner_id is a plain integer (users.shop_id points back here)
    # ============================================================================
    op.create_table(
        'shops',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('owner_id', sa.Integer(), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('alternate_phone', sa.String(length=20), nullable=True),
        sa.Column('street', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=100), nullable=True),
        sa.Column('zip_code', sa.String(length=20), nullable=True),
        sa.Column('country', sa.String(length=100), nullable=False, server_default='India'),
        sa.Column('registration_number', sa.String(length=64), nullable=True),
        sa.Column('gst_number', sa.String(length=32), nullable=True),
        sa.Column('pan_number', sa.String(length=16), nullable=True),
        sa.Column('business_type', sa.String(length=32), nullable=False, server_default='electronics'),
        sa.Column('auto_lock_on_default', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('grace_period_days', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('notification_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('allow_bulk_operations', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('stat_total_users', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stat_active_users', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stat_locked_devices', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stat_total_revenue_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stats_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shops_shop_code', 'shops', ['shop_code'], unique=True)
    op.create_index('ix_shops_owner_id', 'shops', ['owner_id'])
    op.create_index('ix_shops_is_active', 'shops', ['is_active'])

    # ============================================================================
    # users
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='user'),
        sa.Column('shop_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('device_id', sa.String(length=128), nullable=True),
        sa.Column('imei_number', sa.String(length=15), nullable=True),
        sa.Column('street', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=100), nullable=True),
        sa.Column('zip_code', sa.String(length=20), nullable=True),
        sa.Column('country', sa.String(length=100), nullable=True),
        sa.Column('emi_total_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('emi_paid_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('emi_remaining_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('emi_monthly_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('emi_due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('emi_next_due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('emi_status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('device_is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('device_last_locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('device_last_unlocked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('device_lock_reason', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_shop_id', 'users', ['shop_id'])
    op.create_index('ix_users_phone', 'users', ['phone'], unique=True)
    op.create_index('ix_users_device_is_locked', 'users', ['device_is_locked'])
    op.create_index('ix_users_is_active', 'users', ['is_active'])
    op.create_index('ix_users_shop_role', 'users', ['shop_id', 'role'])

    # ============================================================================
    # session_tokens
    # ============================================================================
    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])

    # ============================================================================
    # devices: one per customer; lock state lives here
    # ============================================================================
    op.create_table(
        'devices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('device_id', sa.String(length=128), nullable=False),
        sa.Column('imei_number', sa.String(length=15), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('brand', sa.String(length=64), nullable=True),
        sa.Column('model', sa.String(length=64), nullable=True),
        sa.Column('android_version', sa.String(length=32), nullable=True),
        sa.Column('app_version', sa.String(length=32), nullable=True),
        sa.Column('last_latitude', sa.Float(), nullable=True),
        sa.Column('last_longitude', sa.Float(), nullable=True),
        sa.Column('last_location_address', sa.String(length=255), nullable=True),
        sa.Column('last_location_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('unlocked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('lock_reason', sa.String(length=32), nullable=True),
        sa.Column('locked_by_id', sa.Integer(), nullable=True),
        sa.Column('is_online', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_seen', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_heartbeat', sa.DateTime(timezone=True), nullable=True),
        sa.Column('connection_type', sa.String(length=16), nullable=False, server_default='offline'),
        sa.Column('app_installed', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('app_tampered', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('root_detected', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_security_check', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_devices_device_id', 'devices', ['device_id'], unique=True)
    op.create_index('ix_devices_imei_number', 'devices', ['imei_number'], unique=True)
    op.create_index('ix_devices_shop_id', 'devices', ['shop_id'])
    op.create_index('ix_devices_is_locked', 'devices', ['is_locked'])
    op.create_index('ix_devices_shop_locked', 'devices', ['shop_id', 'is_locked'])

    # ============================================================================
    # activity_logs: append-only; references are plain integers so entries
    # outlive the rows they describe
    # ============================================================================
    op.create_table(
        'activity_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('shop_id', sa.Integer(), nullable=True),
        sa.Column('device_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(length=16), nullable=False),
        sa.Column('severity', sa.String(length=16), nullable=False, server_default='low'),
        sa.Column('performed_by_id', sa.Integer(), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_activity_logs_device_id', 'activity_logs', ['device_id'])
    op.create_index('ix_activity_logs_action', 'activity_logs', ['action'])
    op.create_index('ix_activity_logs_severity', 'activity_logs', ['severity'])
    op.create_index('ix_activity_logs_performed_by_id', 'activity_logs', ['performed_by_id'])
    op.create_index('ix_activity_logs_created_at', 'activity_logs', ['created_at'])
    op.create_index('ix_activity_logs_shop_created', 'activity_logs', ['shop_id', 'created_at'])
    op.create_index('ix_activity_logs_user_created', 'activity_logs', ['user_id', 'created_at'])
    op.create_index('ix_activity_logs_category_created', 'activity_logs', ['category', 'created_at'])


def downgrade():
    op.drop_table('activity_logs')
    op.drop_table('devices')
    op.drop_table('session_tokens')
    op.drop_table('users')
    op.drop_table('shops')

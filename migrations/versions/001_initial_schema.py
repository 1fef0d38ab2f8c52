"""initial admin security schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    is_sqlite = bind.dialect.name == 'sqlite'

    timestamp_default = sa.text("(datetime('now'))") if is_sqlite else sa.text('now()')

    # ------------------------------------------------------------------
    # admin_users
    # ------------------------------------------------------------------
    op.create_table(
        'admin_users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('twofa_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('twofa_secret', sa.Text(), nullable=True),
        sa.Column('twofa_verified_at', sa.DateTime(), nullable=True),
        sa.Column('force_logout_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=timestamp_default),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=timestamp_default),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_admin_users_user_id', 'admin_users', ['user_id'], unique=True)

    # ------------------------------------------------------------------
    # admin_audit_logs (append-only)
    # ------------------------------------------------------------------
    op.create_table(
        'admin_audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('log_id', sa.String(length=36), nullable=False),
        sa.Column('admin_id', sa.String(length=36), nullable=False),
        sa.Column('admin_email', sa.String(length=255), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('resource_type', sa.String(length=100), nullable=False),
        sa.Column('outcome', sa.String(length=20), nullable=False),
        sa.Column('resource_id', sa.String(length=255), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('request_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=timestamp_default),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_admin_audit_logs_id', 'admin_audit_logs', ['id'])
    op.create_index('ix_admin_audit_logs_log_id', 'admin_audit_logs', ['log_id'], unique=True)
    op.create_index('ix_admin_audit_logs_admin_id', 'admin_audit_logs', ['admin_id'])
    op.create_index('ix_admin_audit_logs_action', 'admin_audit_logs', ['action'])
    op.create_index('ix_admin_audit_logs_outcome', 'admin_audit_logs', ['outcome'])
    op.create_index('ix_admin_audit_logs_created_at', 'admin_audit_logs', ['created_at'])

    # ------------------------------------------------------------------
    # admin_login_history
    # ------------------------------------------------------------------
    op.create_table(
        'admin_login_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('admin_id', sa.String(length=36), nullable=False),
        sa.Column('admin_email', sa.String(length=255), nullable=False),
        sa.Column('login_at', sa.DateTime(), nullable=False, server_default=timestamp_default),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_admin_login_history_id', 'admin_login_history', ['id'])
    op.create_index('ix_admin_login_history_admin_id', 'admin_login_history', ['admin_id'])
    op.create_index('ix_admin_login_history_login_at', 'admin_login_history', ['login_at'])

    # ------------------------------------------------------------------
    # twofa_attempts (one row per admin)
    # ------------------------------------------------------------------
    op.create_table(
        'twofa_attempts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('admin_id', sa.String(length=36), nullable=False),
        sa.Column('attempt_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_attempt_at', sa.DateTime(), nullable=True),
        sa.Column('locked_until', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_twofa_attempts_id', 'twofa_attempts', ['id'])
    op.create_index('ix_twofa_attempts_admin_id', 'twofa_attempts', ['admin_id'], unique=True)

    # ------------------------------------------------------------------
    # system_settings
    # ------------------------------------------------------------------
    op.create_table(
        'system_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('setting_key', sa.String(length=100), nullable=False),
        sa.Column('setting_value', sa.JSON(), nullable=True),
        sa.Column('setting_type', sa.String(length=20), nullable=False, server_default='string'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_sensitive', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_by', sa.String(length=36), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=timestamp_default),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_system_settings_id', 'system_settings', ['id'])
    op.create_index('ix_system_settings_setting_key', 'system_settings', ['setting_key'], unique=True)

    # Maintenance mode starts switched off
    settings_table = sa.table(
        'system_settings',
        sa.column('setting_key', sa.String),
        sa.column('setting_value', sa.JSON),
        sa.column('setting_type', sa.String),
        sa.column('description', sa.Text),
        sa.column('is_sensitive', sa.Boolean),
    )
    op.bulk_insert(settings_table, [
        {
            'setting_key': 'maintenance_mode',
            'setting_value': False,
            'setting_type': 'boolean',
            'description': 'Reject public traffic with 503 while enabled',
            'is_sensitive': False,
        },
        {
            'setting_key': 'maintenance_message',
            'setting_value': 'We are currently performing maintenance. Please check back soon.',
            'setting_type': 'string',
            'description': 'Message returned to public callers during maintenance',
            'is_sensitive': False,
        },
    ])


def downgrade() -> None:
    op.drop_index('ix_system_settings_setting_key', table_name='system_settings')
    op.drop_index('ix_system_settings_id', table_name='system_settings')
    op.drop_table('system_settings')

    op.drop_index('ix_twofa_attempts_admin_id', table_name='twofa_attempts')
    op.drop_index('ix_twofa_attempts_id', table_name='twofa_attempts')
    op.drop_table('twofa_attempts')

    op.drop_index('ix_admin_login_history_login_at', table_name='admin_login_history')
    op.drop_index('ix_admin_login_history_admin_id', table_name='admin_login_history')
    op.drop_index('ix_admin_login_history_id', table_name='admin_login_history')
    op.drop_table('admin_login_history')

    op.drop_index('ix_admin_audit_logs_created_at', table_name='admin_audit_logs')
    op.drop_index('ix_admin_audit_logs_outcome', table_name='admin_audit_logs')
    op.drop_index('ix_admin_audit_logs_action', table_name='admin_audit_logs')
    op.drop_index('ix_admin_audit_logs_admin_id', table_name='admin_audit_logs')
    op.drop_index('ix_admin_audit_logs_log_id', table_name='admin_audit_logs')
    op.drop_index('ix_admin_audit_logs_id', table_name='admin_audit_logs')
    op.drop_table('admin_audit_logs')

    op.drop_index('ix_admin_users_user_id', table_name='admin_users')
    op.drop_table('admin_users')

"""Initial database schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates all tables for the Field Service CRM.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

ID = sa.String(36)
JSONType = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _timestamps(updated=True):
    columns = [sa.Column('created_at', sa.DateTime(), server_default=sa.func.now())]
    if updated:
        columns.append(sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()))
    return columns


def upgrade() -> None:
    # Accounts & users
    op.create_table('accounts',
        sa.Column('id', ID, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='UTC'),
        sa.Column('settings', JSONType),
        sa.Column('invoice_sequence', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )

    op.create_table('users',
        sa.Column('id', ID, nullable=False),
        sa.Column('account_id', ID, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255)),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.String(50), nullable=False, server_default='tech'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('last_login', sa.DateTime()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_account', 'users', ['account_id'])

    # CRM
    op.create_table('contacts',
        sa.Column('id', ID, nullable=False),
        sa.Column('account_id', ID, nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100)),
        sa.Column('email', sa.String(255)),
        sa.Column('phone', sa.String(50)),
        sa.Column('phone_normalized', sa.String(20)),
        sa.Column('address', sa.Text()),
        sa.Column('latitude', sa.Float()),
        sa.Column('longitude', sa.Float()),
        sa.Column('lead_source', sa.String(100)),
        sa.Column('notes', sa.Text()),
        sa.Column('extra_data', JSONType),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_contacts_account', 'contacts', ['account_id'])
    op.create_index('ix_contacts_phone_normalized', 'contacts', ['phone_normalized'])
    op.create_index('ix_contacts_lead_source', 'contacts', ['lead_source'])

    op.create_table('jobs',
        sa.Column('id', ID, nullable=False),
        sa.Column('account_id', ID, nullable=False),
        sa.Column('contact_id', ID),
        sa.Column('tech_assigned_id', ID),
        sa.Column('requested_by', ID),
        sa.Column('title', sa.String(255)),
        sa.Column('description', sa.Text()),
        sa.Column('status', sa.String(50), nullable=False, server_default='lead'),
        sa.Column('request_status', sa.String(20)),
        sa.Column('scheduled_start', sa.DateTime()),
        sa.Column('scheduled_end', sa.DateTime()),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('total_amount', sa.Float(), server_default='0'),
        sa.Column('latitude', sa.Float()),
        sa.Column('longitude', sa.Float()),
        sa.Column('notes', sa.Text()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id']),
        sa.ForeignKeyConstraint(['tech_assigned_id'], ['users.id']),
        sa.ForeignKeyConstraint(['requested_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_jobs_account', 'jobs', ['account_id'])
    op.create_index('ix_jobs_contact', 'jobs', ['contact_id'])
    op.create_index('ix_jobs_tech_assigned', 'jobs', ['tech_assigned_id'])
    op.create_index('ix_jobs_status', 'jobs', ['status'])
    op.create_index('ix_jobs_request_status', 'jobs', ['request_status'])
    op.create_index('ix_jobs_scheduled_start', 'jobs', ['scheduled_start'])

    # Scheduling
    op.create_table('resources',
        sa.Column('id', ID, nullable=False),
        sa.Column('account_id', ID, nullable=False),
        sa.Column('resource_type', sa.String(20), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('user_id', ID),
        sa.Column('extra_data', JSONType),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'resource_type', 'name', name='uq_resources_account_type_name')
    )
    op.create_index('ix_resources_account', 'resources', ['account_id'])
    op.create_index('ix_resources_type', 'resources', ['resource_type'])

    op.create_table('resource_assignments',
        sa.Column('id', ID, nullable=False),
        sa.Column('resource_id', ID, nullable=False),
        sa.Column('job_id', ID, nullable=False),
        sa.Column('account_id', ID, nullable=False),
        sa.Column('assigned_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('assigned_by', ID),
        sa.Column('notes', sa.Text()),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.ForeignKeyConstraint(['assigned_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('resource_id', 'job_id', name='uq_resource_assignments_resource_job')
    )
    op.create_index('ix_resource_assignments_resource', 'resource_assignments', ['resource_id'])
    op.create_index('ix_resource_assignments_job', 'resource_assignments', ['job_id'])
    op.create_index('ix_resource_assignments_account', 'resource_assignments', ['account_id'])

    op.create_table('working_hours',
        sa.Column('id', ID, nullable=False),
        sa.Column('resource_id', ID, nullable=False),
        sa.Column('account_id', ID, nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('resource_id', 'day_of_week', name='uq_working_hours_resource_day'),
        sa.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_working_hours_day_of_week'),
        sa.CheckConstraint('start_time < end_time', name='ck_working_hours_time_order')
    )
    op.create_index('ix_working_hours_resource', 'working_hours', ['resource_id'])

    op.create_table('geofences',
        sa.Column('id', ID, nullable=False),
        sa.Column('account_id', ID, nullable=False),
        sa.Column('job_id', ID, nullable=False),
        sa.Column('center_latitude', sa.Float(), nullable=False),
        sa.Column('center_longitude', sa.Float(), nullable=False),
        sa.Column('radius_meters', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_id')
    )
    op.create_index('ix_geofences_account', 'geofences', ['account_id'])

    op.create_table('calendar_events',
        sa.Column('id', ID, nullable=False),
        sa.Column('account_id', ID, nullable=False),
        sa.Column('user_id', ID, nullable=False),
        sa.Column('job_id', ID),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('location', sa.String(500)),
        sa.Column('all_day', sa.Boolean(), server_default=sa.false()),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_calendar_events_account', 'calendar_events', ['account_id'])
    op.create_index('ix_calendar_events_user_start', 'calendar_events', ['user_id', 'start_time'])

    # Inbox
    op.create_table('conversations',
        sa.Column('id', ID, nullable=False),
        sa.Column('account_id', ID, nullable=False),
        sa.Column('contact_id', ID),
        sa.Column('subject', sa.String(255)),
        sa.Column('channel', sa.String(20), server_default='sms'),
        sa.Column('status', sa.String(20), nullable=False, server_default='open'),
        sa.Column('assigned_to', ID),
        sa.Column('sla_target_minutes', sa.Integer()),
        sa.Column('sla_status', sa.String(20)),
        sa.Column('sla_breached_at', sa.DateTime()),
        sa.Column('last_message_at', sa.DateTime()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id']),
        sa.ForeignKeyConstraint(['assigned_to'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_conversations_account', 'conversations', ['account_id'])
    op.create_index('ix_conversations_contact', 'conversations', ['contact_id'])
    op.create_index('ix_conversations_status', 'conversations', ['status'])
    op.create_index('ix_conversations_sla_status', 'conversations', ['sla_status'])

    # Inventory
    op.create_table('inventory_locations',
        sa.Column('id', ID, nullable=False),
        sa.Column('account_id', ID, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('address', sa.Text()),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_inventory_locations_account', 'inventory_locations', ['account_id'])

    # Billing
    op.create_table('estimates',
        sa.Column('id', ID, nullable=False),
        sa.Column('account_id', ID, nullable=False),
        sa.Column('contact_id', ID),
        sa.Column('job_id', ID),
        sa.Column('estimate_number', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255)),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('line_items', JSONType),
        sa.Column('subtotal', sa.Float(), server_default='0'),
        sa.Column('tax_rate', sa.Float(), server_default='0'),
        sa.Column('tax_amount', sa.Float(), server_default='0'),
        sa.Column('total_amount', sa.Float(), server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('parent_estimate_id', ID),
        sa.Column('viewed_at', sa.DateTime()),
        sa.Column('created_by', ID),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id']),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id']),
        sa.ForeignKeyConstraint(['parent_estimate_id'], ['estimates.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_estimates_account', 'estimates', ['account_id'])
    op.create_index('ix_estimates_parent', 'estimates', ['parent_estimate_id'])

    op.create_table('invoices',
        sa.Column('id', ID, nullable=False),
        sa.Column('account_id', ID, nullable=False),
        sa.Column('job_id', ID),
        sa.Column('contact_id', ID),
        sa.Column('invoice_number', sa.String(50), nullable=False),
        sa.Column('amount', sa.Float(), server_default='0'),
        sa.Column('tax_amount', sa.Float(), server_default='0'),
        sa.Column('total_amount', sa.Float(), server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('due_date', sa.Date()),
        sa.Column('paid_at', sa.DateTime()),
        sa.Column('notes', sa.Text()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id']),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'invoice_number', name='uq_invoices_account_number')
    )
    op.create_index('ix_invoices_account', 'invoices', ['account_id'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])

    # Event log & notifications
    op.create_table('event_log',
        sa.Column('id', ID, nullable=False),
        sa.Column('account_id', ID),
        sa.Column('timestamp', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('actor_type', sa.String(50)),
        sa.Column('actor_id', ID),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', ID, nullable=False),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('extra_data', JSONType),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_event_log_account', 'event_log', ['account_id'])
    op.create_index('ix_event_log_entity', 'event_log', ['entity_type', 'entity_id'])
    op.create_index('ix_event_log_timestamp', 'event_log', ['timestamp'])

    op.create_table('notifications',
        sa.Column('id', ID, nullable=False),
        sa.Column('account_id', ID, nullable=False),
        sa.Column('user_id', ID),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text()),
        sa.Column('notification_type', sa.String(50), server_default='info'),
        sa.Column('priority', sa.String(20), server_default='normal'),
        sa.Column('entity_type', sa.String(50)),
        sa.Column('entity_id', ID),
        sa.Column('is_read', sa.Boolean(), server_default=sa.false()),
        sa.Column('read_at', sa.DateTime()),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_account', 'notifications', ['account_id'])
    op.create_index('ix_notifications_user', 'notifications', ['user_id'])
    op.create_index('ix_notifications_is_read', 'notifications', ['is_read'])


def downgrade() -> None:
    for table in (
        'notifications', 'event_log', 'invoices', 'estimates', 'inventory_locations',
        'conversations', 'calendar_events', 'geofences', 'working_hours',
        'resource_assignments', 'resources', 'jobs', 'contacts', 'users', 'accounts',
    ):
        op.drop_table(table)

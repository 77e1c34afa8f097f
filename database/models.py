"""
SQLAlchemy models for the Field Service CRM.
Every tenant-owned table carries account_id; handlers filter on it.

Timestamps are stored as naive UTC. Conversion to an account's local time
happens in the services that need it (working hours, availability).
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime, Date, Time,
    ForeignKey, JSON, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from database.connection import Base
from validators import format_phone_number

# Portable column types: UUID strings and JSONB on PostgreSQL, JSON elsewhere
ID = String(36)
JSONType = JSON().with_variant(JSONB(), 'postgresql')


def generate_uuid():
    """Generate a new UUID."""
    return str(uuid.uuid4())


def utcnow():
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


# =============================================================================
# ACCOUNTS & USERS
# =============================================================================

class Account(Base):
    """Tenant boundary. All CRM rows belong to exactly one account."""
    __tablename__ = 'accounts'

    id = Column(ID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    timezone = Column(String(64), default='UTC', nullable=False)
    settings = Column(JSONType, default=dict)
    # last invoice number issued; deleted invoices never give theirs back
    invoice_sequence = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    users = relationship("User", back_populates="account")

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'timezone': self.timezone,
            'settings': self.settings or {},
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class User(Base):
    """Account members. role is one of auth.ROLES."""
    __tablename__ = 'users'

    id = Column(ID, primary_key=True, default=generate_uuid)
    account_id = Column(ID, ForeignKey('accounts.id'), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    full_name = Column(String(255))
    password_hash = Column(String(255), nullable=False)
    role = Column(String(50), default='tech', nullable=False)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    account = relationship("Account", back_populates="users")

    __table_args__ = (
        Index('ix_users_email', 'email'),
        Index('ix_users_account', 'account_id'),
    )

    def to_dict(self, include_sensitive=False):
        data = {
            'id': self.id,
            'account_id': self.account_id,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'is_active': self.is_active,
            'last_login': _iso(self.last_login),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_sensitive:
            data['password_hash'] = self.password_hash
        return data


# =============================================================================
# CRM - CONTACTS & JOBS
# =============================================================================

class Contact(Base):
    """Customer records."""
    __tablename__ = 'contacts'

    id = Column(ID, primary_key=True, default=generate_uuid)
    account_id = Column(ID, ForeignKey('accounts.id'), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100))
    email = Column(String(255))
    phone = Column(String(50))
    phone_normalized = Column(String(20))
    address = Column(Text)
    latitude = Column(Float)
    longitude = Column(Float)
    lead_source = Column(String(100))
    notes = Column(Text)
    extra_data = Column(JSONType, default=dict)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    jobs = relationship("Job", back_populates="contact")

    __table_args__ = (
        Index('ix_contacts_account', 'account_id'),
        Index('ix_contacts_phone_normalized', 'phone_normalized'),
        Index('ix_contacts_lead_source', 'lead_source'),
    )

    @property
    def full_name(self):
        return ' '.join(part for part in (self.first_name, self.last_name) if part)

    def to_dict(self):
        return {
            'id': self.id,
            'account_id': self.account_id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'email': self.email,
            'phone': self.phone,
            'phone_normalized': self.phone_normalized,
            'phone_display': format_phone_number(self.phone),
            'address': self.address,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'lead_source': self.lead_source,
            'notes': self.notes,
            'metadata': self.extra_data or {},
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class Job(Base):
    """Work orders. A job is schedulable once both scheduled times are set."""
    __tablename__ = 'jobs'

    id = Column(ID, primary_key=True, default=generate_uuid)
    account_id = Column(ID, ForeignKey('accounts.id'), nullable=False)
    contact_id = Column(ID, ForeignKey('contacts.id'))
    tech_assigned_id = Column(ID, ForeignKey('users.id'))
    requested_by = Column(ID, ForeignKey('users.id'))
    title = Column(String(255))
    description = Column(Text)
    status = Column(String(50), default='lead', nullable=False)  # lead, scheduled, en_route, in_progress, completed, paid, cancelled
    request_status = Column(String(20))  # pending, approved, rejected
    scheduled_start = Column(DateTime)
    scheduled_end = Column(DateTime)
    completed_at = Column(DateTime)
    total_amount = Column(Float, default=0)
    latitude = Column(Float)
    longitude = Column(Float)
    notes = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    contact = relationship("Contact", back_populates="jobs")
    tech = relationship("User", foreign_keys=[tech_assigned_id])

    __table_args__ = (
        Index('ix_jobs_account', 'account_id'),
        Index('ix_jobs_contact', 'contact_id'),
        Index('ix_jobs_tech_assigned', 'tech_assigned_id'),
        Index('ix_jobs_status', 'status'),
        Index('ix_jobs_request_status', 'request_status'),
        Index('ix_jobs_scheduled_start', 'scheduled_start'),
    )

    @property
    def is_scheduled(self):
        return self.scheduled_start is not None and self.scheduled_end is not None

    def to_summary(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'scheduled_start': _iso(self.scheduled_start),
            'scheduled_end': _iso(self.scheduled_end),
        }

    def to_dict(self):
        return {
            'id': self.id,
            'account_id': self.account_id,
            'contact_id': self.contact_id,
            'tech_assigned_id': self.tech_assigned_id,
            'requested_by': self.requested_by,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'request_status': self.request_status,
            'scheduled_start': _iso(self.scheduled_start),
            'scheduled_end': _iso(self.scheduled_end),
            'completed_at': _iso(self.completed_at),
            'total_amount': self.total_amount or 0,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'notes': self.notes,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


# =============================================================================
# RESOURCE SCHEDULING
# =============================================================================

class Resource(Base):
    """A technician, vehicle or piece of equipment that can be assigned to jobs."""
    __tablename__ = 'resources'

    id = Column(ID, primary_key=True, default=generate_uuid)
    account_id = Column(ID, ForeignKey('accounts.id'), nullable=False)
    resource_type = Column(String(20), nullable=False)  # tech, vehicle, equipment
    name = Column(String(255), nullable=False)
    description = Column(Text)
    user_id = Column(ID, ForeignKey('users.id'))  # set for tech resources
    extra_data = Column(JSONType, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    working_hours = relationship(
        "WorkingHours", back_populates="resource",
        cascade="all, delete-orphan", order_by="WorkingHours.day_of_week"
    )
    assignments = relationship(
        "ResourceAssignment", back_populates="resource",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint('account_id', 'resource_type', 'name', name='uq_resources_account_type_name'),
        Index('ix_resources_account', 'account_id'),
        Index('ix_resources_type', 'resource_type'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'account_id': self.account_id,
            'resource_type': self.resource_type,
            'name': self.name,
            'description': self.description,
            'user_id': self.user_id,
            'metadata': self.extra_data or {},
            'is_active': self.is_active,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class ResourceAssignment(Base):
    """Links a resource to a job. A resource is assigned to a given job at most once."""
    __tablename__ = 'resource_assignments'

    id = Column(ID, primary_key=True, default=generate_uuid)
    resource_id = Column(ID, ForeignKey('resources.id', ondelete='CASCADE'), nullable=False)
    job_id = Column(ID, ForeignKey('jobs.id', ondelete='CASCADE'), nullable=False)
    account_id = Column(ID, ForeignKey('accounts.id'), nullable=False)
    assigned_at = Column(DateTime, default=utcnow, nullable=False)
    assigned_by = Column(ID, ForeignKey('users.id'))
    notes = Column(Text)

    resource = relationship("Resource", back_populates="assignments")
    job = relationship("Job")

    __table_args__ = (
        UniqueConstraint('resource_id', 'job_id', name='uq_resource_assignments_resource_job'),
        Index('ix_resource_assignments_resource', 'resource_id'),
        Index('ix_resource_assignments_job', 'job_id'),
        Index('ix_resource_assignments_account', 'account_id'),
    )

    def to_dict(self, include_job=False):
        data = {
            'id': self.id,
            'resource_id': self.resource_id,
            'job_id': self.job_id,
            'account_id': self.account_id,
            'assigned_at': _iso(self.assigned_at),
            'assigned_by': self.assigned_by,
            'notes': self.notes
        }
        if include_job and self.job is not None:
            data['job'] = self.job.to_summary()
        return data


class WorkingHours(Base):
    """Weekly availability. day_of_week runs 0=Sunday .. 6=Saturday."""
    __tablename__ = 'working_hours'

    id = Column(ID, primary_key=True, default=generate_uuid)
    resource_id = Column(ID, ForeignKey('resources.id', ondelete='CASCADE'), nullable=False)
    account_id = Column(ID, ForeignKey('accounts.id'), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    resource = relationship("Resource", back_populates="working_hours")

    __table_args__ = (
        UniqueConstraint('resource_id', 'day_of_week', name='uq_working_hours_resource_day'),
        CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_working_hours_day_of_week'),
        CheckConstraint('start_time < end_time', name='ck_working_hours_time_order'),
        Index('ix_working_hours_resource', 'resource_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'resource_id': self.resource_id,
            'day_of_week': self.day_of_week,
            'start_time': self.start_time.strftime('%H:%M:%S') if self.start_time else None,
            'end_time': self.end_time.strftime('%H:%M:%S') if self.end_time else None,
            'is_available': self.is_available
        }


class Geofence(Base):
    """Circular check-in zone around a job site. One per job."""
    __tablename__ = 'geofences'

    id = Column(ID, primary_key=True, default=generate_uuid)
    account_id = Column(ID, ForeignKey('accounts.id'), nullable=False)
    job_id = Column(ID, ForeignKey('jobs.id', ondelete='CASCADE'), unique=True, nullable=False)
    center_latitude = Column(Float, nullable=False)
    center_longitude = Column(Float, nullable=False)
    radius_meters = Column(Integer, default=100, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('ix_geofences_account', 'account_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'account_id': self.account_id,
            'job_id': self.job_id,
            'center_latitude': self.center_latitude,
            'center_longitude': self.center_longitude,
            'radius_meters': self.radius_meters,
            'is_active': self.is_active,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


# =============================================================================
# INBOX
# =============================================================================

class Conversation(Base):
    """Inbox thread with a contact, carrying its response SLA."""
    __tablename__ = 'conversations'

    id = Column(ID, primary_key=True, default=generate_uuid)
    account_id = Column(ID, ForeignKey('accounts.id'), nullable=False)
    contact_id = Column(ID, ForeignKey('contacts.id'))
    subject = Column(String(255))
    channel = Column(String(20), default='sms')  # sms, email, phone, web
    status = Column(String(20), default='open', nullable=False)  # open, pending, closed, archived
    assigned_to = Column(ID, ForeignKey('users.id'))
    sla_target_minutes = Column(Integer)
    sla_status = Column(String(20))  # on_track, at_risk, breached
    sla_breached_at = Column(DateTime)
    last_message_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    contact = relationship("Contact")

    __table_args__ = (
        Index('ix_conversations_account', 'account_id'),
        Index('ix_conversations_contact', 'contact_id'),
        Index('ix_conversations_status', 'status'),
        Index('ix_conversations_sla_status', 'sla_status'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'account_id': self.account_id,
            'contact_id': self.contact_id,
            'subject': self.subject,
            'channel': self.channel,
            'status': self.status,
            'assigned_to': self.assigned_to,
            'sla_target_minutes': self.sla_target_minutes,
            'sla_status': self.sla_status,
            'sla_breached_at': _iso(self.sla_breached_at),
            'last_message_at': _iso(self.last_message_at),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


# =============================================================================
# CALENDAR
# =============================================================================

class CalendarEvent(Base):
    """Per-user calendar entries, optionally tied to a job."""
    __tablename__ = 'calendar_events'

    id = Column(ID, primary_key=True, default=generate_uuid)
    account_id = Column(ID, ForeignKey('accounts.id'), nullable=False)
    user_id = Column(ID, ForeignKey('users.id'), nullable=False)
    job_id = Column(ID, ForeignKey('jobs.id', ondelete='SET NULL'))
    title = Column(String(255), nullable=False)
    description = Column(Text)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    location = Column(String(500))
    all_day = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_calendar_events_account', 'account_id'),
        Index('ix_calendar_events_user_start', 'user_id', 'start_time'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'account_id': self.account_id,
            'user_id': self.user_id,
            'job_id': self.job_id,
            'title': self.title,
            'description': self.description,
            'start_time': _iso(self.start_time),
            'end_time': _iso(self.end_time),
            'location': self.location,
            'all_day': self.all_day,
            'created_at': _iso(self.created_at)
        }


# =============================================================================
# INVENTORY
# =============================================================================

class InventoryLocation(Base):
    """Warehouses and vans that hold stock. One default per account."""
    __tablename__ = 'inventory_locations'

    id = Column(ID, primary_key=True, default=generate_uuid)
    account_id = Column(ID, ForeignKey('accounts.id'), nullable=False)
    name = Column(String(255), nullable=False)
    address = Column(Text)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_inventory_locations_account', 'account_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'account_id': self.account_id,
            'name': self.name,
            'address': self.address,
            'is_default': self.is_default,
            'created_at': _iso(self.created_at)
        }


# =============================================================================
# ESTIMATES & INVOICES
# =============================================================================

class Estimate(Base):
    """Priced proposal. Revisions share a root via parent_estimate_id."""
    __tablename__ = 'estimates'

    id = Column(ID, primary_key=True, default=generate_uuid)
    account_id = Column(ID, ForeignKey('accounts.id'), nullable=False)
    contact_id = Column(ID, ForeignKey('contacts.id'))
    job_id = Column(ID, ForeignKey('jobs.id'))
    estimate_number = Column(String(50), nullable=False)
    title = Column(String(255))
    status = Column(String(20), default='draft', nullable=False)  # draft, sent, viewed, accepted, rejected
    line_items = Column(JSONType, default=list)
    subtotal = Column(Float, default=0)
    tax_rate = Column(Float, default=0)
    tax_amount = Column(Float, default=0)
    total_amount = Column(Float, default=0)
    version = Column(Integer, default=1, nullable=False)
    parent_estimate_id = Column(ID, ForeignKey('estimates.id'))
    viewed_at = Column(DateTime)
    created_by = Column(ID, ForeignKey('users.id'))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('ix_estimates_account', 'account_id'),
        Index('ix_estimates_parent', 'parent_estimate_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'account_id': self.account_id,
            'contact_id': self.contact_id,
            'job_id': self.job_id,
            'estimate_number': self.estimate_number,
            'title': self.title,
            'status': self.status,
            'line_items': self.line_items or [],
            'subtotal': self.subtotal,
            'tax_rate': self.tax_rate,
            'tax_amount': self.tax_amount,
            'total_amount': self.total_amount,
            'version': self.version,
            'parent_estimate_id': self.parent_estimate_id,
            'viewed_at': _iso(self.viewed_at),
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class Invoice(Base):
    """Bill for a job."""
    __tablename__ = 'invoices'

    id = Column(ID, primary_key=True, default=generate_uuid)
    account_id = Column(ID, ForeignKey('accounts.id'), nullable=False)
    job_id = Column(ID, ForeignKey('jobs.id'))
    contact_id = Column(ID, ForeignKey('contacts.id'))
    invoice_number = Column(String(50), nullable=False)
    amount = Column(Float, default=0)
    tax_amount = Column(Float, default=0)
    total_amount = Column(Float, default=0)
    status = Column(String(20), default='draft', nullable=False)  # draft, sent, paid, overdue, cancelled
    due_date = Column(Date)
    paid_at = Column(DateTime)
    notes = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    job = relationship("Job")
    contact = relationship("Contact")

    __table_args__ = (
        Index('ix_invoices_account', 'account_id'),
        Index('ix_invoices_status', 'status'),
        UniqueConstraint('account_id', 'invoice_number', name='uq_invoices_account_number'),
    )

    def to_dict(self, include_related=False):
        data = {
            'id': self.id,
            'account_id': self.account_id,
            'job_id': self.job_id,
            'contact_id': self.contact_id,
            'invoice_number': self.invoice_number,
            'amount': self.amount,
            'tax_amount': self.tax_amount,
            'total_amount': self.total_amount,
            'status': self.status,
            'due_date': _iso(self.due_date),
            'paid_at': _iso(self.paid_at),
            'notes': self.notes,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_related:
            data['job'] = self.job.to_summary() if self.job else None
            data['contact'] = self.contact.to_dict() if self.contact else None
        return data


# =============================================================================
# EVENT LOG & NOTIFICATIONS
# =============================================================================

class EventLog(Base):
    """Audit trail of changes made through the repositories."""
    __tablename__ = 'event_log'

    id = Column(ID, primary_key=True, default=generate_uuid)
    account_id = Column(ID, ForeignKey('accounts.id'))
    timestamp = Column(DateTime, default=utcnow, nullable=False)
    actor_type = Column(String(50))  # user, system
    actor_id = Column(ID)
    entity_type = Column(String(50), nullable=False)  # contact, job, resource, assignment, ...
    entity_id = Column(ID, nullable=False)
    event_type = Column(String(100), nullable=False)  # CREATED, UPDATED, ASSIGNED, STATUS_CHANGED, ...
    description = Column(Text)
    extra_data = Column(JSONType, default=dict)

    __table_args__ = (
        Index('ix_event_log_account', 'account_id'),
        Index('ix_event_log_entity', 'entity_type', 'entity_id'),
        Index('ix_event_log_timestamp', 'timestamp'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'account_id': self.account_id,
            'timestamp': _iso(self.timestamp),
            'actor_type': self.actor_type,
            'actor_id': self.actor_id,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'event_type': self.event_type,
            'description': self.description,
            'metadata': self.extra_data or {}
        }


class Notification(Base):
    """User notifications for alerts and system messages."""
    __tablename__ = 'notifications'

    id = Column(ID, primary_key=True, default=generate_uuid)
    account_id = Column(ID, ForeignKey('accounts.id'), nullable=False)
    user_id = Column(ID, ForeignKey('users.id'))  # None = broadcast to the account
    title = Column(String(255), nullable=False)
    message = Column(Text)
    notification_type = Column(String(50), default='info')  # info, warning, alert, reminder
    priority = Column(String(20), default='normal')  # low, normal, high, urgent
    entity_type = Column(String(50))
    entity_id = Column(ID)
    is_read = Column(Boolean, default=False)
    read_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_notifications_account', 'account_id'),
        Index('ix_notifications_user', 'user_id'),
        Index('ix_notifications_is_read', 'is_read'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'account_id': self.account_id,
            'user_id': self.user_id,
            'title': self.title,
            'message': self.message,
            'notification_type': self.notification_type,
            'priority': self.priority,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'is_read': self.is_read,
            'read_at': _iso(self.read_at),
            'created_at': _iso(self.created_at)
        }

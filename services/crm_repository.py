"""
CRM Repository - Database access layer for contacts, jobs and calendar events.
Changes are recorded in the event_log table.

Methods take and return ORM rows. Ownership checks (404 vs 403) happen in
the route layer before a row reaches the repository.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Dict, Any

from sqlalchemy.orm import Session
from sqlalchemy import or_

from database.models import Contact, Job, Conversation, CalendarEvent, EventLog, utcnow
from services.users_repository import UsersRepository
from validators import (
    ValidationError, normalize_phone, parse_datetime, parse_optional_datetime,
    parse_float, validate_choice, sanitize_string
)

logger = logging.getLogger(__name__)

JOB_STATUSES = ('lead', 'scheduled', 'en_route', 'in_progress', 'completed', 'paid', 'cancelled')
REQUEST_STATUSES = ('pending', 'approved', 'rejected')
REQUEST_ACTIONS = ('approve', 'reject')

CONTACT_FIELDS = ('first_name', 'last_name', 'email', 'phone', 'address',
                  'latitude', 'longitude', 'lead_source', 'notes', 'metadata')
JOB_FIELDS = ('title', 'description', 'status', 'contact_id', 'tech_assigned_id',
              'scheduled_start', 'scheduled_end', 'total_amount',
              'latitude', 'longitude', 'notes')

HISTORY_LIMIT = 50


class CRMRepository:
    """Repository for CRM database operations with event logging."""

    # Map API field names to database column names
    FIELD_MAPPING = {
        'metadata': 'extra_data'
    }

    def __init__(self, session: Session, account_id: str, user_id: str = None):
        self.session = session
        self.account_id = account_id
        self.user_id = user_id  # For tracking who made changes

    def _log_event(self, entity_type: str, entity_id: str, event_type: str,
                   description: str = None, metadata: Dict = None):
        """Record a change in the event_log table."""
        self.session.add(EventLog(
            account_id=self.account_id,
            actor_type='user' if self.user_id else 'system',
            actor_id=self.user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            description=description,
            extra_data=metadata or {}
        ))

    def _map_field(self, key: str) -> str:
        return self.FIELD_MAPPING.get(key, key)

    def _apply_changes(self, row, data: Dict, fields) -> Dict:
        """Set the given fields on row and return {field: {'old', 'new'}} for those that changed."""
        changes = {}
        for key in fields:
            if key not in data:
                continue
            column = self._map_field(key)
            old_value = getattr(row, column)
            new_value = data[key]
            if old_value != new_value:
                changes[key] = {
                    'old': old_value.isoformat() if isinstance(old_value, datetime) else old_value,
                    'new': new_value.isoformat() if isinstance(new_value, datetime) else new_value,
                }
                setattr(row, column, new_value)
        return changes

    def _require_account_user(self, user_id: str, field: str):
        if user_id and not UsersRepository(self.session, self.account_id).get_user(user_id):
            raise ValidationError(f"{field} does not belong to this account", field)

    def _require_account_contact(self, contact_id: str, field: str = 'contact_id') -> Optional[Contact]:
        if not contact_id:
            return None
        contact = self.session.query(Contact).filter(
            Contact.id == contact_id,
            Contact.account_id == self.account_id
        ).first()
        if not contact:
            raise ValidationError(f"{field} does not belong to this account", field)
        return contact

    # =========================================================================
    # CONTACTS
    # =========================================================================

    def list_contacts(self, search: str = None, limit: int = 200) -> List[Contact]:
        """List contacts, optionally matching name, email or phone digits."""
        query = self.session.query(Contact).filter(Contact.account_id == self.account_id)

        if search:
            pattern = f"%{search.strip()}%"
            conditions = [
                Contact.first_name.ilike(pattern),
                Contact.last_name.ilike(pattern),
                Contact.email.ilike(pattern),
            ]
            digits = normalize_phone(search)
            if digits and len(digits) >= 3:
                conditions.append(Contact.phone_normalized.like(f"%{digits}%"))
            query = query.filter(or_(*conditions))

        return query.order_by(Contact.first_name, Contact.last_name).limit(limit).all()

    def _contact_values(self, data: Dict) -> Dict:
        values = {k: data[k] for k in CONTACT_FIELDS if k in data}
        for key in ('first_name', 'last_name', 'address', 'lead_source', 'notes'):
            if isinstance(values.get(key), str):
                values[key] = sanitize_string(values[key])
        if isinstance(values.get('email'), str):
            values['email'] = values['email'].strip().lower()
        return values

    def create_contact(self, data: Dict) -> Contact:
        values = self._contact_values(data)
        contact = Contact(
            account_id=self.account_id,
            first_name=values['first_name'],
            last_name=values.get('last_name'),
            email=values.get('email'),
            phone=values.get('phone'),
            phone_normalized=normalize_phone(values.get('phone')),
            address=values.get('address'),
            latitude=values.get('latitude'),
            longitude=values.get('longitude'),
            lead_source=values.get('lead_source'),
            notes=values.get('notes'),
            extra_data=values.get('metadata', {})
        )
        self.session.add(contact)
        self.session.flush()

        self._log_event(
            entity_type='contact',
            entity_id=contact.id,
            event_type='CREATED',
            description=f"Contact '{contact.full_name}' was created",
            metadata={'lead_source': contact.lead_source}
        )
        logger.info(f"Created contact: {contact.id}")
        return contact

    def update_contact(self, contact: Contact, data: Dict) -> Contact:
        values = self._contact_values(data)
        changes = self._apply_changes(contact, values, CONTACT_FIELDS)
        if 'phone' in changes:
            contact.phone_normalized = normalize_phone(contact.phone)
        self.session.flush()

        if changes:
            self._log_event(
                entity_type='contact',
                entity_id=contact.id,
                event_type='UPDATED',
                description=f"Contact '{contact.full_name}' was updated",
                metadata={'changes': changes}
            )
        return contact

    def get_contact_history(self, contact: Contact, limit: int = HISTORY_LIMIT) -> Dict[str, Any]:
        """Jobs and conversations of a contact, newest first, with totals."""
        jobs = self.session.query(Job).filter(
            Job.account_id == self.account_id,
            Job.contact_id == contact.id
        ).order_by(Job.created_at.desc()).limit(limit).all()

        conversations = self.session.query(Conversation).filter(
            Conversation.account_id == self.account_id,
            Conversation.contact_id == contact.id
        ).order_by(
            Conversation.last_message_at.desc().nullslast(), Conversation.created_at.desc()
        ).limit(limit).all()

        return {
            'contact': contact.to_dict(),
            'jobs': [j.to_dict() for j in jobs],
            'conversations': [c.to_dict() for c in conversations],
            'summary': {
                'total_jobs': len(jobs),
                'total_conversations': len(conversations),
                'total_revenue': sum(j.total_amount or 0 for j in jobs),
            }
        }

    # =========================================================================
    # JOBS
    # =========================================================================

    def list_jobs(self, status: str = None, tech_id: str = None) -> List[Job]:
        """List jobs, optionally filtered by status or assigned tech."""
        query = self.session.query(Job).filter(Job.account_id == self.account_id)
        if status:
            query = query.filter(Job.status == status)
        if tech_id:
            query = query.filter(Job.tech_assigned_id == tech_id)
        return query.order_by(Job.scheduled_start.is_(None), Job.scheduled_start, Job.created_at.desc()).all()

    def _job_values(self, data: Dict) -> Dict:
        """Parse and validate the writable job fields present in data."""
        values = {k: data[k] for k in JOB_FIELDS if k in data}

        if 'status' in values:
            validate_choice(values['status'], JOB_STATUSES, 'status')
        for key in ('scheduled_start', 'scheduled_end'):
            if key in values:
                values[key] = parse_optional_datetime(values[key], key)
        for key in ('total_amount', 'latitude', 'longitude'):
            if values.get(key) is not None:
                values[key] = parse_float(values[key], key)
        if values.get('total_amount') is not None and values['total_amount'] < 0:
            raise ValidationError('total_amount cannot be negative', 'total_amount')
        if 'tech_assigned_id' in values:
            self._require_account_user(values['tech_assigned_id'], 'tech_assigned_id')
        if 'contact_id' in values:
            self._require_account_contact(values['contact_id'])
        return values

    @staticmethod
    def _check_window(job: Job):
        if job.scheduled_start and job.scheduled_end and job.scheduled_end <= job.scheduled_start:
            raise ValidationError('scheduled_end must be after scheduled_start', 'scheduled_end')

    def create_job(self, data: Dict) -> Job:
        values = self._job_values(data)
        job = Job(account_id=self.account_id, status=values.pop('status', 'lead'), total_amount=0)
        for key, value in values.items():
            setattr(job, key, value)
        self._check_window(job)

        self.session.add(job)
        self.session.flush()

        self._log_event(
            entity_type='job',
            entity_id=job.id,
            event_type='CREATED',
            description=f"Job '{job.title or job.description or job.id}' was created",
            metadata={'status': job.status, 'contact_id': job.contact_id}
        )
        logger.info(f"Created job: {job.id}")
        return job

    def update_job(self, job: Job, data: Dict) -> Job:
        values = self._job_values(data)
        old_status = job.status
        changes = self._apply_changes(job, values, JOB_FIELDS)
        self._check_window(job)

        if job.status != old_status:
            if job.status == 'completed' and not job.completed_at:
                job.completed_at = utcnow()
            self._log_event(
                entity_type='job',
                entity_id=job.id,
                event_type='STATUS_CHANGED',
                description=f"Job status changed from {old_status} to {job.status}",
                metadata={'old_status': old_status, 'new_status': job.status}
            )
        elif changes:
            self._log_event(
                entity_type='job',
                entity_id=job.id,
                event_type='UPDATED',
                metadata={'changes': changes}
            )

        self.session.flush()
        return job

    def create_job_request(self, data: Dict) -> Job:
        """A technician's request for a new job; it waits for dispatch approval."""
        if not data.get('contact_id') or not data.get('description'):
            raise ValidationError('contact_id and description are required')
        self._require_account_contact(data['contact_id'])

        job = Job(
            account_id=self.account_id,
            contact_id=data['contact_id'],
            description=sanitize_string(data['description'], 5000),
            scheduled_start=parse_optional_datetime(data.get('scheduled_start'), 'scheduled_start'),
            scheduled_end=parse_optional_datetime(data.get('scheduled_end'), 'scheduled_end'),
            status='lead',
            request_status='pending',
            notes='Needs office to call customer' if data.get('needs_office_call') else data.get('notes'),
            tech_assigned_id=self.user_id,
            requested_by=self.user_id,
            total_amount=0
        )
        self._check_window(job)
        self.session.add(job)
        self.session.flush()

        self._log_event(
            entity_type='job',
            entity_id=job.id,
            event_type='REQUESTED',
            description='Job request submitted',
            metadata={'contact_id': job.contact_id}
        )
        return job

    def list_pending_requests(self) -> List[Job]:
        return self.session.query(Job).filter(
            Job.account_id == self.account_id,
            Job.request_status == 'pending'
        ).order_by(Job.created_at.desc()).all()

    def review_job_request(self, job: Job, action: str, tech_id: str = None) -> Job:
        """
        Approve or reject a pending request.

        approve -> request approved, job scheduled (optionally reassigned)
        reject  -> request rejected, job stays a lead
        """
        validate_choice(action, REQUEST_ACTIONS, 'action')

        if action == 'approve':
            if tech_id:
                self._require_account_user(tech_id, 'tech_id')
                job.tech_assigned_id = tech_id
            job.request_status = 'approved'
            job.status = 'scheduled'
        else:
            job.request_status = 'rejected'
            job.status = 'lead'

        self.session.flush()
        self._log_event(
            entity_type='job',
            entity_id=job.id,
            event_type='REQUEST_APPROVED' if action == 'approve' else 'REQUEST_REJECTED',
            metadata={'tech_id': job.tech_assigned_id}
        )
        logger.info(f"Job request {job.id} {job.request_status}")
        return job

    # =========================================================================
    # CALENDAR
    # =========================================================================

    def list_events(self, user_id: str, start: datetime = None, end: datetime = None) -> List[CalendarEvent]:
        query = self.session.query(CalendarEvent).filter(
            CalendarEvent.account_id == self.account_id,
            CalendarEvent.user_id == user_id
        )
        if start:
            query = query.filter(CalendarEvent.end_time > start)
        if end:
            query = query.filter(CalendarEvent.start_time < end)
        return query.order_by(CalendarEvent.start_time).all()

    def create_event(self, user_id: str, data: Dict) -> CalendarEvent:
        if not data.get('title'):
            raise ValidationError('title is required', 'title')
        start = parse_datetime(data.get('start_time'), 'start_time')
        end = parse_datetime(data.get('end_time'), 'end_time')
        if end <= start:
            raise ValidationError('end_time must be after start_time', 'end_time')

        job_id = data.get('job_id')
        if job_id and not self.session.query(Job).filter(
                Job.id == job_id, Job.account_id == self.account_id).first():
            raise ValidationError('job_id does not belong to this account', 'job_id')

        event = CalendarEvent(
            account_id=self.account_id,
            user_id=user_id,
            job_id=job_id,
            title=sanitize_string(data['title'], 255),
            description=data.get('description'),
            start_time=start,
            end_time=end,
            location=data.get('location'),
            all_day=bool(data.get('all_day', False))
        )
        self.session.add(event)
        self.session.flush()
        return event

    def find_calendar_conflicts(self, user_id: str, start: datetime, end: datetime,
                                buffer_minutes: int = 60) -> List[CalendarEvent]:
        """
        Events of the user that overlap [start, end).

        Candidates are loaded from a window widened by buffer_minutes on each
        side, then filtered with the strict overlap rule.
        """
        buffer = timedelta(minutes=buffer_minutes)
        candidates = self.session.query(CalendarEvent).filter(
            CalendarEvent.account_id == self.account_id,
            CalendarEvent.user_id == user_id,
            CalendarEvent.start_time < end + buffer,
            CalendarEvent.end_time > start - buffer
        ).order_by(CalendarEvent.start_time).all()

        return [e for e in candidates if e.start_time < end and e.end_time > start]

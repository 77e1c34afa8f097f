"""
Scheduling Repository - Database access layer for resources, working hours
and resource-to-job assignments.

Conflict rules live in services.conflict_detection and free-window math in
services.availability; this module loads rows, applies those rules in the
account's timezone and records changes in the event_log table.
"""

import logging
from datetime import date
from typing import List, Optional, Dict, Tuple

from sqlalchemy.orm import Session

from database.models import (
    Account, Job, Resource, ResourceAssignment, WorkingHours, EventLog
)
from services.availability import compute_free_windows, get_timezone, local_day_bounds
from services.geo import nearest_neighbor_order
from services.conflict_detection import (
    INACTIVE_JOB_STATUSES, SchedulingError, check_scheduling_conflicts
)
from services.users_repository import UsersRepository
from validators import ValidationError, parse_bool, parse_time, sanitize_string, validate_choice

logger = logging.getLogger(__name__)

RESOURCE_TYPES = ('tech', 'vehicle', 'equipment')
RESOURCE_FIELDS = ('name', 'description', 'is_active', 'metadata', 'user_id')


class AssignmentConflictError(SchedulingError):
    """The proposed assignment collides with existing bookings or working hours"""
    def __init__(self, conflicts: List[Dict]):
        super().__init__('Scheduling conflict detected', 409)
        self.conflicts = conflicts


class SchedulingRepository:
    """Resources and their bookings for one account."""

    FIELD_MAPPING = {
        'metadata': 'extra_data'
    }

    def __init__(self, session: Session, account_id: str, user_id: str = None):
        self.session = session
        self.account_id = account_id
        self.user_id = user_id

    def _log_event(self, entity_type: str, entity_id: str, event_type: str,
                   description: str = None, metadata: Dict = None):
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

    def account_timezone(self) -> str:
        tz_name = self.session.query(Account.timezone).filter(
            Account.id == self.account_id
        ).scalar()
        return tz_name or 'UTC'

    # =========================================================================
    # RESOURCES
    # =========================================================================

    def list_resources(self, resource_type: str = None, active_only: bool = True) -> List[Resource]:
        query = self.session.query(Resource).filter(Resource.account_id == self.account_id)
        if resource_type:
            validate_choice(resource_type, RESOURCE_TYPES, 'type')
            query = query.filter(Resource.resource_type == resource_type)
        if active_only:
            query = query.filter(Resource.is_active == True)  # noqa: E712
        return query.order_by(Resource.name).all()

    def _name_taken(self, resource_type: str, name: str, exclude_id: str = None) -> bool:
        query = self.session.query(Resource.id).filter(
            Resource.account_id == self.account_id,
            Resource.resource_type == resource_type,
            Resource.name == name
        )
        if exclude_id:
            query = query.filter(Resource.id != exclude_id)
        return query.first() is not None

    def _check_user(self, user_id: Optional[str]):
        if user_id and not UsersRepository(self.session, self.account_id).get_user(user_id):
            raise ValidationError('user_id does not belong to this account', 'user_id')

    def create_resource(self, data: Dict) -> Resource:
        """
        Raises:
            ValidationError: missing name or unknown resource_type
            SchedulingError: 409 when the name is taken for that type
        """
        resource_type = data.get('resource_type')
        name = sanitize_string(data.get('name') or '', 255)
        if not resource_type or not name:
            raise ValidationError('resource_type and name are required')
        validate_choice(resource_type, RESOURCE_TYPES, 'resource_type')
        self._check_user(data.get('user_id'))

        if self._name_taken(resource_type, name):
            raise SchedulingError(f"A {resource_type} named '{name}' already exists", 409)

        resource = Resource(
            account_id=self.account_id,
            resource_type=resource_type,
            name=name,
            description=data.get('description'),
            user_id=data.get('user_id'),
            extra_data=data.get('metadata') or {},
            is_active=parse_bool(data.get('is_active'), True)
        )
        self.session.add(resource)
        self.session.flush()

        self._log_event('resource', resource.id, 'CREATED',
                        f"Resource '{name}' was created", {'resource_type': resource_type})
        logger.info(f"Created resource: {resource.id} ({resource_type})")
        return resource

    def update_resource(self, resource: Resource, data: Dict) -> Resource:
        changes = {}
        for key in RESOURCE_FIELDS:
            if key not in data:
                continue
            value = data[key]
            if key == 'name':
                value = sanitize_string(value or '', 255)
                if not value:
                    raise ValidationError('name cannot be empty', 'name')
                if self._name_taken(resource.resource_type, value, exclude_id=resource.id):
                    raise SchedulingError(f"A {resource.resource_type} named '{value}' already exists", 409)
            elif key == 'is_active':
                value = parse_bool(value)
            elif key == 'user_id':
                self._check_user(value)

            column = self.FIELD_MAPPING.get(key, key)
            if getattr(resource, column) != value:
                changes[key] = {'old': getattr(resource, column), 'new': value}
                setattr(resource, column, value)

        self.session.flush()
        if changes:
            self._log_event('resource', resource.id, 'UPDATED', metadata={'changes': changes})
        return resource

    def resource_detail(self, resource: Resource) -> Dict:
        """Resource with working hours by day and assignments newest first."""
        data = resource.to_dict()
        data['working_hours'] = [
            wh.to_dict() for wh in sorted(resource.working_hours, key=lambda wh: wh.day_of_week)
        ]
        data['assignments'] = [
            a.to_dict(include_job=True)
            for a in sorted(resource.assignments, key=lambda a: a.assigned_at, reverse=True)
        ]
        return data

    # =========================================================================
    # WORKING HOURS
    # =========================================================================

    @staticmethod
    def _parse_working_hours(entries) -> List[Dict]:
        if not isinstance(entries, list):
            raise ValidationError('working_hours must be a list', 'working_hours')

        parsed = []
        seen_days = set()
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ValidationError(f'working_hours[{index}] must be an object', 'working_hours')
            day = entry.get('day_of_week')
            if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
                raise ValidationError('day_of_week must be an integer between 0 and 6', 'day_of_week')
            if day in seen_days:
                raise ValidationError(f'Duplicate working hours for day {day}', 'day_of_week')
            seen_days.add(day)

            start = parse_time(entry.get('start_time'), 'start_time')
            end = parse_time(entry.get('end_time'), 'end_time')
            if start >= end:
                raise ValidationError(f'start_time must be before end_time for day {day}', 'start_time')

            parsed.append({
                'day_of_week': day,
                'start_time': start,
                'end_time': end,
                'is_available': parse_bool(entry.get('is_available'), True),
            })
        return parsed

    def replace_working_hours(self, resource: Resource, entries) -> List[WorkingHours]:
        """Swap the resource's whole weekly schedule for entries."""
        parsed = self._parse_working_hours(entries)

        self.session.query(WorkingHours).filter(
            WorkingHours.resource_id == resource.id
        ).delete(synchronize_session=False)
        self.session.flush()

        rows = []
        for values in parsed:
            row = WorkingHours(resource_id=resource.id, account_id=self.account_id, **values)
            self.session.add(row)
            rows.append(row)
        self.session.flush()
        self.session.expire(resource, ['working_hours'])

        self._log_event('resource', resource.id, 'WORKING_HOURS_UPDATED',
                        metadata={'days': sorted(v['day_of_week'] for v in parsed)})
        return sorted(rows, key=lambda r: r.day_of_week)

    def list_working_hours(self, resource: Resource) -> List[WorkingHours]:
        return self.session.query(WorkingHours).filter(
            WorkingHours.resource_id == resource.id
        ).order_by(WorkingHours.day_of_week).all()

    # =========================================================================
    # ASSIGNMENTS
    # =========================================================================

    def check_conflicts(self, resource: Resource, job_id: str, start, end) -> List[Dict]:
        return check_scheduling_conflicts(
            self.session, resource.id, job_id, start, end, self.account_timezone()
        )

    def create_assignment(self, resource: Resource, job: Job, notes: str = None) -> ResourceAssignment:
        """
        Book resource for job.

        Raises:
            SchedulingError: 400 when the pair is already assigned
            AssignmentConflictError: 409 when the job's window conflicts
        """
        existing = self.session.query(ResourceAssignment.id).filter(
            ResourceAssignment.resource_id == resource.id,
            ResourceAssignment.job_id == job.id
        ).first()
        if existing:
            raise SchedulingError('Resource is already assigned to this job', 400)

        if job.is_scheduled:
            conflicts = self.check_conflicts(resource, job.id, job.scheduled_start, job.scheduled_end)
            if conflicts:
                raise AssignmentConflictError(conflicts)

        assignment = ResourceAssignment(
            resource_id=resource.id,
            job_id=job.id,
            account_id=self.account_id,
            assigned_by=self.user_id,
            notes=notes
        )
        self.session.add(assignment)
        self.session.flush()

        self._log_event('assignment', assignment.id, 'ASSIGNED',
                        f"Resource '{resource.name}' assigned to job {job.id}",
                        {'resource_id': resource.id, 'job_id': job.id})
        logger.info(f"Assigned resource {resource.id} to job {job.id}")
        return assignment

    def get_assignment(self, resource: Resource, assignment_id: str) -> Optional[ResourceAssignment]:
        return self.session.query(ResourceAssignment).filter(
            ResourceAssignment.id == assignment_id,
            ResourceAssignment.resource_id == resource.id
        ).first()

    def delete_assignment(self, assignment: ResourceAssignment) -> None:
        self._log_event('assignment', assignment.id, 'UNASSIGNED',
                        metadata={'resource_id': assignment.resource_id, 'job_id': assignment.job_id})
        self.session.delete(assignment)
        self.session.flush()

    # =========================================================================
    # ROUTING
    # =========================================================================

    def optimize_route(self, job_ids: List[str], origin: Tuple[float, float] = None) -> Dict:
        """
        Nearest-neighbour visiting order for the account's jobs in job_ids.

        Coordinates come from the job, else from its contact. Ids from other
        accounts or unknown ids are ignored.
        """
        jobs = self.session.query(Job).filter(
            Job.account_id == self.account_id,
            Job.id.in_(job_ids)
        ).all()
        by_id = {job.id: job for job in jobs}

        stops = []
        for job_id in job_ids:
            job = by_id.pop(job_id, None)
            if job is None:
                continue
            latitude, longitude = job.latitude, job.longitude
            if (latitude is None or longitude is None) and job.contact is not None:
                latitude, longitude = job.contact.latitude, job.contact.longitude
            stops.append({
                'id': job.id,
                'title': job.title or job.description,
                'status': job.status,
                'latitude': latitude,
                'longitude': longitude,
            })

        ordered, total = nearest_neighbor_order(stops, origin)
        return {
            'optimized_order': [dict(stop, position=index + 1) for index, stop in enumerate(ordered)],
            'total_jobs': len(ordered),
            'total_distance_meters': round(total, 1),
        }

    # =========================================================================
    # AVAILABILITY
    # =========================================================================

    def availability(self, resource: Resource, target_date: date, min_minutes: int = 0) -> Dict:
        """Free windows of the resource on a local calendar day."""
        tz_name = self.account_timezone()
        tz = get_timezone(tz_name)
        day_start, day_end = local_day_bounds(target_date, tz)

        busy = self.session.query(Job.scheduled_start, Job.scheduled_end).join(
            ResourceAssignment, ResourceAssignment.job_id == Job.id
        ).filter(
            ResourceAssignment.resource_id == resource.id,
            Job.scheduled_start.isnot(None),
            Job.scheduled_end.isnot(None),
            Job.status.notin_(INACTIVE_JOB_STATUSES),
            Job.scheduled_start < day_end,
            Job.scheduled_end > day_start
        ).all()

        windows = compute_free_windows(
            self.list_working_hours(resource), busy, target_date, tz, min_minutes
        )

        return {
            'resource_id': resource.id,
            'date': target_date.isoformat(),
            'timezone': tz_name,
            'busy_count': len(busy),
            'available_windows': [
                {
                    'start': w['start'].isoformat(),
                    'end': w['end'].isoformat(),
                    'duration_minutes': int((w['end'] - w['start']).total_seconds() // 60),
                }
                for w in windows
            ],
        }

"""
Scheduling Conflict Detection

Checks whether a resource can take a job in a proposed window:
- double_booking: another active job assigned to the resource overlaps the window
- outside_working_hours: no available working-hours row covers the window

Windows are half-open, so back-to-back jobs (one ends at 10:00, the next
starts at 10:00) do not conflict. Working hours are evaluated in the
account's local time.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from database.models import Job, ResourceAssignment, WorkingHours
from services.availability import day_of_week, get_timezone, utc_to_local

logger = logging.getLogger(__name__)

DOUBLE_BOOKING = 'double_booking'
OUTSIDE_WORKING_HOURS = 'outside_working_hours'

# Jobs in these statuses no longer hold their time slot
INACTIVE_JOB_STATUSES = ('completed', 'cancelled')


class SchedulingError(Exception):
    """Invalid scheduling input; handlers map it to status_code"""
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def windows_overlap(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    return start < other_end and end > other_start


def find_double_bookings(
    session: Session,
    resource_id: str,
    job_id: Optional[str],
    start: datetime,
    end: datetime
) -> List[Job]:
    """Other active, scheduled jobs on this resource that overlap [start, end)."""
    query = session.query(Job).join(
        ResourceAssignment, ResourceAssignment.job_id == Job.id
    ).filter(
        ResourceAssignment.resource_id == resource_id,
        Job.scheduled_start.isnot(None),
        Job.scheduled_end.isnot(None),
        Job.status.notin_(INACTIVE_JOB_STATUSES),
        Job.scheduled_start < end,
        Job.scheduled_end > start,
    )
    if job_id:
        query = query.filter(Job.id != job_id)

    return query.order_by(Job.scheduled_start).all()


def covered_by_working_hours(working_hours: Iterable, local_start: datetime, local_end: datetime) -> bool:
    """
    True when one available row for the start's weekday spans the whole window.

    A window that runs past local midnight is never covered.
    """
    if local_end.date() != local_start.date():
        return False

    dow = day_of_week(local_start)
    start_time = local_start.time().replace(tzinfo=None)
    end_time = local_end.time().replace(tzinfo=None)

    for row in working_hours:
        if (row.day_of_week == dow and row.is_available
                and row.start_time <= start_time and row.end_time >= end_time):
            return True
    return False


def check_scheduling_conflicts(
    session: Session,
    resource_id: str,
    job_id: Optional[str],
    start: datetime,
    end: datetime,
    tz_name: str = 'UTC'
) -> List[Dict]:
    """
    Run every conflict rule for a proposed assignment.

    Args:
        session: database session
        resource_id: resource being booked
        job_id: job being scheduled; it never conflicts with itself
        start, end: proposed window in naive UTC
        tz_name: account timezone used for the working-hours check

    Returns:
        list of {conflict_type, conflicting_job_id, conflict_details}

    Raises:
        SchedulingError: end is not after start
    """
    if end <= start:
        raise SchedulingError('scheduled_end must be after scheduled_start')

    conflicts = []

    for other in find_double_bookings(session, resource_id, job_id, start, end):
        conflicts.append({
            'conflict_type': DOUBLE_BOOKING,
            'conflicting_job_id': other.id,
            'conflict_details': (
                f"Resource already assigned to job {other.id} "
                f"from {other.scheduled_start.isoformat()} to {other.scheduled_end.isoformat()}"
            )
        })

    tz = get_timezone(tz_name)
    local_start = utc_to_local(start, tz)
    local_end = utc_to_local(end, tz)
    working_hours = session.query(WorkingHours).filter(
        WorkingHours.resource_id == resource_id
    ).all()

    if not covered_by_working_hours(working_hours, local_start, local_end):
        conflicts.append({
            'conflict_type': OUTSIDE_WORKING_HOURS,
            'conflicting_job_id': None,
            'conflict_details': (
                f"Job scheduled outside resource working hours for day {day_of_week(local_start)}"
            )
        })

    if conflicts:
        logger.info(
            f"Resource {resource_id}: {len(conflicts)} conflict(s) for "
            f"{start.isoformat()} - {end.isoformat()}"
        )

    return conflicts

"""
Tests for scheduling conflict rules
"""
import pytest
from datetime import datetime, time
from types import SimpleNamespace

import pytz

from database.connection import get_db_session
from services.conflict_detection import (
    DOUBLE_BOOKING,
    OUTSIDE_WORKING_HOURS,
    SchedulingError,
    check_scheduling_conflicts,
    covered_by_working_hours,
    windows_overlap
)


def at(hour, minute=0, day=19):
    return datetime(2026, 10, day, hour, minute)


def local(hour, minute=0, day=19):
    return pytz.UTC.localize(at(hour, minute, day))


@pytest.mark.unit
class TestWindowsOverlap:

    def test_overlapping(self):
        assert windows_overlap(at(9), at(11), at(10), at(12)) is True

    def test_contained(self):
        assert windows_overlap(at(9), at(17), at(10), at(11)) is True

    def test_back_to_back_windows_do_not_overlap(self):
        assert windows_overlap(at(9), at(10), at(10), at(11)) is False
        assert windows_overlap(at(10), at(11), at(9), at(10)) is False


@pytest.mark.unit
class TestWorkingHoursCoverage:

    rows = [SimpleNamespace(day_of_week=1, start_time=time(8), end_time=time(17), is_available=True)]

    def test_window_inside_hours(self):
        assert covered_by_working_hours(self.rows, local(9), local(10)) is True

    def test_exact_bounds_are_covered(self):
        assert covered_by_working_hours(self.rows, local(8), local(17)) is True

    def test_window_starting_early(self):
        assert covered_by_working_hours(self.rows, local(7), local(9)) is False

    def test_wrong_weekday(self):
        # 2026-10-20 is a Tuesday
        assert covered_by_working_hours(self.rows, local(9, day=20), local(10, day=20)) is False

    def test_window_past_midnight(self):
        late = [SimpleNamespace(day_of_week=1, start_time=time(0), end_time=time(23, 59), is_available=True)]
        assert covered_by_working_hours(late, local(22), local(1, day=20)) is False

    def test_unavailable_row(self):
        off = [SimpleNamespace(day_of_week=1, start_time=time(8), end_time=time(17), is_available=False)]
        assert covered_by_working_hours(off, local(9), local(10)) is False


@pytest.mark.integration
class TestCheckSchedulingConflicts:

    @pytest.fixture
    def booked(self, factory):
        resource_id = factory.resource()
        factory.working_hours(resource_id, 1, time(8), time(17))
        job_id = factory.job(scheduled_start=at(9), scheduled_end=at(11))
        factory.assignment(resource_id, job_id)
        return resource_id, job_id

    def _check(self, resource_id, start, end, job_id=None, tz_name='UTC'):
        with get_db_session() as db:
            return check_scheduling_conflicts(db, resource_id, job_id, start, end, tz_name)

    def test_free_slot_has_no_conflicts(self, booked):
        resource_id, _ = booked
        assert self._check(resource_id, at(12), at(13)) == []

    def test_overlap_is_a_double_booking(self, booked):
        resource_id, job_id = booked
        conflicts = self._check(resource_id, at(10), at(12))
        assert len(conflicts) == 1
        assert conflicts[0]['conflict_type'] == DOUBLE_BOOKING
        assert conflicts[0]['conflicting_job_id'] == job_id
        assert job_id in conflicts[0]['conflict_details']

    def test_adjacent_slot_is_free(self, booked):
        resource_id, _ = booked
        assert self._check(resource_id, at(11), at(12)) == []

    def test_job_does_not_conflict_with_itself(self, booked):
        resource_id, job_id = booked
        assert self._check(resource_id, at(9), at(11), job_id=job_id) == []

    def test_completed_jobs_release_their_slot(self, factory, booked):
        resource_id, _ = booked
        done_id = factory.job(status='completed', scheduled_start=at(13), scheduled_end=at(14))
        factory.assignment(resource_id, done_id)
        assert self._check(resource_id, at(13), at(14)) == []

    def test_outside_working_hours(self, booked):
        resource_id, _ = booked
        conflicts = self._check(resource_id, at(17), at(18))
        assert [c['conflict_type'] for c in conflicts] == [OUTSIDE_WORKING_HOURS]
        assert conflicts[0]['conflicting_job_id'] is None

    def test_no_working_hours_row_is_a_conflict(self, factory):
        resource_id = factory.resource(name='Unscheduled Crew')
        conflicts = self._check(resource_id, at(9), at(10))
        assert [c['conflict_type'] for c in conflicts] == [OUTSIDE_WORKING_HOURS]

    def test_both_rules_can_fire(self, booked):
        resource_id, _ = booked
        conflicts = self._check(resource_id, at(7), at(10))
        assert {c['conflict_type'] for c in conflicts} == {DOUBLE_BOOKING, OUTSIDE_WORKING_HOURS}

    def test_working_hours_use_account_timezone(self, booked):
        resource_id, _ = booked
        # 20:00-21:00 UTC is 16:00-17:00 in New York, inside 8-17 local
        assert self._check(resource_id, at(20), at(21), tz_name='America/New_York') == []
        # 11:00-12:00 UTC is 07:00-08:00 local, before the shift starts
        conflicts = self._check(resource_id, at(11), at(12), tz_name='America/New_York')
        assert [c['conflict_type'] for c in conflicts] == [OUTSIDE_WORKING_HOURS]

    def test_end_before_start_is_rejected(self, booked):
        resource_id, _ = booked
        with pytest.raises(SchedulingError) as exc:
            self._check(resource_id, at(12), at(11))
        assert exc.value.status_code == 400

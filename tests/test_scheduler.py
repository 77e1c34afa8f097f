"""
Tests for the background job scheduler
"""
import pytest
from datetime import timedelta
from unittest.mock import Mock

from database.connection import get_db_session
from database.models import Conversation, Notification, utcnow
from services import scheduler as scheduler_module
from services.scheduler import (
    BackgroundScheduler,
    cleanup_old_notifications_job,
    recalculate_sla_job,
    register_default_jobs
)


@pytest.mark.unit
class TestBackgroundScheduler:

    def test_run_immediately_job_is_due(self):
        scheduler = BackgroundScheduler()
        func = Mock(return_value=3)
        scheduler.add_job('sweep', func, interval_seconds=60, run_immediately=True, kwargs={'days': 2})

        assert scheduler.run_pending() == 1
        func.assert_called_once_with(days=2)

        status = scheduler.get_job_status()['sweep']
        assert status['run_count'] == 1
        assert status['last_result'] == 3
        assert status['last_error'] is None

    def test_job_waits_for_its_interval(self):
        scheduler = BackgroundScheduler()
        func = Mock()
        scheduler.add_job('later', func, interval_seconds=3600)
        assert scheduler.run_pending() == 0
        func.assert_not_called()

    def test_disabled_jobs_are_skipped(self):
        scheduler = BackgroundScheduler()
        func = Mock()
        scheduler.add_job('sweep', func, interval_seconds=60, run_immediately=True)
        assert scheduler.disable_job('sweep') is True
        assert scheduler.run_pending() == 0
        assert scheduler.enable_job('sweep') is True
        assert scheduler.run_pending() == 1

    def test_unknown_job_ids(self):
        scheduler = BackgroundScheduler()
        assert scheduler.disable_job('missing') is False
        assert scheduler.remove_job('missing') is False
        assert scheduler.run_job_now('missing') is None

    def test_failure_is_recorded_and_rescheduled(self):
        scheduler = BackgroundScheduler()
        scheduler.add_job('flaky', Mock(side_effect=RuntimeError('db down')), interval_seconds=60)

        assert scheduler.run_job_now('flaky') is False
        status = scheduler.get_job_status()['flaky']
        assert status['last_error'] == 'db down'
        assert status['run_count'] == 0
        assert status['next_run'] is not None

    def test_start_and_stop(self):
        scheduler = BackgroundScheduler(tick_seconds=0.01)
        scheduler.start()
        assert scheduler.running is True
        scheduler.stop()
        assert scheduler.running is False

    def test_default_jobs(self):
        scheduler = register_default_jobs(BackgroundScheduler(), {'SLA_RECALC_INTERVAL': 120})
        jobs = scheduler.get_job_status()
        assert set(jobs) == {'sla_recalculation', 'cleanup_notifications'}
        assert jobs['sla_recalculation']['interval'] == 120


@pytest.mark.integration
class TestScheduledJobs:

    def test_recalculate_sla_job(self, factory):
        conv_id = factory.conversation(sla_target_minutes=5, last_message_at=utcnow() - timedelta(hours=1))
        assert recalculate_sla_job() == 1
        assert factory.fetch(Conversation, conv_id)['sla_status'] == 'breached'

    def test_cleanup_only_removes_old_read_notifications(self, factory):
        old = utcnow() - timedelta(days=45)
        old_read = factory.add(Notification, title='old read', is_read=True, created_at=old)
        old_unread = factory.add(Notification, title='old unread', is_read=False, created_at=old)
        fresh_read = factory.add(Notification, title='fresh read', is_read=True)

        assert cleanup_old_notifications_job(days=30) == 1

        with get_db_session() as db:
            remaining = {n.id for n in db.query(Notification).all()}
        assert remaining == {old_unread, fresh_read}
        assert old_read not in remaining


@pytest.mark.integration
class TestSchedulerRoutes:

    @pytest.fixture(autouse=True)
    def fresh_scheduler(self, monkeypatch):
        monkeypatch.setattr(scheduler_module, '_scheduler', None)
        scheduler = scheduler_module.get_scheduler()
        scheduler.add_job('ok', Mock(return_value=0), interval_seconds=60)
        scheduler.add_job('broken', Mock(side_effect=ValueError('bad row')), interval_seconds=60)
        return scheduler

    def test_status_requires_admin(self, client, login_as):
        login_as('dispatcher')
        assert client.get('/api/scheduler/status').status_code == 403

    def test_status(self, client, login_as):
        login_as('admin')
        data = client.get('/api/scheduler/status').get_json()
        assert data['success'] is True
        assert data['running'] is False
        assert set(data['jobs']) == {'ok', 'broken'}

    def test_run_job(self, client, login_as):
        login_as('owner')
        response = client.post('/api/scheduler/run/ok')
        assert response.status_code == 200
        assert response.get_json()['message'] == 'Job ok executed'

    def test_run_unknown_job(self, client, login_as):
        login_as('owner')
        assert client.post('/api/scheduler/run/nope').status_code == 404

    def test_run_failing_job(self, client, login_as):
        login_as('owner')
        response = client.post('/api/scheduler/run/broken')
        assert response.status_code == 500
        assert response.get_json()['detail'] == 'bad row'

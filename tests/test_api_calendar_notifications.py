"""
Tests for the personal calendar and notifications endpoints
"""
import pytest
from datetime import datetime

from database.models import CalendarEvent, Notification


@pytest.fixture
def morning_event(factory, seeded):
    return factory.add(
        CalendarEvent, user_id=seeded['users']['tech'], title='Site visit',
        start_time=datetime(2026, 10, 20, 9, 0), end_time=datetime(2026, 10, 20, 10, 0)
    )


@pytest.mark.integration
class TestCalendarEvents:

    def test_create_event(self, client, login_as):
        user_id = login_as('tech')
        response = client.post('/api/calendar/events', json={
            'title': 'Supplier pickup',
            'start_time': '2026-10-20T14:00:00Z',
            'end_time': '2026-10-20T14:30:00Z',
            'location': 'Ferguson, 5th St'
        })
        assert response.status_code == 201
        event = response.get_json()['event']
        assert event['user_id'] == user_id
        assert event['start_time'] == '2026-10-20T14:00:00'

    def test_end_must_follow_start(self, client, login_as):
        login_as('tech')
        response = client.post('/api/calendar/events', json={
            'title': 'Backwards', 'start_time': '2026-10-20T14:00:00', 'end_time': '2026-10-20T14:00:00'
        })
        assert response.status_code == 400
        assert response.get_json()['field'] == 'end_time'

    def test_foreign_job_link(self, client, login_as, other_factory):
        login_as('tech')
        response = client.post('/api/calendar/events', json={
            'title': 'Linked', 'job_id': other_factory.job(),
            'start_time': '2026-10-20T14:00:00', 'end_time': '2026-10-20T15:00:00'
        })
        assert response.status_code == 400
        assert response.get_json()['field'] == 'job_id'

    def test_list_is_personal_and_windowed(self, client, login_as, factory, seeded, morning_event):
        factory.add(
            CalendarEvent, user_id=seeded['users']['dispatcher'], title='Not mine',
            start_time=datetime(2026, 10, 20, 9, 0), end_time=datetime(2026, 10, 20, 10, 0)
        )
        login_as('tech')

        events = client.get('/api/calendar/events').get_json()['events']
        assert [e['id'] for e in events] == [morning_event]

        later = client.get('/api/calendar/events?start=2026-10-20T10:00:00').get_json()['events']
        assert later == []


@pytest.mark.integration
class TestCalendarConflicts:

    def test_overlap_is_reported(self, client, login_as, morning_event):
        login_as('tech')
        data = client.post('/api/calendar/conflicts', json={
            'start_time': '2026-10-20T09:30:00', 'end_time': '2026-10-20T11:00:00'
        }).get_json()
        assert data['has_conflicts'] is True
        assert data['conflicts'][0]['id'] == morning_event
        assert data['conflicts'][0]['title'] == 'Site visit'

    def test_adjacent_events_do_not_conflict(self, client, login_as, morning_event):
        login_as('tech')
        data = client.post('/api/calendar/conflicts', json={
            'start_time': '2026-10-20T10:00:00', 'end_time': '2026-10-20T11:00:00'
        }).get_json()
        assert data == {'success': True, 'has_conflicts': False, 'conflicts': []}

    def test_other_users_events_are_ignored(self, client, login_as, morning_event):
        login_as('dispatcher')
        data = client.post('/api/calendar/conflicts', json={
            'start_time': '2026-10-20T09:00:00', 'end_time': '2026-10-20T10:00:00'
        }).get_json()
        assert data['has_conflicts'] is False

    def test_invalid_window(self, client, login_as):
        login_as('tech')
        assert client.post('/api/calendar/conflicts', json={'start_time': '2026-10-20T09:00:00'}).status_code == 400
        assert client.post('/api/calendar/conflicts', json={
            'start_time': '2026-10-20T10:00:00', 'end_time': '2026-10-20T09:00:00'
        }).status_code == 400
        assert client.post('/api/calendar/conflicts', json={
            'start_time': 'tomorrow', 'end_time': '2026-10-20T09:00:00'
        }).status_code == 400


@pytest.mark.integration
class TestNotifications:

    def test_list_with_unread_count(self, client, login_as, factory, seeded):
        tech_id = seeded['users']['tech']
        factory.add(Notification, user_id=tech_id, title='Job assigned')
        factory.add(Notification, user_id=tech_id, title='Old news', is_read=True)
        factory.add(Notification, title='Office closed Friday')
        factory.add(Notification, user_id=seeded['users']['csr'], title='Not for tech')
        login_as('tech')

        data = client.get('/api/notifications').get_json()
        assert {n['title'] for n in data['notifications']} == {'Job assigned', 'Old news', 'Office closed Friday'}
        assert data['unread_count'] == 2

        unread = client.get('/api/notifications?unread_only=true').get_json()
        assert len(unread['notifications']) == 2

    def test_mark_read(self, client, login_as, factory, seeded):
        notification_id = factory.add(Notification, user_id=seeded['users']['tech'], title='Job assigned')
        login_as('tech')

        assert client.post(f'/api/notifications/{notification_id}/read').status_code == 200
        notification = factory.fetch(Notification, notification_id)
        assert notification['is_read'] is True
        assert client.get('/api/notifications').get_json()['unread_count'] == 0

    def test_cannot_read_someone_elses_notification(self, client, login_as, factory, other_factory, seeded):
        personal = factory.add(Notification, user_id=seeded['users']['csr'], title='Not for tech')
        foreign = other_factory.add(Notification, title='Other account')
        login_as('tech')

        assert client.post(f'/api/notifications/{personal}/read').status_code == 404
        assert client.post(f'/api/notifications/{foreign}/read').status_code == 404
        assert factory.fetch(Notification, personal)['is_read'] is False

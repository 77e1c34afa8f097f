"""
Tests for jobs, technician job requests and request review
"""
import pytest

from database.models import EventLog, Job


@pytest.fixture
def contact_id(factory):
    return factory.contact(first_name='Ruth', last_name='Baker', phone='555-010-2000')


@pytest.mark.integration
class TestJobVisibility:

    def test_tech_sees_only_own_jobs(self, client, login_as, factory, seeded):
        tech_id = seeded['users']['tech']
        mine = factory.job(title='Leaky faucet', tech_assigned_id=tech_id)
        factory.job(title='Boiler service', tech_assigned_id=seeded['users']['dispatcher'])
        factory.job(title='Unassigned')
        login_as('tech')

        data = client.get('/api/jobs').get_json()
        assert data['count'] == 1
        assert data['jobs'][0]['id'] == mine

    def test_dispatcher_sees_all_jobs(self, client, login_as, factory, other_factory):
        factory.job(title='One')
        factory.job(title='Two')
        other_factory.job(title='Elsewhere')
        login_as('dispatcher')

        data = client.get('/api/jobs').get_json()
        assert {j['title'] for j in data['jobs']} == {'One', 'Two'}

    def test_status_filter(self, client, login_as, factory):
        factory.job(title='Open lead', status='lead')
        factory.job(title='Booked')
        login_as('owner')

        data = client.get('/api/jobs?status=lead').get_json()
        assert [j['title'] for j in data['jobs']] == ['Open lead']
        assert client.get('/api/jobs?status=someday').status_code == 400

    def test_tech_cannot_open_another_techs_job(self, client, login_as, factory, seeded):
        job_id = factory.job(tech_assigned_id=seeded['users']['dispatcher'])
        login_as('tech')
        response = client.get(f'/api/jobs/{job_id}')
        assert response.status_code == 403

    def test_tech_can_open_own_job(self, client, login_as, factory, seeded):
        job_id = factory.job(title='Mine', tech_assigned_id=seeded['users']['tech'])
        login_as('tech')
        assert client.get(f'/api/jobs/{job_id}').get_json()['job']['title'] == 'Mine'

    def test_missing_and_foreign_jobs(self, client, login_as, other_factory):
        foreign = other_factory.job()
        login_as('owner')
        assert client.get('/api/jobs/no-such-job').status_code == 404
        assert client.get(f'/api/jobs/{foreign}').status_code == 403


@pytest.mark.integration
class TestJobWrites:

    def test_create_job(self, client, login_as, contact_id, seeded):
        login_as('dispatcher')
        response = client.post('/api/jobs', json={
            'title': 'Install water heater',
            'contact_id': contact_id,
            'tech_assigned_id': seeded['users']['tech'],
            'scheduled_start': '2026-10-20T13:00:00',
            'scheduled_end': '2026-10-20T15:00:00',
            'total_amount': 1450
        })
        assert response.status_code == 201
        job = response.get_json()['job']
        assert job['status'] == 'lead'
        assert job['scheduled_start'] == '2026-10-20T13:00:00'
        assert job['total_amount'] == 1450

    def test_tech_cannot_create_jobs(self, client, login_as):
        login_as('tech')
        response = client.post('/api/jobs', json={'title': 'Side gig'})
        assert response.status_code == 403
        assert response.get_json()['required'] == 'view_all_jobs'

    def test_create_rejects_bad_values(self, client, login_as, other_factory):
        login_as('dispatcher')
        response = client.post('/api/jobs', json={
            'scheduled_start': '2026-10-20T15:00:00', 'scheduled_end': '2026-10-20T13:00:00'
        })
        assert response.status_code == 400
        assert response.get_json()['field'] == 'scheduled_end'

        response = client.post('/api/jobs', json={'contact_id': other_factory.contact()})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'contact_id'

        response = client.post('/api/jobs', json={'total_amount': -10})
        assert response.get_json()['field'] == 'total_amount'

    def test_completing_a_job_stamps_completed_at(self, client, login_as, factory, seeded):
        job_id = factory.job(tech_assigned_id=seeded['users']['tech'])
        login_as('tech')

        response = client.patch(f'/api/jobs/{job_id}', json={'status': 'completed'})
        assert response.status_code == 200
        job = response.get_json()['job']
        assert job['status'] == 'completed'
        assert job['completed_at'] is not None

    def test_status_change_is_logged(self, client, login_as, factory):
        job_id = factory.job()
        login_as('dispatcher')
        client.patch(f'/api/jobs/{job_id}', json={'status': 'en_route'})

        from database.connection import get_db_session
        with get_db_session() as db:
            event = db.query(EventLog).filter(EventLog.entity_id == job_id).one()
            assert event.event_type == 'STATUS_CHANGED'
            assert event.extra_data == {'old_status': 'scheduled', 'new_status': 'en_route'}

    def test_invalid_status(self, client, login_as, factory):
        job_id = factory.job()
        login_as('dispatcher')
        assert client.patch(f'/api/jobs/{job_id}', json={'status': 'done-ish'}).status_code == 400


@pytest.mark.integration
class TestJobRequests:

    def test_tech_submits_request(self, client, login_as, contact_id, seeded):
        login_as('tech')
        response = client.post('/api/jobs/request', json={
            'contact_id': contact_id, 'description': 'Customer wants a second bathroom quote'
        })
        assert response.status_code == 201
        job = response.get_json()['job']
        assert job['status'] == 'lead'
        assert job['request_status'] == 'pending'
        assert job['requested_by'] == seeded['users']['tech']
        assert job['tech_assigned_id'] == seeded['users']['tech']

    def test_needs_office_call_sets_notes(self, client, login_as, contact_id):
        login_as('tech')
        response = client.post('/api/jobs/request', json={
            'contact_id': contact_id, 'description': 'Call back', 'needs_office_call': True
        })
        assert response.get_json()['job']['notes'] == 'Needs office to call customer'

    def test_only_technicians_can_request(self, client, login_as, contact_id):
        login_as('dispatcher')
        response = client.post('/api/jobs/request', json={'contact_id': contact_id, 'description': 'x'})
        assert response.status_code == 403
        assert response.get_json()['error'] == 'Only technicians can submit job requests'

    def test_request_needs_contact_and_description(self, client, login_as, contact_id):
        login_as('tech')
        assert client.post('/api/jobs/request', json={'contact_id': contact_id}).status_code == 400


@pytest.mark.integration
class TestRequestReview:

    def test_list_pending(self, client, login_as, factory):
        factory.job(title='Pending', status='lead', request_status='pending')
        factory.job(title='Approved', request_status='approved')
        login_as('dispatcher')

        data = client.get('/api/jobs/unassigned').get_json()
        assert [j['title'] for j in data['jobs']] == ['Pending']

    def test_approve_with_reassignment(self, client, login_as, factory, seeded):
        job_id = factory.job(status='lead', request_status='pending', tech_assigned_id=seeded['users']['tech'])
        login_as('dispatcher')

        response = client.patch('/api/jobs/unassigned', json={
            'job_id': job_id, 'action': 'approve', 'tech_id': seeded['users']['admin']
        })
        job = response.get_json()['job']
        assert job['status'] == 'scheduled'
        assert job['request_status'] == 'approved'
        assert job['tech_assigned_id'] == seeded['users']['admin']

    def test_reject(self, client, login_as, factory):
        job_id = factory.job(status='lead', request_status='pending')
        login_as('owner')

        client.patch('/api/jobs/unassigned', json={'job_id': job_id, 'action': 'reject'})
        job = factory.fetch(Job, job_id)
        assert job['status'] == 'lead'
        assert job['request_status'] == 'rejected'

    def test_request_must_be_pending(self, client, login_as, factory):
        job_id = factory.job(request_status='approved')
        login_as('dispatcher')
        response = client.patch('/api/jobs/unassigned', json={'job_id': job_id, 'action': 'reject'})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Job request is not pending'

    def test_unknown_action(self, client, login_as, factory):
        job_id = factory.job(status='lead', request_status='pending')
        login_as('dispatcher')
        response = client.patch('/api/jobs/unassigned', json={'job_id': job_id, 'action': 'maybe'})
        assert response.status_code == 400

    def test_tech_cannot_review(self, client, login_as, factory):
        job_id = factory.job(status='lead', request_status='pending')
        login_as('tech')
        assert client.get('/api/jobs/unassigned').status_code == 403
        assert client.patch('/api/jobs/unassigned', json={'job_id': job_id, 'action': 'approve'}).status_code == 403

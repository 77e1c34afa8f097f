"""
Tests for owner reports and inventory locations
"""
import pytest
from datetime import timedelta

from database.models import Job, utcnow


@pytest.mark.integration
class TestTeamMetrics:

    def test_per_member_rollup(self, client, login_as, factory, seeded):
        tech_id = seeded['users']['tech']
        factory.job(tech_assigned_id=tech_id, status='completed', total_amount=300.0)
        factory.job(tech_assigned_id=tech_id, status='paid', total_amount=100.0)
        factory.job(tech_assigned_id=tech_id, status='scheduled', total_amount=999.0)
        factory.job(tech_assigned_id=seeded['users']['dispatcher'], status='in_progress')
        factory.job(status='completed', total_amount=50.0)
        login_as('owner')

        data = client.get('/api/analytics/team-metrics').get_json()
        assert data['team']['total_members'] == 2
        assert data['team']['total_jobs'] == 4
        assert data['team']['completed_jobs'] == 2
        assert data['team']['total_revenue'] == 400.0
        assert data['team']['average_revenue_per_job'] == 200.0

        tech = next(m for m in data['members'] if m['user_id'] == tech_id)
        assert tech['total_jobs'] == 3
        assert tech['completion_rate'] == pytest.approx(66.67, abs=0.01)
        assert tech['average_job_value'] == 200.0

    def test_bad_date_range(self, client, login_as):
        login_as('admin')
        response = client.get('/api/analytics/team-metrics?start_date=2026-10-19&end_date=2026-10-01')
        assert response.status_code == 400
        assert response.get_json()['field'] == 'end_date'
        assert client.get('/api/analytics/team-metrics?start_date=last-week').status_code == 400


@pytest.mark.integration
class TestMarketingRoi:

    def test_grouped_by_lead_source(self, client, login_as, factory):
        google = factory.contact(lead_source='google')
        factory.contact(lead_source='google')
        referral = factory.contact(lead_source='referral')
        factory.contact()
        factory.job(contact_id=google, status='paid', total_amount=800.0)
        factory.job(contact_id=referral, status='completed', total_amount=1200.0)
        factory.job(contact_id=referral, status='lead', total_amount=5000.0)
        login_as('owner')

        data = client.get('/api/analytics/marketing-roi').get_json()
        assert data['overall']['total_contacts'] == 3
        assert data['overall']['total_jobs'] == 3
        assert data['overall']['total_revenue'] == 2000.0

        assert [s['source'] for s in data['by_source']] == ['referral', 'google']
        google_row = data['by_source'][1]
        assert google_row['contacts'] == 2
        assert google_row['conversion_rate'] == 50

    def test_dispatcher_cannot_view(self, client, login_as):
        login_as('dispatcher')
        assert client.get('/api/analytics/marketing-roi').status_code == 403


@pytest.mark.integration
class TestCustomerRetention:

    def test_active_and_churned(self, client, login_as, factory):
        active = factory.contact(first_name='Ava')
        churned = factory.contact(first_name='Ben')
        factory.contact(first_name='Cal')
        factory.add(Job, contact_id=active, status='completed', created_at=utcnow() - timedelta(days=3))
        factory.add(Job, contact_id=churned, status='completed', created_at=utcnow() - timedelta(days=90))
        login_as('owner')

        data = client.get('/api/analytics/customer-retention?period=30').get_json()
        assert data['period_days'] == 30
        assert data['overall']['active_customers'] == 1
        assert data['overall']['churned_customers'] == 1
        assert data['overall']['retention_rate'] == pytest.approx(33.33, abs=0.01)
        assert [c['is_active'] for c in data['customers']] == [True, False, False]

    @pytest.mark.parametrize('period', ['0', '-7', 'month'])
    def test_invalid_period(self, client, login_as, period):
        login_as('owner')
        response = client.get(f'/api/analytics/customer-retention?period={period}')
        assert response.status_code == 400
        assert response.get_json()['field'] == 'period'


@pytest.mark.integration
class TestInventoryLocations:

    def test_create_and_list_default_first(self, client, login_as):
        login_as('tech')
        client.post('/api/inventory/locations', json={'name': 'Van 2'})
        client.post('/api/inventory/locations', json={'name': 'Warehouse', 'is_default': True})

        locations = client.get('/api/inventory/locations').get_json()['locations']
        assert [(loc['name'], loc['is_default']) for loc in locations] == [('Warehouse', True), ('Van 2', False)]

    def test_new_default_replaces_old(self, client, login_as):
        login_as('tech')
        client.post('/api/inventory/locations', json={'name': 'Old Yard', 'is_default': True})
        client.post('/api/inventory/locations', json={'name': 'New Yard', 'is_default': True})

        locations = client.get('/api/inventory/locations').get_json()['locations']
        assert [loc['name'] for loc in locations if loc['is_default']] == ['New Yard']

    def test_name_required(self, client, login_as):
        login_as('tech')
        response = client.post('/api/inventory/locations', json={'name': '   '})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'name'

    def test_scoped_to_account(self, client, login_as):
        login_as('outsider')
        client.post('/api/inventory/locations', json={'name': 'Rival Depot'})
        login_as('tech')
        assert client.get('/api/inventory/locations').get_json()['locations'] == []

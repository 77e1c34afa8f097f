"""
Pytest configuration and shared fixtures
"""
import os
import sys
import pytest
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

PASSWORD = 'correct-horse-battery'
ROLE_NAMES = ('owner', 'admin', 'dispatcher', 'tech', 'sales', 'csr')

_password_hash = None


def password_hash():
    """pbkdf2 is slow on purpose; hash the shared test password once"""
    global _password_hash
    if _password_hash is None:
        from werkzeug.security import generate_password_hash
        _password_hash = generate_password_hash(PASSWORD, method='pbkdf2:sha256')
    return _password_hash


@pytest.fixture
def app_config():
    """Fixture providing test configuration"""
    from config import TestingConfig
    return TestingConfig


@pytest.fixture
def test_env_vars():
    """Fixture providing test environment variables"""
    original_env = os.environ.copy()

    os.environ['FLASK_ENV'] = 'testing'
    os.environ['SECRET_KEY'] = 'b7e2c94f1a0d83e65c2f97a4d1b08e3f6a29c5d7'
    os.environ.pop('DATABASE_URL', None)

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def app(app_config):
    """Application bound to a fresh in-memory database"""
    from app_init import create_app
    from database.connection import drop_db

    application = create_app(app_config)
    yield application
    drop_db()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seeded(app):
    """
    Two accounts. The main one has a user for every role; the other has
    only an owner and is used for cross-tenant checks.
    """
    from database.connection import get_db_session
    from database.models import Account, User

    with get_db_session() as db:
        main = Account(name='Acme Plumbing', slug='acme-plumbing', timezone='UTC')
        other = Account(name='Rival Heating', slug='rival-heating', timezone='UTC')
        db.add_all([main, other])
        db.flush()

        users = {}
        for role in ROLE_NAMES:
            user = User(
                account_id=main.id,
                email=f'{role}@acme.test',
                full_name=f'Acme {role.title()}',
                password_hash=password_hash(),
                role=role
            )
            db.add(user)
            users[role] = user

        outsider = User(
            account_id=other.id,
            email='owner@rival.test',
            full_name='Rival Owner',
            password_hash=password_hash(),
            role='owner'
        )
        db.add(outsider)
        db.flush()

        return {
            'account_id': main.id,
            'other_account_id': other.id,
            'users': {role: user.id for role, user in users.items()},
            'outsider_id': outsider.id,
        }


@pytest.fixture
def login_as(client, seeded):
    """
    Put a user into the client's session without the password round trip.
    'outsider' logs in as the owner of the second account.
    """
    def _login(role):
        if role == 'outsider':
            user_id, account_id, user_role = seeded['outsider_id'], seeded['other_account_id'], 'owner'
        else:
            user_id, account_id, user_role = seeded['users'][role], seeded['account_id'], role

        with client.session_transaction() as sess:
            sess.clear()
            sess['user_id'] = user_id
            sess['account_id'] = account_id
            sess['user_role'] = user_role
            sess['user_name'] = role
        return user_id

    return _login


class RowFactory:
    """Inserts rows in their own committed session and hands back ids"""

    def __init__(self, account_id):
        self.account_id = account_id

    def add(self, model, **values):
        from database.connection import get_db_session

        values.setdefault('account_id', self.account_id)
        with get_db_session() as db:
            row = model(**values)
            db.add(row)
            db.flush()
            return row.id

    def contact(self, **values):
        from database.models import Contact
        values.setdefault('first_name', 'Dana')
        return self.add(Contact, **values)

    def job(self, **values):
        from database.models import Job
        values.setdefault('status', 'scheduled')
        return self.add(Job, **values)

    def resource(self, **values):
        from database.models import Resource
        values.setdefault('resource_type', 'tech')
        values.setdefault('name', 'Van Crew 1')
        return self.add(Resource, **values)

    def working_hours(self, resource_id, day_of_week, start, end, **values):
        from database.models import WorkingHours
        return self.add(
            WorkingHours, resource_id=resource_id, day_of_week=day_of_week,
            start_time=start, end_time=end, **values
        )

    def assignment(self, resource_id, job_id, **values):
        from database.models import ResourceAssignment
        return self.add(ResourceAssignment, resource_id=resource_id, job_id=job_id, **values)

    def conversation(self, **values):
        from database.models import Conversation
        return self.add(Conversation, **values)

    def fetch(self, model, row_id):
        """Row as a dict, read in a fresh session"""
        from database.connection import get_db_session
        with get_db_session() as db:
            row = db.get(model, row_id)
            return row.to_dict() if row else None


@pytest.fixture
def factory(seeded):
    return RowFactory(seeded['account_id'])


@pytest.fixture
def other_factory(seeded):
    return RowFactory(seeded['other_account_id'])

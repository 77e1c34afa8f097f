"""
Database seeding for the Field Service CRM.
Creates a default account and owner user if the database is empty.

Credentials come from SEED_OWNER_EMAIL / SEED_OWNER_PASSWORD; the defaults
are for local development only.
"""

import os
import logging

from database.connection import get_db_session
from database.models import Account, User
from services.users_repository import UsersRepository

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT_NAME = "Demo Field Services"
DEFAULT_ACCOUNT_SLUG = "demo-field-services"
DEFAULT_OWNER_EMAIL = "owner@example.com"
DEFAULT_OWNER_PASSWORD = "change-me-now"


def seed_default_account(session):
    """Create default account if none exists."""
    account = session.query(Account).first()
    if account:
        logger.info(f"Account already exists: {account.name}")
        return account

    account = Account(
        name=DEFAULT_ACCOUNT_NAME,
        slug=DEFAULT_ACCOUNT_SLUG,
        timezone=os.environ.get('DEFAULT_TIMEZONE', 'UTC'),
        settings={'currency': 'USD'}
    )
    session.add(account)
    session.flush()
    logger.info(f"Created default account: {account.name}")
    return account


def seed_default_owner(session, account_id):
    """Create the account owner if the account has none."""
    owner = session.query(User).filter_by(account_id=account_id, role='owner').first()
    if owner:
        logger.info(f"Owner already exists: {owner.email}")
        return owner

    owner = UsersRepository(session, account_id).create_user({
        'email': os.environ.get('SEED_OWNER_EMAIL', DEFAULT_OWNER_EMAIL),
        'password': os.environ.get('SEED_OWNER_PASSWORD', DEFAULT_OWNER_PASSWORD),
        'full_name': 'Account Owner',
        'role': 'owner',
    })
    logger.info(f"Created default owner: {owner.email}")
    return owner


def seed_database():
    """
    Seed the database with default data if empty.

    Returns:
        True on success, False when seeding failed (the error is logged)
    """
    try:
        with get_db_session() as session:
            account = seed_default_account(session)
            seed_default_owner(session, account.id)
        logger.info("Database seeding completed successfully")
        return True
    except Exception as e:
        logger.error(f"Database seeding failed: {e}")
        return False


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    seed_database()

"""
Users Repository - Database access layer for account members.
Account user CRUD screens are out of scope; this covers login, seeding and
the lookups other services need (valid assignees, team rosters).
"""

import logging
from typing import List, Optional, Dict, Iterable
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash, check_password_hash

from database.models import User, utcnow

logger = logging.getLogger(__name__)


class UsersRepository:
    """Repository for user database operations."""

    def __init__(self, session: Session, account_id: str = None):
        self.session = session
        self.account_id = account_id

    def _query(self):
        query = self.session.query(User)
        if self.account_id:
            query = query.filter(User.account_id == self.account_id)
        return query

    def list_users(self, roles: Iterable[str] = None, active_only: bool = True) -> List[User]:
        """List account users, optionally limited to some roles."""
        query = self._query()
        if roles:
            query = query.filter(User.role.in_(list(roles)))
        if active_only:
            query = query.filter(User.is_active == True)  # noqa: E712
        return query.order_by(User.full_name, User.email).all()

    def get_user(self, user_id: str) -> Optional[User]:
        """Get a user of this account by ID."""
        if not user_id:
            return None
        return self._query().filter(User.id == user_id).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get a user by email (returns model for auth). Emails are stored lowercase."""
        return self.session.query(User).filter(User.email == email.strip().lower()).first()

    def create_user(self, data: Dict) -> User:
        """Create a new user."""
        user = User(
            account_id=data.get('account_id') or self.account_id,
            email=data['email'].strip().lower(),
            full_name=data.get('full_name'),
            password_hash=generate_password_hash(data['password'], method='pbkdf2:sha256'),
            role=data.get('role', 'tech'),
            is_active=data.get('is_active', True)
        )
        self.session.add(user)
        self.session.flush()
        logger.info(f"Created user: {user.id} ({user.role})")
        return user

    def verify_password(self, user: User, password: str) -> bool:
        return check_password_hash(user.password_hash, password)

    def update_last_login(self, user: User) -> None:
        user.last_login = utcnow()
        self.session.flush()

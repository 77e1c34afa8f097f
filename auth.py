"""
User Authentication and Authorization Module
Handles login against the users table, session management, and role-based permissions.

The session carries user_id, account_id and role. Every tenant-scoped
handler reads the caller's account from here.
"""
from functools import wraps
from flask import session, jsonify
import logging

logger = logging.getLogger(__name__)


# Available permissions
PERMISSIONS = {
    'manage_resources': 'Create and edit schedulable resources',
    'manage_dispatch': 'Approve job requests and dispatch technicians',
    'view_all_jobs': 'See every job in the account',
    'view_analytics': 'Team, marketing and retention reports',
    'manage_inbox': 'Bulk inbox actions and SLA targets',
    'edit_invoices': 'Edit and delete invoices',
}

# Predefined roles
ROLES = {
    'owner': {
        'name': 'Owner',
        'permissions': list(PERMISSIONS.keys())
    },
    'admin': {
        'name': 'Administrator',
        'permissions': list(PERMISSIONS.keys())
    },
    'dispatcher': {
        'name': 'Dispatcher',
        'permissions': ['manage_dispatch', 'view_all_jobs', 'manage_inbox']
    },
    'tech': {
        'name': 'Technician',
        'permissions': []
    },
    'sales': {
        'name': 'Sales',
        'permissions': ['manage_inbox']
    },
    'csr': {
        'name': 'Customer Service',
        'permissions': ['manage_inbox']
    }
}

ADMIN_ROLES = ('owner', 'admin')


def role_has_permission(role, permission):
    return permission in ROLES.get(role, {}).get('permissions', [])


def authenticate_user(email, password):
    """
    Check an email/password pair against the users table.

    Returns:
        Tuple of (user_dict, error_message)
    """
    from database.connection import get_db_session
    from services.users_repository import UsersRepository

    with get_db_session() as db:
        repo = UsersRepository(db)
        user = repo.get_user_by_email(email)

        if not user or not repo.verify_password(user, password):
            return None, "Invalid email or password"

        if not user.is_active:
            return None, "Account is deactivated"

        repo.update_last_login(user)
        data = user.to_dict()

    logger.info(f"User authenticated: {email}")
    return data, None


def login_user(user):
    """Set user session"""
    session.clear()
    session['user_id'] = user['id']
    session['account_id'] = user['account_id']
    session['user_role'] = user['role']
    session['user_name'] = user.get('full_name') or user['email']
    session.permanent = True


def logout_user():
    """Clear user session"""
    session.clear()


def is_authenticated():
    return 'user_id' in session and 'account_id' in session


def get_current_user_id():
    return session.get('user_id')


def get_current_account_id():
    return session.get('account_id')


def get_current_role():
    return session.get('user_role')


def has_permission(permission):
    """Check if current user's role grants a specific permission"""
    if not is_authenticated():
        return False
    return role_has_permission(get_current_role(), permission)


def _unauthorized():
    return jsonify({'success': False, 'error': 'Authentication required'}), 401


# Decorators for route protection
def login_required(f):
    """Decorator to require login for a route"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_authenticated():
            return _unauthorized()
        return f(*args, **kwargs)
    return decorated_function


def roles_required(*roles, message=None):
    """Decorator to restrict a route to the given roles"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not is_authenticated():
                return _unauthorized()

            if get_current_role() not in roles:
                logger.warning(
                    f"Role {get_current_role()} denied for {f.__name__} (needs one of {roles})"
                )
                return jsonify({
                    'success': False,
                    'error': message or 'Forbidden: insufficient role'
                }), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def permission_required(permission):
    """Decorator to require specific permission for a route"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not is_authenticated():
                return _unauthorized()

            if not has_permission(permission):
                return jsonify({
                    'success': False,
                    'error': 'Permission denied',
                    'required': permission
                }), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator


admin_required = roles_required(*ADMIN_ROLES, message='Forbidden: Admin access required')

"""
Authentication Routes Blueprint

Session login/logout and the current-session lookup:
- /api/auth/login
- /api/auth/logout
- /api/auth/session
"""

from flask import Blueprint, request, jsonify, session
import logging

import auth
from auth import ROLES, login_required

logger = logging.getLogger(__name__)

# Create blueprint
auth_bp = Blueprint('auth_bp', __name__)


@auth_bp.route('/api/auth/login', methods=['POST'])
def api_login():
    """API endpoint for user login"""
    try:
        data = request.get_json(silent=True) or {}
        email = data.get('email')
        password = data.get('password')

        if not email or not password:
            return jsonify({'success': False, 'error': 'Email and password required'}), 400

        user, error = auth.authenticate_user(email, password)

        if error:
            return jsonify({'success': False, 'error': error}), 401

        auth.login_user(user)

        return jsonify({
            'success': True,
            'user': {
                'id': user['id'],
                'email': user['email'],
                'full_name': user.get('full_name'),
                'role': user['role'],
                'account_id': user['account_id'],
                'permissions': ROLES.get(user['role'], {}).get('permissions', [])
            }
        })

    except Exception as e:
        logger.error(f"Login error: {e}")
        return jsonify({'success': False, 'error': 'Login failed'}), 500


@auth_bp.route('/api/auth/logout', methods=['POST'])
def api_logout():
    auth.logout_user()
    return jsonify({'success': True})


@auth_bp.route('/api/auth/session', methods=['GET'])
@login_required
def api_session():
    """Who is logged in"""
    role = auth.get_current_role()
    return jsonify({
        'success': True,
        'user': {
            'id': auth.get_current_user_id(),
            'account_id': auth.get_current_account_id(),
            'role': role,
            'name': session.get('user_name'),
            'permissions': ROLES.get(role, {}).get('permissions', [])
        }
    })

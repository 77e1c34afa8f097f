"""
Notifications Routes Blueprint
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_account_id, get_current_user_id
from app.utils.helpers import json_error
from database.connection import get_db_session
from services.notification_service import NotificationService
from validators import parse_bool

logger = logging.getLogger(__name__)

# Create blueprint
notifications_bp = Blueprint('notifications_bp', __name__)


@notifications_bp.route('/api/notifications', methods=['GET'])
@login_required
def list_notifications():
    """The caller's notifications plus account-wide ones"""
    try:
        user_id = get_current_user_id()
        with get_db_session() as db:
            service = NotificationService(db, get_current_account_id())
            notifications = service.get_notifications(
                user_id, unread_only=parse_bool(request.args.get('unread_only'))
            )
            return jsonify({
                'success': True,
                'notifications': notifications,
                'unread_count': service.get_unread_count(user_id)
            })
    except Exception as e:
        logger.error(f"Error getting notifications: {e}")
        return json_error('Failed to fetch notifications', 500)


@notifications_bp.route('/api/notifications/<notification_id>/read', methods=['POST'])
@login_required
def mark_notification_read(notification_id):
    try:
        with get_db_session() as db:
            service = NotificationService(db, get_current_account_id())
            if not service.mark_as_read(notification_id, get_current_user_id()):
                return json_error('Notification not found', 404)
            return jsonify({'success': True})
    except Exception as e:
        logger.error(f"Error marking notification {notification_id} read: {e}")
        return json_error('Failed to update notification', 500)

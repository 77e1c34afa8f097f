"""
Calendar Routes Blueprint

Personal calendar of the logged-in user:
- /api/calendar/events: list (optional start/end window), create
- /api/calendar/conflicts: overlap check for a proposed event
"""

import logging
from flask import Blueprint, request, jsonify, current_app

from auth import login_required, get_current_account_id, get_current_user_id
from app.utils.helpers import get_json_body, json_error, validation_error
from database.connection import get_db_session
from services.crm_repository import CRMRepository
from validators import ValidationError, parse_datetime, parse_optional_datetime

logger = logging.getLogger(__name__)

# Create blueprint
calendar_bp = Blueprint('calendar_bp', __name__)


@calendar_bp.route('/api/calendar/events', methods=['GET', 'POST'])
@login_required
def handle_events():
    try:
        user_id = get_current_user_id()
        with get_db_session() as db:
            repo = CRMRepository(db, get_current_account_id(), user_id)

            if request.method == 'GET':
                events = repo.list_events(
                    user_id,
                    start=parse_optional_datetime(request.args.get('start'), 'start'),
                    end=parse_optional_datetime(request.args.get('end'), 'end')
                )
                return jsonify({'success': True, 'events': [e.to_dict() for e in events]})

            event = repo.create_event(user_id, get_json_body())
            return jsonify({'success': True, 'event': event.to_dict()}), 201

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error handling calendar events: {e}")
        return json_error('Failed to process calendar request', 500)


@calendar_bp.route('/api/calendar/conflicts', methods=['POST'])
@login_required
def check_calendar_conflicts():
    try:
        data = get_json_body()
        if not data.get('start_time') or not data.get('end_time'):
            return json_error('start_time and end_time are required')

        start = parse_datetime(data['start_time'], 'start_time')
        end = parse_datetime(data['end_time'], 'end_time')
        if end <= start:
            return json_error('end_time must be after start_time', field='end_time')

        user_id = get_current_user_id()
        with get_db_session() as db:
            conflicts = CRMRepository(db, get_current_account_id()).find_calendar_conflicts(
                user_id, start, end,
                buffer_minutes=current_app.config.get('CALENDAR_CONFLICT_BUFFER_MINUTES', 60)
            )
            return jsonify({
                'success': True,
                'has_conflicts': bool(conflicts),
                'conflicts': [
                    {
                        'id': event.id,
                        'title': event.title,
                        'start_time': event.start_time.isoformat(),
                        'end_time': event.end_time.isoformat(),
                        'location': event.location,
                    }
                    for event in conflicts
                ]
            })

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error checking calendar conflicts: {e}")
        return json_error('Failed to check conflicts', 500)

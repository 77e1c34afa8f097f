"""
Inbox Routes Blueprint

- /api/inbox/sla: SLA overview (GET) and per-conversation targets (POST)
- /api/inbox/bulk: assign, change status, archive or delete many conversations
"""

import logging
from flask import Blueprint, request, jsonify, current_app

from auth import login_required, permission_required, get_current_account_id
from app.utils.helpers import get_json_body, json_error, load_owned, validation_error
from database.connection import get_db_session
from database.models import Conversation
from services.sla_service import InboxService
from validators import ValidationError, parse_bool

logger = logging.getLogger(__name__)

# Create blueprint
inbox_bp = Blueprint('inbox_bp', __name__)


def _inbox(db):
    return InboxService(
        db, get_current_account_id(),
        at_risk_ratio=current_app.config.get('SLA_AT_RISK_RATIO', 0.75)
    )


@inbox_bp.route('/api/inbox/sla', methods=['GET'])
@login_required
def get_sla_overview():
    try:
        include_stats = parse_bool(request.args.get('include_stats'))
        with get_db_session() as db:
            conversations, stats = _inbox(db).list_sla(
                status=request.args.get('status') or None,
                include_stats=include_stats
            )
            body = {'success': True, 'conversations': conversations}
            if include_stats:
                body['stats'] = stats
            return jsonify(body)

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error getting SLA overview: {e}")
        return json_error('Failed to fetch SLA data', 500)


@inbox_bp.route('/api/inbox/sla', methods=['POST'])
@permission_required('manage_inbox')
def set_sla_target():
    try:
        data = get_json_body()
        conversation_id = data.get('conversation_id')
        target = data.get('sla_target_minutes')
        if not conversation_id or target is None:
            return json_error('conversation_id and sla_target_minutes are required')
        if isinstance(target, bool) or not isinstance(target, int) or target <= 0:
            return json_error('sla_target_minutes must be a positive integer', field='sla_target_minutes')

        with get_db_session() as db:
            conversation, error = load_owned(
                db, Conversation, conversation_id, get_current_account_id(), 'Conversation'
            )
            if error:
                return error
            result = _inbox(db).set_sla_target(conversation, target)
            return jsonify({'success': True, 'conversation': result})

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error setting SLA target: {e}")
        return json_error('Failed to update SLA target', 500)


@inbox_bp.route('/api/inbox/bulk', methods=['POST'])
@permission_required('manage_inbox')
def bulk_action():
    try:
        data = get_json_body()
        conversation_ids = data.get('conversation_ids')
        action = data.get('action')
        if not isinstance(conversation_ids, list) or not conversation_ids or not action:
            return json_error('conversation_ids (non-empty list) and action are required')
        if not all(isinstance(i, str) and i for i in conversation_ids):
            return json_error('conversation_ids must be a list of id strings', field='conversation_ids')

        with get_db_session() as db:
            inbox = _inbox(db)
            conversations = inbox.find_owned(conversation_ids)
            if len(conversations) != len(set(conversation_ids)):
                return json_error('Forbidden: some conversations do not belong to this account', 403)

            updated = inbox.bulk_update(conversations, action, data.get('data') or {})
            return jsonify({'success': True, 'updated': updated})

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error running bulk inbox action: {e}")
        return json_error('Failed to update conversations', 500)

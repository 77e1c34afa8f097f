"""
Contacts Routes Blueprint

- /api/contacts: list/search, create
- /api/contacts/<id>: read, update
- /api/contacts/<id>/history: jobs and conversations of a contact
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_account_id, get_current_user_id
from app.utils.helpers import get_json_body, json_error, load_owned, validation_error
from database.connection import get_db_session
from database.models import Contact
from services.crm_repository import CRMRepository
from validators import ValidationError, validate_contact_request

logger = logging.getLogger(__name__)

# Create blueprint
contacts_bp = Blueprint('contacts_bp', __name__)


@contacts_bp.route('/api/contacts', methods=['GET', 'POST'])
@login_required
def handle_contacts():
    try:
        with get_db_session() as db:
            repo = CRMRepository(db, get_current_account_id(), get_current_user_id())

            if request.method == 'GET':
                contacts = repo.list_contacts(search=request.args.get('search'))
                return jsonify({
                    'success': True,
                    'contacts': [c.to_dict() for c in contacts],
                    'count': len(contacts)
                })

            data = get_json_body()
            is_valid, error = validate_contact_request(data)
            if not is_valid:
                return json_error(error)

            contact = repo.create_contact(data)
            return jsonify({'success': True, 'contact': contact.to_dict()}), 201

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error handling contacts: {e}")
        return json_error('Failed to process contacts request', 500)


@contacts_bp.route('/api/contacts/<contact_id>', methods=['GET', 'PATCH'])
@login_required
def handle_contact(contact_id):
    try:
        with get_db_session() as db:
            account_id = get_current_account_id()
            contact, error = load_owned(db, Contact, contact_id, account_id, 'Contact')
            if error:
                return error

            if request.method == 'GET':
                return jsonify({'success': True, 'contact': contact.to_dict()})

            data = get_json_body()
            is_valid, message = validate_contact_request(data, partial=True)
            if not is_valid:
                return json_error(message)

            repo = CRMRepository(db, account_id, get_current_user_id())
            contact = repo.update_contact(contact, data)
            return jsonify({'success': True, 'contact': contact.to_dict()})

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error handling contact {contact_id}: {e}")
        return json_error('Failed to process contact request', 500)


@contacts_bp.route('/api/contacts/<contact_id>/history', methods=['GET'])
@login_required
def get_contact_history(contact_id):
    """Jobs and conversations, newest first"""
    try:
        with get_db_session() as db:
            account_id = get_current_account_id()
            contact, error = load_owned(db, Contact, contact_id, account_id, 'Contact')
            if error:
                return error

            history = CRMRepository(db, account_id).get_contact_history(contact)
            return jsonify({'success': True, **history})

    except Exception as e:
        logger.error(f"Error getting history for contact {contact_id}: {e}")
        return json_error('Failed to fetch contact history', 500)

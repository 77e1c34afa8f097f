"""
Invoices Routes Blueprint

- /api/invoices: list, create
- /api/invoices/<id>: read (with job and contact), update, delete
"""

import logging
from flask import Blueprint, request, jsonify

from auth import (
    admin_required, login_required, permission_required,
    get_current_account_id, get_current_user_id
)
from app.utils.helpers import get_json_body, json_error, load_owned, validation_error
from database.connection import get_db_session
from database.models import Invoice
from services.billing_repository import BillingRepository
from validators import ValidationError

logger = logging.getLogger(__name__)

# Create blueprint
invoices_bp = Blueprint('invoices_bp', __name__)


def _repo(db):
    return BillingRepository(db, get_current_account_id(), get_current_user_id())


def _load_invoice(db, invoice_id):
    return load_owned(db, Invoice, invoice_id, get_current_account_id(), 'Invoice')


@invoices_bp.route('/api/invoices', methods=['GET', 'POST'])
@login_required
def handle_invoices():
    try:
        with get_db_session() as db:
            if request.method == 'GET':
                invoices = _repo(db).list_invoices(status=request.args.get('status') or None)
                return jsonify({'success': True, 'invoices': [i.to_dict() for i in invoices]})

            invoice = _repo(db).create_invoice(get_json_body())
            return jsonify({'success': True, 'invoice': invoice.to_dict()}), 201

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error handling invoices: {e}")
        return json_error('Failed to process invoices request', 500)


@invoices_bp.route('/api/invoices/<invoice_id>', methods=['GET'])
@login_required
def get_invoice(invoice_id):
    try:
        with get_db_session() as db:
            invoice, error = _load_invoice(db, invoice_id)
            if error:
                return error
            return jsonify({'success': True, 'invoice': invoice.to_dict(include_related=True)})
    except Exception as e:
        logger.error(f"Error getting invoice {invoice_id}: {e}")
        return json_error('Failed to fetch invoice', 500)


@invoices_bp.route('/api/invoices/<invoice_id>', methods=['PATCH'])
@permission_required('edit_invoices')
def update_invoice(invoice_id):
    try:
        data = get_json_body()
        with get_db_session() as db:
            invoice, error = _load_invoice(db, invoice_id)
            if error:
                return error
            invoice = _repo(db).update_invoice(invoice, data)
            return jsonify({'success': True, 'invoice': invoice.to_dict(include_related=True)})
    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error updating invoice {invoice_id}: {e}")
        return json_error('Failed to update invoice', 500)


@invoices_bp.route('/api/invoices/<invoice_id>', methods=['DELETE'])
@admin_required
def delete_invoice(invoice_id):
    try:
        with get_db_session() as db:
            invoice, error = _load_invoice(db, invoice_id)
            if error:
                return error
            _repo(db).delete_invoice(invoice)
            return jsonify({'success': True})
    except Exception as e:
        logger.error(f"Error deleting invoice {invoice_id}: {e}")
        return json_error('Failed to delete invoice', 500)

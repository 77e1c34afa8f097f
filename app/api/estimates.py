"""
Estimates Routes Blueprint

- /api/estimates: list, create
- /api/estimates/<id>: read
- /api/estimates/<id>/versions: version family (GET) and new version (POST)
- /api/estimates/<id>/track-view: record that the customer opened it
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_account_id, get_current_user_id
from app.utils.helpers import get_json_body, json_error, load_owned, validation_error
from database.connection import get_db_session
from database.models import Estimate
from services.billing_repository import BillingRepository
from validators import ValidationError

logger = logging.getLogger(__name__)

# Create blueprint
estimates_bp = Blueprint('estimates_bp', __name__)


def _repo(db):
    return BillingRepository(db, get_current_account_id(), get_current_user_id())


@estimates_bp.route('/api/estimates', methods=['GET', 'POST'])
@login_required
def handle_estimates():
    try:
        with get_db_session() as db:
            if request.method == 'GET':
                estimates = _repo(db).list_estimates(status=request.args.get('status') or None)
                return jsonify({'success': True, 'estimates': [e.to_dict() for e in estimates]})

            estimate = _repo(db).create_estimate(get_json_body())
            return jsonify({'success': True, 'estimate': estimate.to_dict()}), 201

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error handling estimates: {e}")
        return json_error('Failed to process estimates request', 500)


@estimates_bp.route('/api/estimates/<estimate_id>', methods=['GET'])
@login_required
def get_estimate(estimate_id):
    try:
        with get_db_session() as db:
            estimate, error = load_owned(db, Estimate, estimate_id, get_current_account_id(), 'Estimate')
            if error:
                return error
            return jsonify({'success': True, 'estimate': estimate.to_dict()})
    except Exception as e:
        logger.error(f"Error getting estimate {estimate_id}: {e}")
        return json_error('Failed to fetch estimate', 500)


@estimates_bp.route('/api/estimates/<estimate_id>/versions', methods=['GET', 'POST'])
@login_required
def handle_versions(estimate_id):
    try:
        with get_db_session() as db:
            estimate, error = load_owned(db, Estimate, estimate_id, get_current_account_id(), 'Estimate')
            if error:
                return error

            repo = _repo(db)
            if request.method == 'GET':
                versions = repo.list_versions(estimate)
                return jsonify({'success': True, 'versions': [v.to_dict() for v in versions]})

            version = repo.create_version(estimate)
            return jsonify({'success': True, 'estimate': version.to_dict()}), 201

    except Exception as e:
        logger.error(f"Error handling versions of estimate {estimate_id}: {e}")
        return json_error('Failed to process estimate versions', 500)


@estimates_bp.route('/api/estimates/<estimate_id>/track-view', methods=['POST'])
@login_required
def track_view(estimate_id):
    try:
        with get_db_session() as db:
            estimate, error = load_owned(db, Estimate, estimate_id, get_current_account_id(), 'Estimate')
            if error:
                return error
            estimate = _repo(db).track_view(estimate)
            return jsonify({'success': True, 'estimate': estimate.to_dict()})
    except Exception as e:
        logger.error(f"Error tracking view of estimate {estimate_id}: {e}")
        return json_error('Failed to track view', 500)

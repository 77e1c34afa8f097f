"""
Inventory Routes Blueprint

- /api/inventory/locations: stock locations (warehouses, vans)
"""

import logging
from flask import Blueprint, jsonify

from auth import login_required, get_current_account_id
from app.utils.helpers import get_json_body, json_error, validation_error
from database.connection import get_db_session
from services.inventory_repository import InventoryRepository
from validators import ValidationError

logger = logging.getLogger(__name__)

# Create blueprint
inventory_bp = Blueprint('inventory_bp', __name__)


@inventory_bp.route('/api/inventory/locations', methods=['GET'])
@login_required
def list_locations():
    try:
        with get_db_session() as db:
            locations = InventoryRepository(db, get_current_account_id()).list_locations()
            return jsonify({'success': True, 'locations': [loc.to_dict() for loc in locations]})
    except Exception as e:
        logger.error(f"Error listing inventory locations: {e}")
        return json_error('Failed to fetch locations', 500)


@inventory_bp.route('/api/inventory/locations', methods=['POST'])
@login_required
def create_location():
    try:
        data = get_json_body()
        with get_db_session() as db:
            location = InventoryRepository(db, get_current_account_id()).create_location(data)
            return jsonify({'success': True, 'location': location.to_dict()}), 201
    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error creating inventory location: {e}")
        return json_error('Failed to create location', 500)

"""
Analytics Routes Blueprint (owner/admin)

- /api/analytics/team-metrics
- /api/analytics/marketing-roi
- /api/analytics/customer-retention
"""

import logging
from flask import Blueprint, request, jsonify

from auth import permission_required, get_current_account_id
from app.utils.helpers import json_error, validation_error
from database.connection import get_db_session
from services.analytics_service import AnalyticsService
from validators import ValidationError, parse_optional_datetime

logger = logging.getLogger(__name__)

# Create blueprint
analytics_bp = Blueprint('analytics_bp', __name__)


def _date_range():
    start = parse_optional_datetime(request.args.get('start_date'), 'start_date')
    end = parse_optional_datetime(request.args.get('end_date'), 'end_date')
    if start and end and end < start:
        raise ValidationError('end_date must not be before start_date', 'end_date')
    return start, end


@analytics_bp.route('/api/analytics/team-metrics', methods=['GET'])
@permission_required('view_analytics')
def team_metrics():
    try:
        start, end = _date_range()
        with get_db_session() as db:
            report = AnalyticsService(db, get_current_account_id()).team_metrics(start, end)
            return jsonify({'success': True, **report})
    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error building team metrics: {e}")
        return json_error('Failed to build team metrics', 500)


@analytics_bp.route('/api/analytics/marketing-roi', methods=['GET'])
@permission_required('view_analytics')
def marketing_roi():
    try:
        start, end = _date_range()
        with get_db_session() as db:
            report = AnalyticsService(db, get_current_account_id()).marketing_roi(start, end)
            return jsonify({'success': True, **report})
    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error building marketing ROI: {e}")
        return json_error('Failed to build marketing ROI', 500)


@analytics_bp.route('/api/analytics/customer-retention', methods=['GET'])
@permission_required('view_analytics')
def customer_retention():
    try:
        try:
            period = int(request.args.get('period', 30))
        except ValueError:
            return json_error('period must be an integer', field='period')
        if period <= 0:
            return json_error('period must be positive', field='period')

        with get_db_session() as db:
            report = AnalyticsService(db, get_current_account_id()).customer_retention(period)
            return jsonify({'success': True, **report})
    except Exception as e:
        logger.error(f"Error building customer retention: {e}")
        return json_error('Failed to build customer retention', 500)

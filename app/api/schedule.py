"""
Resource Scheduling Routes Blueprint

Handles dispatch scheduling:
- Resources (technicians, vehicles, equipment) and their weekly working hours
- Resource-to-job assignments with conflict detection
- Availability windows for a day
- Travel time (Google Distance Matrix) and route ordering
"""

import logging
from flask import Blueprint, request, jsonify, current_app

from auth import (
    login_required, permission_required,
    get_current_account_id, get_current_user_id
)
from app.utils.helpers import get_json_body, json_error, load_owned, validation_error
from database.connection import get_db_session
from database.models import Job, Resource
from services.conflict_detection import SchedulingError
from services.scheduling_repository import AssignmentConflictError, SchedulingRepository
from services.travel_time import DistanceMatrixClient, TravelTimeError
from validators import ValidationError, parse_bool, parse_date, parse_datetime, parse_float

logger = logging.getLogger(__name__)

# Create blueprint
schedule_bp = Blueprint('schedule_bp', __name__)


def _repo(db):
    return SchedulingRepository(db, get_current_account_id(), get_current_user_id())


def _load_resource(db, resource_id):
    return load_owned(db, Resource, resource_id, get_current_account_id(), 'Resource')


def _scheduling_error(error: SchedulingError):
    if isinstance(error, AssignmentConflictError):
        return json_error(error.message, error.status_code, conflicts=error.conflicts)
    return json_error(error.message, error.status_code)


def _maps_client():
    return DistanceMatrixClient(
        current_app.config.get('GOOGLE_MAPS_API_KEY'),
        timeout=current_app.config.get('GOOGLE_MAPS_TIMEOUT', 10)
    )


# ============================================================================
# RESOURCES
# ============================================================================

@schedule_bp.route('/api/schedule/resources', methods=['GET'])
@login_required
def list_resources():
    try:
        with get_db_session() as db:
            resources = _repo(db).list_resources(
                resource_type=request.args.get('type'),
                active_only=parse_bool(request.args.get('active_only'), True)
            )
            return jsonify({
                'success': True,
                'resources': [r.to_dict() for r in resources],
                'count': len(resources)
            })
    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error listing resources: {e}")
        return json_error('Failed to fetch resources', 500)


@schedule_bp.route('/api/schedule/resources', methods=['POST'])
@permission_required('manage_resources')
def create_resource():
    try:
        data = get_json_body()
        with get_db_session() as db:
            resource = _repo(db).create_resource(data)
            return jsonify({'success': True, 'resource': resource.to_dict()}), 201
    except ValidationError as e:
        return validation_error(e)
    except SchedulingError as e:
        return _scheduling_error(e)
    except Exception as e:
        logger.error(f"Error creating resource: {e}")
        return json_error('Failed to create resource', 500)


@schedule_bp.route('/api/schedule/resources/<resource_id>', methods=['GET'])
@login_required
def get_resource(resource_id):
    try:
        with get_db_session() as db:
            resource, error = _load_resource(db, resource_id)
            if error:
                return error
            return jsonify({'success': True, 'resource': _repo(db).resource_detail(resource)})
    except Exception as e:
        logger.error(f"Error getting resource {resource_id}: {e}")
        return json_error('Failed to fetch resource', 500)


@schedule_bp.route('/api/schedule/resources/<resource_id>', methods=['PATCH'])
@permission_required('manage_resources')
def update_resource(resource_id):
    try:
        data = get_json_body()
        with get_db_session() as db:
            resource, error = _load_resource(db, resource_id)
            if error:
                return error
            resource = _repo(db).update_resource(resource, data)
            return jsonify({'success': True, 'resource': resource.to_dict()})
    except ValidationError as e:
        return validation_error(e)
    except SchedulingError as e:
        return _scheduling_error(e)
    except Exception as e:
        logger.error(f"Error updating resource {resource_id}: {e}")
        return json_error('Failed to update resource', 500)


# ============================================================================
# WORKING HOURS
# ============================================================================

@schedule_bp.route('/api/schedule/resources/<resource_id>/working-hours', methods=['GET'])
@login_required
def get_working_hours(resource_id):
    try:
        with get_db_session() as db:
            resource, error = _load_resource(db, resource_id)
            if error:
                return error
            rows = _repo(db).list_working_hours(resource)
            return jsonify({'success': True, 'working_hours': [r.to_dict() for r in rows]})
    except Exception as e:
        logger.error(f"Error getting working hours for {resource_id}: {e}")
        return json_error('Failed to fetch working hours', 500)


@schedule_bp.route('/api/schedule/resources/<resource_id>/working-hours', methods=['POST'])
@permission_required('manage_resources')
def set_working_hours(resource_id):
    """Replace the whole weekly schedule"""
    try:
        data = get_json_body()
        with get_db_session() as db:
            resource, error = _load_resource(db, resource_id)
            if error:
                return error
            rows = _repo(db).replace_working_hours(resource, data.get('working_hours'))
            return jsonify({'success': True, 'working_hours': [r.to_dict() for r in rows]})
    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error setting working hours for {resource_id}: {e}")
        return json_error('Failed to update working hours', 500)


# ============================================================================
# ASSIGNMENTS
# ============================================================================

@schedule_bp.route('/api/schedule/resources/<resource_id>/assignments', methods=['POST'])
@permission_required('manage_dispatch')
def create_assignment(resource_id):
    try:
        data = get_json_body()
        job_id = data.get('job_id')
        if not job_id:
            return json_error('job_id is required')

        with get_db_session() as db:
            resource, error = _load_resource(db, resource_id)
            if error:
                return error
            job, error = load_owned(db, Job, job_id, get_current_account_id(), 'Job')
            if error:
                return error

            assignment = _repo(db).create_assignment(resource, job, notes=data.get('notes'))
            return jsonify({'success': True, 'assignment': assignment.to_dict(include_job=True)}), 201

    except SchedulingError as e:
        return _scheduling_error(e)
    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error assigning resource {resource_id}: {e}")
        return json_error('Failed to create assignment', 500)


@schedule_bp.route('/api/schedule/resources/<resource_id>/assignments/<assignment_id>', methods=['DELETE'])
@permission_required('manage_dispatch')
def delete_assignment(resource_id, assignment_id):
    try:
        with get_db_session() as db:
            resource, error = _load_resource(db, resource_id)
            if error:
                return error
            repo = _repo(db)
            assignment = repo.get_assignment(resource, assignment_id)
            if not assignment:
                return json_error('Assignment not found', 404)
            repo.delete_assignment(assignment)
            return jsonify({'success': True})
    except Exception as e:
        logger.error(f"Error deleting assignment {assignment_id}: {e}")
        return json_error('Failed to delete assignment', 500)


# ============================================================================
# AVAILABILITY & CONFLICTS
# ============================================================================

@schedule_bp.route('/api/schedule/resources/<resource_id>/availability', methods=['GET'])
@login_required
def get_availability(resource_id):
    try:
        target_date = parse_date(request.args.get('date'), 'date')
        min_minutes = int(request.args.get('min_minutes', 0))
        if min_minutes < 0:
            return json_error('min_minutes cannot be negative')

        with get_db_session() as db:
            resource, error = _load_resource(db, resource_id)
            if error:
                return error
            result = _repo(db).availability(resource, target_date, min_minutes)
            return jsonify({'success': True, **result})

    except ValidationError as e:
        return validation_error(e)
    except ValueError:
        return json_error('min_minutes must be an integer')
    except Exception as e:
        logger.error(f"Error getting availability for {resource_id}: {e}")
        return json_error('Failed to calculate availability', 500)


@schedule_bp.route('/api/schedule/conflicts', methods=['POST'])
@login_required
def check_conflicts():
    """Dry-run conflict check for a proposed booking"""
    try:
        data = get_json_body()
        required = ('resource_id', 'job_id', 'scheduled_start', 'scheduled_end')
        missing = [field for field in required if not data.get(field)]
        if missing:
            return json_error(f"Missing required fields: {', '.join(missing)}")

        start = parse_datetime(data['scheduled_start'], 'scheduled_start')
        end = parse_datetime(data['scheduled_end'], 'scheduled_end')

        with get_db_session() as db:
            resource, error = _load_resource(db, data['resource_id'])
            if error:
                return error
            job, error = load_owned(db, Job, data['job_id'], get_current_account_id(), 'Job')
            if error:
                return error

            conflicts = _repo(db).check_conflicts(resource, job.id, start, end)
            return jsonify({
                'success': True,
                'has_conflicts': bool(conflicts),
                'conflicts': conflicts
            })

    except ValidationError as e:
        return validation_error(e)
    except SchedulingError as e:
        return _scheduling_error(e)
    except Exception as e:
        logger.error(f"Error checking conflicts: {e}")
        return json_error('Failed to check conflicts', 500)


# ============================================================================
# TRAVEL TIME & ROUTING
# ============================================================================

@schedule_bp.route('/api/schedule/travel-time', methods=['POST'])
@login_required
def travel_time():
    try:
        data = get_json_body()
        fields = ('origin_lat', 'origin_lng', 'destination_lat', 'destination_lng')
        if any(data.get(field) is None for field in fields):
            return json_error('origin_lat, origin_lng, destination_lat and destination_lng are required')

        coords = [parse_float(data[field], field) for field in fields]
        with _maps_client() as maps:
            result = maps.travel_time(*coords, mode=data.get('mode', 'driving'))
        return jsonify({'success': True, **result})

    except ValidationError as e:
        return validation_error(e)
    except TravelTimeError as e:
        return json_error(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error calculating travel time: {e}")
        return json_error('Failed to calculate travel time', 500)


@schedule_bp.route('/api/schedule/travel-time/route', methods=['POST'])
@login_required
def travel_time_route():
    """Leg-by-leg travel time through an ordered list of stops"""
    try:
        data = get_json_body()
        locations = data.get('locations')
        if not isinstance(locations, list) or len(locations) < 2:
            return json_error('locations must be a list of at least 2 points')

        points = []
        for location in locations:
            if not isinstance(location, dict):
                return json_error('Each location needs latitude and longitude')
            points.append({
                'latitude': parse_float(location.get('latitude'), 'latitude'),
                'longitude': parse_float(location.get('longitude'), 'longitude'),
            })

        with _maps_client() as maps:
            legs = maps.route_legs(points, mode=data.get('mode', 'driving'))
        return jsonify({
            'success': True,
            'legs': legs,
            'total_distance_meters': sum(leg['result']['distance_meters'] for leg in legs),
            'total_duration_seconds': sum(leg['result']['duration_seconds'] for leg in legs),
        })

    except ValidationError as e:
        return validation_error(e)
    except TravelTimeError as e:
        return json_error(e.message, e.status_code)
    except Exception as e:
        logger.error(f"Error calculating route travel time: {e}")
        return json_error('Failed to calculate route', 500)


@schedule_bp.route('/api/schedule/optimize', methods=['POST'])
@login_required
def optimize_route():
    try:
        data = get_json_body()
        job_ids = data.get('job_ids')
        if not isinstance(job_ids, list) or not job_ids:
            return json_error('job_ids must be a non-empty list')

        origin = None
        origin_location = data.get('origin_location')
        if origin_location:
            if not isinstance(origin_location, dict):
                return json_error('origin_location must be an object with lat and lng')
            origin = (
                parse_float(origin_location.get('lat'), 'origin_location.lat'),
                parse_float(origin_location.get('lng'), 'origin_location.lng'),
            )

        with get_db_session() as db:
            result = _repo(db).optimize_route(job_ids, origin)
            return jsonify({'success': True, **result})

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error optimizing route: {e}")
        return json_error('Failed to optimize route', 500)

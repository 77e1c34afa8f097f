"""
Geofencing Routes Blueprint

A job can carry one circular geofence around its site.
- POST /api/geofencing: create or move the job's geofence
- GET /api/geofencing?job_id=&lat=&lng=: is a point inside it
"""

import logging
from flask import Blueprint, request, jsonify, current_app

from auth import login_required, get_current_account_id
from app.utils.helpers import get_json_body, json_error, load_owned, validation_error
from database.connection import get_db_session
from database.models import Geofence, Job
from services.geo import is_within_radius
from validators import ValidationError, parse_float, validate_coordinates

logger = logging.getLogger(__name__)

# Create blueprint
geofencing_bp = Blueprint('geofencing_bp', __name__)


@geofencing_bp.route('/api/geofencing', methods=['POST'])
@login_required
def upsert_geofence():
    try:
        data = get_json_body()
        job_id = data.get('job_id')
        if not job_id or data.get('latitude') is None or data.get('longitude') is None:
            return json_error('job_id, latitude and longitude are required')

        latitude = parse_float(data['latitude'], 'latitude')
        longitude = parse_float(data['longitude'], 'longitude')
        is_valid, error = validate_coordinates(latitude, longitude)
        if not is_valid:
            return json_error(error)

        radius = data.get('radius_meters')
        if radius is None:
            radius = current_app.config.get('DEFAULT_GEOFENCE_RADIUS_METERS', 100)
        # stored in whole meters
        radius = int(round(parse_float(radius, 'radius_meters')))
        if radius < 1:
            return json_error('radius_meters must be at least 1 meter', field='radius_meters')

        account_id = get_current_account_id()
        with get_db_session() as db:
            job, error = load_owned(db, Job, job_id, account_id, 'Job')
            if error:
                return error

            geofence = db.query(Geofence).filter(Geofence.job_id == job.id).first()
            if geofence is None:
                geofence = Geofence(account_id=account_id, job_id=job.id)
                db.add(geofence)

            geofence.center_latitude = latitude
            geofence.center_longitude = longitude
            geofence.radius_meters = radius
            geofence.is_active = True
            db.flush()

            logger.info(f"Geofence set for job {job.id}: {radius}m")
            return jsonify({'success': True, 'geofence': geofence.to_dict()}), 201

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error saving geofence: {e}")
        return json_error('Failed to save geofence', 500)


@geofencing_bp.route('/api/geofencing', methods=['GET'])
@login_required
def check_geofence():
    try:
        job_id = request.args.get('job_id')
        if not job_id or request.args.get('lat') is None or request.args.get('lng') is None:
            return json_error('job_id, lat and lng are required')

        lat = parse_float(request.args.get('lat'), 'lat')
        lng = parse_float(request.args.get('lng'), 'lng')

        with get_db_session() as db:
            geofence = db.query(Geofence).filter(
                Geofence.job_id == job_id,
                Geofence.is_active == True  # noqa: E712
            ).first()

            if geofence is None:
                return jsonify({
                    'success': True,
                    'within_geofence': False,
                    'reason': 'No active geofence for this job'
                })

            if geofence.account_id != get_current_account_id():
                return json_error('Forbidden', 403)

            inside, distance = is_within_radius(
                (geofence.center_latitude, geofence.center_longitude), (lat, lng),
                geofence.radius_meters
            )
            return jsonify({
                'success': True,
                'within_geofence': inside,
                'distance_meters': round(distance, 2),
                'geofence_radius': geofence.radius_meters,
                'geofence_center': {
                    'latitude': geofence.center_latitude,
                    'longitude': geofence.center_longitude
                }
            })

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error checking geofence: {e}")
        return json_error('Failed to check geofence', 500)

"""
Jobs Routes Blueprint

- /api/jobs: list (technicians only see their own jobs), create
- /api/jobs/<id>: read, update
- /api/jobs/request: technician job requests
- /api/jobs/unassigned: dispatch review of pending requests
"""

import logging
from flask import Blueprint, request, jsonify

from auth import (
    login_required, permission_required, roles_required, has_permission,
    get_current_account_id, get_current_user_id
)
from app.utils.helpers import get_json_body, json_error, load_owned, validation_error
from database.connection import get_db_session
from database.models import Job
from services.crm_repository import CRMRepository, JOB_STATUSES
from validators import ValidationError, validate_choice

logger = logging.getLogger(__name__)

# Create blueprint
jobs_bp = Blueprint('jobs_bp', __name__)


@jobs_bp.route('/api/jobs', methods=['GET'])
@login_required
def list_jobs():
    try:
        status = request.args.get('status')
        if status:
            validate_choice(status, JOB_STATUSES, 'status')

        # without view_all_jobs a user only sees jobs assigned to them
        tech_id = None if has_permission('view_all_jobs') else get_current_user_id()

        with get_db_session() as db:
            repo = CRMRepository(db, get_current_account_id())
            jobs = repo.list_jobs(status=status, tech_id=tech_id)
            return jsonify({'success': True, 'jobs': [j.to_dict() for j in jobs], 'count': len(jobs)})

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error listing jobs: {e}")
        return json_error('Failed to fetch jobs', 500)


@jobs_bp.route('/api/jobs', methods=['POST'])
@permission_required('view_all_jobs')
def create_job():
    try:
        data = get_json_body()
        with get_db_session() as db:
            repo = CRMRepository(db, get_current_account_id(), get_current_user_id())
            job = repo.create_job(data)
            return jsonify({'success': True, 'job': job.to_dict()}), 201

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error creating job: {e}")
        return json_error('Failed to create job', 500)


@jobs_bp.route('/api/jobs/<job_id>', methods=['GET', 'PATCH'])
@login_required
def handle_job(job_id):
    try:
        with get_db_session() as db:
            account_id = get_current_account_id()
            user_id = get_current_user_id()
            job, error = load_owned(db, Job, job_id, account_id, 'Job')
            if error:
                return error

            if not has_permission('view_all_jobs') and job.tech_assigned_id != user_id:
                return json_error('Forbidden: job is not assigned to you', 403)

            if request.method == 'GET':
                return jsonify({'success': True, 'job': job.to_dict()})

            data = get_json_body()
            job = CRMRepository(db, account_id, user_id).update_job(job, data)
            return jsonify({'success': True, 'job': job.to_dict()})

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error handling job {job_id}: {e}")
        return json_error('Failed to process job request', 500)


@jobs_bp.route('/api/jobs/request', methods=['POST'])
@roles_required('tech', message='Only technicians can submit job requests')
def request_job():
    """Technician asks dispatch for a new job"""
    try:
        data = get_json_body()
        with get_db_session() as db:
            repo = CRMRepository(db, get_current_account_id(), get_current_user_id())
            job = repo.create_job_request(data)
            return jsonify({'success': True, 'job': job.to_dict()}), 201

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error creating job request: {e}")
        return json_error('Failed to create job request', 500)


@jobs_bp.route('/api/jobs/unassigned', methods=['GET'])
@permission_required('manage_dispatch')
def list_unassigned_jobs():
    try:
        with get_db_session() as db:
            jobs = CRMRepository(db, get_current_account_id()).list_pending_requests()
            return jsonify({'success': True, 'jobs': [j.to_dict() for j in jobs], 'count': len(jobs)})
    except Exception as e:
        logger.error(f"Error listing job requests: {e}")
        return json_error('Failed to fetch job requests', 500)


@jobs_bp.route('/api/jobs/unassigned', methods=['PATCH'])
@permission_required('manage_dispatch')
def review_job_request():
    """Approve or reject a pending request"""
    try:
        data = get_json_body()
        job_id = data.get('job_id')
        action = data.get('action')
        if not job_id or not action:
            return json_error('job_id and action are required')

        with get_db_session() as db:
            account_id = get_current_account_id()
            job, error = load_owned(db, Job, job_id, account_id, 'Job')
            if error:
                return error
            if job.request_status != 'pending':
                return json_error('Job request is not pending')

            repo = CRMRepository(db, account_id, get_current_user_id())
            job = repo.review_job_request(job, action, data.get('tech_id'))
            return jsonify({'success': True, 'job': job.to_dict()})

    except ValidationError as e:
        return validation_error(e)
    except Exception as e:
        logger.error(f"Error reviewing job request: {e}")
        return json_error('Failed to update job request', 500)

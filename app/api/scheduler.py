"""
Scheduler Routes Blueprint

Handles background job scheduler (owner/admin):
- /api/scheduler/status: Get scheduler status
- /api/scheduler/run/<job_id>: Manually trigger a job
"""

import logging
from flask import Blueprint, jsonify

from auth import admin_required
from app.utils.helpers import json_error
from services.scheduler import get_scheduler

logger = logging.getLogger(__name__)

# Create blueprint
scheduler_bp = Blueprint('scheduler_bp', __name__)


@scheduler_bp.route('/api/scheduler/status', methods=['GET'])
@admin_required
def get_scheduler_status():
    """Get the status of background jobs."""
    try:
        scheduler = get_scheduler()
        return jsonify({
            'success': True,
            'running': scheduler.running,
            'jobs': scheduler.get_job_status()
        })
    except Exception as e:
        logger.error(f"Error getting scheduler status: {e}")
        return json_error('Failed to read scheduler status', 500)


@scheduler_bp.route('/api/scheduler/run/<job_id>', methods=['POST'])
@admin_required
def run_scheduler_job(job_id):
    """Manually trigger a scheduled job."""
    try:
        outcome = get_scheduler().run_job_now(job_id)
        if outcome is None:
            return json_error('Job not found', 404)
        if not outcome:
            status = get_scheduler().get_job_status().get(job_id, {})
            return json_error(f"Job {job_id} failed", 500, detail=status.get('last_error'))
        return jsonify({'success': True, 'message': f'Job {job_id} executed'})
    except Exception as e:
        logger.error(f"Error running scheduler job: {e}")
        return json_error('Failed to run job', 500)

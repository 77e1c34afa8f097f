"""
Health Check & Monitoring Endpoints
Liveness, readiness (database reachable) and process metrics.
"""
import os
import sys
import time
import psutil
from datetime import datetime
from typing import Dict, Any
from flask import Blueprint, jsonify, current_app
import logging

logger = logging.getLogger(__name__)

SERVICE_NAME = 'fieldservice-crm'
SERVICE_VERSION = '1.0.0'

# Create Blueprint for health check routes
health_bp = Blueprint('health', __name__)

# Track application start time
START_TIME = time.time()


def _now_iso() -> str:
    from database.models import utcnow
    return utcnow().isoformat()


def get_system_metrics() -> Dict[str, Any]:
    """
    Process metrics from psutil. Empty when the platform refuses access.
    """
    try:
        process = psutil.Process()

        return {
            'cpu_percent': process.cpu_percent(interval=0.1),
            'memory_mb': round(process.memory_info().rss / 1024 / 1024, 2),
            'memory_percent': round(process.memory_percent(), 2),
            'threads': process.num_threads(),
        }
    except (psutil.Error, OSError) as e:
        logger.warning(f"Failed to get system metrics: {e}")
        return {}


def get_uptime() -> Dict[str, Any]:
    uptime_seconds = time.time() - START_TIME

    return {
        'uptime_seconds': round(uptime_seconds, 2),
        'uptime_hours': round(uptime_seconds / 3600, 2),
        'started_at': datetime.fromtimestamp(START_TIME).isoformat()
    }


def check_integrations(app) -> Dict[str, bool]:
    """Which optional external services are configured"""
    return {
        'google_maps': bool(app.config.get('GOOGLE_MAPS_API_KEY')),
        'scheduler': bool(app.config.get('ENABLE_SCHEDULER')),
    }


def check_database() -> Dict[str, Any]:
    from database.connection import check_db_connection, get_engine

    try:
        check_db_connection()
        return {'healthy': True, 'dialect': get_engine().dialect.name}
    except RuntimeError as e:
        return {'healthy': False, 'error': str(e)}


@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    Liveness check. Returns 200 whenever the process is serving requests.
    """
    return jsonify({
        'status': 'healthy',
        'timestamp': _now_iso(),
        'service': SERVICE_NAME
    }), 200


@health_bp.route('/ready', methods=['GET'])
def readiness_check():
    """
    Readiness check. 503 until the database answers.
    """
    database = check_database()
    is_ready = database['healthy']

    response = {
        'status': 'ready' if is_ready else 'not_ready',
        'timestamp': _now_iso(),
        'checks': {
            'database': database,
            'storage_mode': current_app.config.get('STORAGE_MODE'),
        }
    }
    return jsonify(response), 200 if is_ready else 503


@health_bp.route('/metrics', methods=['GET'])
def metrics():
    try:
        response = {
            'timestamp': _now_iso(),
            'service': SERVICE_NAME,
            'version': SERVICE_VERSION,
            'environment': os.environ.get('FLASK_ENV', 'production'),
            'uptime': get_uptime(),
            'system': get_system_metrics(),
            'integrations': check_integrations(current_app),
            'python_version': sys.version.split()[0]
        }
        return jsonify(response), 200

    except Exception as e:
        logger.error(f"Metrics collection failed: {e}")
        return jsonify({
            'status': 'error',
            'error': 'Metrics collection failed',
            'timestamp': _now_iso()
        }), 500


@health_bp.route('/ping', methods=['GET'])
def ping():
    return 'pong', 200


def register_health_checks(app):
    """Mount the health endpoints under /api"""
    app.register_blueprint(health_bp, url_prefix='/api')
    logger.info("Health check endpoints registered: /api/health, /api/ready, /api/metrics, /api/ping")

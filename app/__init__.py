"""
Field Service CRM - Application Package

This package contains the modular backend structure:
- api/: HTTP route handlers (Flask Blueprints)
- utils/: Shared helpers for the route handlers

The app factory lives in app_init.py at the project root. Business logic
lives in the top-level services/ package.

STORAGE POLICY:
- Production: DATABASE_URL is REQUIRED.
- Development: a local SQLite file is used when DATABASE_URL is unset.
"""

import logging

logger = logging.getLogger(__name__)

# Import blueprints
from app.api.auth_routes import auth_bp
from app.api.contacts import contacts_bp
from app.api.jobs import jobs_bp
from app.api.schedule import schedule_bp
from app.api.calendar import calendar_bp
from app.api.geofencing import geofencing_bp
from app.api.inbox import inbox_bp
from app.api.notifications import notifications_bp
from app.api.inventory import inventory_bp
from app.api.analytics import analytics_bp
from app.api.estimates import estimates_bp
from app.api.invoices import invoices_bp
from app.api.scheduler import scheduler_bp

BLUEPRINTS = (
    auth_bp,
    contacts_bp,
    jobs_bp,
    schedule_bp,
    calendar_bp,
    geofencing_bp,
    inbox_bp,
    notifications_bp,
    inventory_bp,
    analytics_bp,
    estimates_bp,
    invoices_bp,
    scheduler_bp,
)


def validate_storage_policy():
    """
    Validate storage configuration at startup.

    Raises:
        StoragePolicyError: If production mode without DATABASE_URL
    """
    from config import validate_storage_config, get_app_env, has_database, get_storage_mode

    env = get_app_env()
    storage_mode = get_storage_mode()

    logger.info(f"Environment: {env.upper()}")
    logger.info(f"Database configured: {has_database()}")
    logger.info(f"Storage mode: {storage_mode}")

    # This will raise if production without DB
    validate_storage_config()

    if storage_mode == 'sqlite_fallback':
        logger.warning("Using local SQLite fallback (development mode only)")

    return storage_mode


def register_blueprints(app):
    """
    Register all API blueprints with the Flask app.

    Raises:
        StoragePolicyError: If production mode without DATABASE_URL configured
    """
    # Validate storage policy FIRST (fail fast in production without DB)
    app.config['STORAGE_MODE'] = validate_storage_policy()

    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)


__all__ = ['register_blueprints', 'validate_storage_policy', 'app', 'BLUEPRINTS']


# ==============================================================================
# WSGI APP EXPORT FOR GUNICORN
# ==============================================================================
# Allows: gunicorn app:app
# The Flask app is created in application.py; __getattr__ defers the import
# to avoid a circular import with app_init.
# ==============================================================================

_flask_app = None


def __getattr__(name):
    """Lazy load the Flask app to avoid circular imports."""
    global _flask_app
    if name == 'app':
        if _flask_app is None:
            from application import app as flask_app
            _flask_app = flask_app
        return _flask_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

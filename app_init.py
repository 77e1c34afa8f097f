"""
Application Initialization Module
Builds the Flask app with config, logging, security, database and routes.
"""
import os
from flask import Flask
from config import get_config
from logging_config import setup_logging
from security import setup_security
from health_checks import register_health_checks
import logging

logger = logging.getLogger(__name__)


def create_app(config_class=None):
    """
    Application factory

    Args:
        config_class: Config class to load; defaults to the one selected by FLASK_ENV

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    app.config.from_object(config_class or get_config())

    setup_logging(app)

    logger.info("=" * 60)
    logger.info("Initializing Field Service CRM")
    logger.info("=" * 60)
    logger.info(f"Environment: {os.environ.get('FLASK_ENV', 'development')}")
    logger.info(f"Debug mode: {app.debug}")

    # Setup security (CORS, headers, error handlers)
    setup_security(app, app.config)

    initialize_database(app)

    # Routes; fails fast when production has no DATABASE_URL
    from app import register_blueprints
    register_blueprints(app)

    register_health_checks(app)

    if app.config.get('ENABLE_SCHEDULER'):
        initialize_scheduler(app)

    logger.info("Application initialization complete")
    logger.info("=" * 60)

    return app


def initialize_database(app):
    """
    Bind the engine to the configured URL and create missing tables
    when CREATE_TABLES is on.
    """
    from database.connection import init_engine, init_db

    init_engine(app.config['DATABASE_URL'], echo=app.config.get('DATABASE_ECHO', False))

    if app.config.get('CREATE_TABLES'):
        init_db()

    if app.config.get('SEED_DEFAULT_DATA'):
        from database.seed import seed_database
        seed_database()


def initialize_scheduler(app):
    from services.scheduler import init_scheduler

    scheduler = init_scheduler(app.config)
    app.extensions['background_scheduler'] = scheduler
    return scheduler

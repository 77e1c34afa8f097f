"""
Field Service CRM Application

Multi-tenant CRM for field-service businesses: contacts, jobs, dispatch
scheduling, inbox SLAs, estimates and invoices.

MODULAR ARCHITECTURE:
- app_init.py: application factory
- app/api/: Flask Blueprints, one per domain
- services/: repositories and business logic
- database/: SQLAlchemy models and session management

Run locally:
    python application.py
Production:
    gunicorn wsgi:app   (schema via: alembic upgrade head)
"""
import os
import logging

from app_init import create_app

logger = logging.getLogger(__name__)

app = create_app()


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    logger.info(f"Starting development server on port {port}")
    app.run(host='0.0.0.0', port=port, debug=app.config.get('DEBUG', False))

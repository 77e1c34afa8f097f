"""
WSGI entry point for Gunicorn

    gunicorn wsgi:app

app:app and application:app point at the same Flask app. Run
`alembic upgrade head` before the first start against a new database.
"""

from application import app  # noqa: F401

"""
Centralized Configuration for the Field Service CRM
Manages environment-specific settings, secrets, and service configurations.
"""
import os
from datetime import timedelta


class StoragePolicyError(RuntimeError):
    """Raised when the configured storage is not allowed in the current environment."""


def get_app_env():
    """Return the active environment name (development, production, testing)."""
    return os.environ.get('FLASK_ENV', 'development').lower()


def is_production():
    return get_app_env() == 'production'


def _normalize_database_url(url):
    # Render and Heroku still hand out postgres:// URLs
    if url and url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql://', 1)
    return url


def has_database():
    """True when DATABASE_URL points at a real database server."""
    return bool(os.environ.get('DATABASE_URL'))


def get_storage_mode():
    """
    Report which storage backend will be used.

    Returns:
        'database' when DATABASE_URL is set, 'sqlite_fallback' otherwise
    """
    return 'database' if has_database() else 'sqlite_fallback'


def validate_storage_config():
    """
    Enforce the storage policy.

    Production requires DATABASE_URL. Development and testing may fall back
    to a local SQLite file.

    Raises:
        StoragePolicyError: production without DATABASE_URL
    """
    if is_production() and not has_database():
        raise StoragePolicyError(
            "DATABASE_URL is required in production. "
            "SQLite fallback storage is only available in development."
        )


class Config:
    """Base configuration with defaults"""

    # Flask Settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or os.urandom(32).hex()
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024  # 5MB max JSON body
    JSON_SORT_KEYS = False

    # CORS Settings
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
    CORS_METHODS = ['GET', 'POST', 'PATCH', 'PUT', 'DELETE', 'OPTIONS']
    CORS_ALLOW_HEADERS = ['Content-Type', 'Authorization', 'X-Requested-With']

    # Database Settings
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    DATABASE_URL = _normalize_database_url(
        os.environ.get('DATABASE_URL')
    ) or 'sqlite:///' + os.path.join(BASE_DIR, 'fieldservice.db')
    DATABASE_ECHO = os.environ.get('DATABASE_ECHO', 'false').lower() == 'true'
    CREATE_TABLES = os.environ.get('CREATE_TABLES', 'true').lower() == 'true'
    SEED_DEFAULT_DATA = os.environ.get('SEED_DEFAULT_DATA', 'false').lower() == 'true'

    # Google Maps (Distance Matrix)
    GOOGLE_MAPS_API_KEY = os.environ.get('GOOGLE_MAPS_API_KEY')
    GOOGLE_MAPS_TIMEOUT = int(os.environ.get('GOOGLE_MAPS_TIMEOUT', '10'))  # seconds

    # Scheduling
    CALENDAR_CONFLICT_BUFFER_MINUTES = int(os.environ.get('CALENDAR_CONFLICT_BUFFER_MINUTES', '60'))
    DEFAULT_GEOFENCE_RADIUS_METERS = int(os.environ.get('DEFAULT_GEOFENCE_RADIUS_METERS', '100'))
    DEFAULT_TIMEZONE = os.environ.get('DEFAULT_TIMEZONE', 'UTC')

    # Inbox SLA
    SLA_AT_RISK_RATIO = float(os.environ.get('SLA_AT_RISK_RATIO', '0.75'))
    SLA_RECALC_INTERVAL = int(os.environ.get('SLA_RECALC_INTERVAL', '300'))  # seconds

    # Background Scheduler
    ENABLE_SCHEDULER = os.environ.get('ENABLE_SCHEDULER', 'false').lower() == 'true'
    NOTIFICATION_RETENTION_DAYS = int(os.environ.get('NOTIFICATION_RETENTION_DAYS', '30'))

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    LOG_FILE = os.environ.get('LOG_FILE', 'app.log')
    LOG_TO_FILE = os.environ.get('LOG_TO_FILE', 'true').lower() == 'true'

    # Session Configuration
    SESSION_PERMANENT = False
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)


class DevelopmentConfig(Config):
    """Development-specific configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = 'DEBUG'
    # Allow all CORS in development
    CORS_ORIGINS = ['*']


class ProductionConfig(Config):
    """Production-specific configuration"""
    DEBUG = False
    TESTING = False
    # Strict CORS in production
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'https://app.example.com').split(',')
    # Force HTTPS
    PREFERRED_URL_SCHEME = 'https'
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    CREATE_TABLES = False  # Alembic owns the schema


class TestingConfig(Config):
    """Testing-specific configuration"""
    DEBUG = True
    TESTING = True
    SECRET_KEY = 'a3f9c1d27b8e4f60a1c5d9e3b7f20468c4e1a9d3'
    DATABASE_URL = 'sqlite://'
    CREATE_TABLES = True
    SEED_DEFAULT_DATA = False
    LOG_TO_FILE = False
    ENABLE_SCHEDULER = False
    GOOGLE_MAPS_API_KEY = 'test-maps-key'


# Configuration selector
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}


def get_config():
    """Get configuration based on FLASK_ENV environment variable"""
    return config_by_name.get(get_app_env(), DevelopmentConfig)

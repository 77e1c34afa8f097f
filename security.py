"""
Security Utilities & Middleware
Secret key handling, CORS, response headers, JSON error handlers and request logging
"""
import os
import secrets
from typing import Dict, Any
from flask import Flask, request, jsonify, Response
from flask_cors import CORS
import logging

logger = logging.getLogger(__name__)

# Paths excluded from request logging
QUIET_PATHS = ('/api/health', '/api/ping', '/api/ready')


class SecurityConfig:
    """Secret key generation and validation"""

    WEAK_MARKERS = ('dev', 'test', 'secret', 'password', '12345', 'changeme')

    @staticmethod
    def generate_secret_key() -> str:
        """Generate a hex-encoded 256-bit secret key"""
        return secrets.token_hex(32)

    @staticmethod
    def validate_secret_key(secret_key: str) -> bool:
        """
        Validate that secret key is sufficiently secure

        Args:
            secret_key: Secret key to validate

        Returns:
            True if key is long enough and not an obvious placeholder
        """
        if not secret_key:
            return False

        if len(secret_key) < 32:
            logger.warning("Secret key is too short (minimum 32 characters)")
            return False

        lowered = secret_key.lower()
        if any(marker in lowered for marker in SecurityConfig.WEAK_MARKERS):
            logger.warning("Secret key appears to be weak or default")
            return False

        return True

    @staticmethod
    def ensure_secret_key(config: Dict[str, Any]) -> str:
        """
        Return the configured secret key, or a freshly generated one when
        the configured key is missing or weak.
        """
        secret_key = config.get('SECRET_KEY')

        if not secret_key or not SecurityConfig.validate_secret_key(secret_key):
            if os.environ.get('FLASK_ENV') == 'production':
                logger.error("No secure SECRET_KEY in production! Sessions will not survive a restart.")

            secret_key = SecurityConfig.generate_secret_key()
            logger.warning(f"Generated new secret key (length: {len(secret_key)})")

        return secret_key


def setup_security_headers(app: Flask):
    """
    Add security headers to all responses

    Args:
        app: Flask application instance
    """
    @app.after_request
    def add_security_headers(response: Response) -> Response:
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'

        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        # JSON API only, nothing to embed or execute
        response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=(), camera=()'

        return response

    logger.info("Security headers configured")


def setup_cors(app: Flask, config: Dict[str, Any]):
    """
    Configure CORS for the browser client

    Args:
        app: Flask application instance
        config: Application configuration dictionary
    """
    cors_origins = config.get('CORS_ORIGINS', ['*'])
    cors_methods = config.get('CORS_METHODS', ['GET', 'POST', 'PATCH', 'DELETE', 'OPTIONS'])
    cors_headers = config.get('CORS_ALLOW_HEADERS', ['Content-Type', 'Authorization'])

    if not app.debug and '*' in cors_origins:
        logger.warning("Using wildcard CORS in production! Set CORS_ORIGINS environment variable.")

    CORS(
        app,
        origins=cors_origins,
        methods=cors_methods,
        allow_headers=cors_headers,
        supports_credentials=True,
        max_age=3600
    )

    logger.info(f"CORS configured: origins={cors_origins}")


def sanitize_error_response(error: Exception, include_details: bool = False) -> Dict[str, Any]:
    """
    Build a 500 response body that never carries a stack trace

    Args:
        error: Exception object
        include_details: Whether to include the exception text (debug only)
    """
    error_response = {
        'success': False,
        'error': 'Internal Server Error',
        'message': 'An error occurred while processing your request'
    }

    if include_details:
        error_response['details'] = str(error)
        error_response['type'] = type(error).__name__

    return error_response


def _error_body(error: str, message: str) -> Dict[str, Any]:
    return {'success': False, 'error': error, 'message': message}


def setup_error_handlers(app: Flask):
    """
    Register JSON error handlers for the API

    Args:
        app: Flask application instance
    """
    include_details = app.debug

    simple_errors = {
        400: ('Bad Request', 'The request could not be understood or was missing required parameters'),
        401: ('Unauthorized', 'Authentication required'),
        403: ('Forbidden', 'You do not have permission to access this resource'),
        404: ('Not Found', 'The requested resource was not found'),
        405: ('Method Not Allowed', 'The method is not allowed for the requested URL'),
        413: ('Payload Too Large', 'The request body is too large'),
        429: ('Rate Limit Exceeded', 'Too many requests. Please try again later'),
        503: ('Service Unavailable', 'The service is temporarily unavailable. Please try again later'),
    }

    def make_handler(code, title, message):
        def handler(error):
            return jsonify(_error_body(title, message)), code
        handler.__name__ = f'handle_{code}'
        return handler

    for code, (title, message) in simple_errors.items():
        app.register_error_handler(code, make_handler(code, title, message))

    @app.errorhandler(500)
    def internal_server_error(error):
        logger.error(f"Internal server error: {error}", exc_info=True)
        return jsonify(sanitize_error_response(error, include_details)), 500

    logger.info("Error handlers registered")


def setup_request_logging(app: Flask):
    """
    Log every request and response line except health checks

    Args:
        app: Flask application instance
    """
    @app.before_request
    def log_request():
        if request.path in QUIET_PATHS:
            return

        logger.info(
            f"Request: {request.method} {request.path} "
            f"from {request.remote_addr}"
        )

    @app.after_request
    def log_response(response: Response) -> Response:
        if request.path in QUIET_PATHS:
            return response

        logger.info(
            f"Response: {request.method} {request.path} "
            f"status={response.status_code} "
            f"size={response.content_length}"
        )

        return response

    logger.info("Request logging configured")


def validate_environment_variables(required_vars: list, app: Flask) -> bool:
    """
    Warn about required environment variables that are not set

    Args:
        required_vars: List of required environment variable names
        app: Flask application instance

    Returns:
        True when every variable is present
    """
    missing_vars = [var for var in required_vars if not os.environ.get(var)]

    for var in missing_vars:
        logger.warning(f"Missing environment variable: {var}")

    if missing_vars and not app.debug:
        logger.error(f"Missing required environment variables in production: {missing_vars}")

    return not missing_vars


def setup_security(app: Flask, config: Dict[str, Any]):
    """
    Setup all security features for the application

    Args:
        app: Flask application instance
        config: Application configuration dictionary
    """
    logger.info("Configuring application security...")

    app.secret_key = SecurityConfig.ensure_secret_key(config)

    setup_cors(app, config)
    setup_security_headers(app)
    setup_error_handlers(app)
    setup_request_logging(app)

    if not app.debug:
        validate_environment_variables(
            ['SECRET_KEY', 'DATABASE_URL', 'GOOGLE_MAPS_API_KEY'],
            app
        )

    logger.info("Security configuration complete")

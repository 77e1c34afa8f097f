"""
Utilities Package

Shared helper functions used across the route handlers.
"""

from app.utils.helpers import (
    get_json_body,
    json_error,
    load_owned,
    validation_error,
)

__all__ = [
    'get_json_body',
    'json_error',
    'load_owned',
    'validation_error',
]

"""
Helper functions shared by the route handlers.
"""

from flask import jsonify, request

from validators import ValidationError


def json_error(message, status=400, **extra):
    """
    Build the standard error envelope.

    Returns:
        (response, status) tuple ready to return from a view
    """
    body = {'success': False, 'error': message}
    body.update(extra)
    return jsonify(body), status


def validation_error(error: ValidationError):
    extra = {'field': error.field} if error.field else {}
    return json_error(error.message, 400, **extra)


def get_json_body():
    """Request JSON as a dict; a missing body is an empty dict."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def load_owned(session, model, row_id, account_id, label):
    """
    Fetch a tenant-scoped row.

    Existence is checked before ownership, so a row from another account
    answers 403 rather than 404.

    Returns:
        (row, None) on success, (None, error_response) otherwise
    """
    row = session.get(model, row_id) if row_id else None
    if row is None:
        return None, json_error(f'{label} not found', 404)
    if row.account_id != account_id:
        return None, json_error('Forbidden', 403)
    return row, None

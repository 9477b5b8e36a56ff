"""
Helper functions shared by the blueprints.
"""

import logging
from typing import Any, Dict, Optional

from flask import current_app, g, jsonify, request

from services.errors import error_message, error_status
from validators import format_validation_error

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'ops_console'


def get_extensions() -> Dict[str, Any]:
    """Services injected by the app factory."""
    return current_app.extensions[EXTENSION_KEY]


def get_data_access():
    """
    DataAccess for the current request.

    Created on first use and closed by close_data_access at teardown.
    """
    if 'data_access' not in g:
        g.data_access = get_extensions()['data_access_factory']()
    return g.data_access


def close_data_access(exception=None):
    data_access = g.pop('data_access', None)
    if data_access is not None:
        data_access.close()


def get_service(service_class):
    """Build a page service with the request's collaborators."""
    extensions = get_extensions()
    return service_class(
        get_data_access(),
        functions=extensions.get('functions'),
        storage=extensions.get('storage'),
        config=current_app.config,
    )


def json_body() -> Dict[str, Any]:
    """Request JSON object, or an empty dict."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def arg_bool(name: str, default: bool = False) -> bool:
    value = request.args.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('true', '1', 'yes', 'on')


def arg_int(name: str, default: Optional[int] = None) -> Optional[int]:
    value = request.args.get(name)
    try:
        return int(value) if value not in (None, '') else default
    except ValueError:
        return default


def error_response(error: Exception, context: str):
    """
    Log an error and build the JSON failure response.

    Args:
        error: Exception raised while handling the request
        context: What the endpoint was doing, for the log line

    Returns:
        (response, status) tuple with {'success': False, 'error': message}
    """
    status = error_status(error)
    message = error_message(error)
    if status >= 500:
        logger.error(f"{context}: {message}", exc_info=not hasattr(error, 'status_code'))
    else:
        logger.warning(f"{context}: {message}")

    field = getattr(error, 'field', None)
    if field:
        return jsonify(format_validation_error(field, message)), status
    return jsonify({'success': False, 'error': message}), status

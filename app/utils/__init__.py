"""
Utilities Package

Shared helper functions used by the blueprints.
"""

from app.utils.helpers import (
    arg_bool,
    arg_int,
    close_data_access,
    error_response,
    get_data_access,
    get_extensions,
    get_service,
    json_body,
)

__all__ = [
    'arg_bool',
    'arg_int',
    'close_data_access',
    'error_response',
    'get_data_access',
    'get_extensions',
    'get_service',
    'json_body',
]

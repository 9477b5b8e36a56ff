"""
Error types raised by the service layer.

Each error carries the HTTP status the blueprints report it with.
ValidationError lives in validators.py next to the checks that raise it.
"""

from validators import ValidationError


class ServiceError(Exception):
    """Base class for errors reported to the client as {'success': False}."""
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DataAccessError(ServiceError):
    """The data store rejected or failed a request (network, permission, constraint)."""
    status_code = 500


class NotFoundError(ServiceError):
    """The requested record does not exist."""
    status_code = 404


class FunctionInvocationError(ServiceError):
    """A remote function failed or reported {'success': false}."""
    status_code = 502


class StorageError(ServiceError):
    """Object storage rejected a path, file type or missing object."""
    status_code = 400


def error_status(error: Exception) -> int:
    """HTTP status for an error raised by a service."""
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, ServiceError):
        return error.status_code
    return 500


def error_message(error: Exception) -> str:
    return getattr(error, 'message', None) or str(error)

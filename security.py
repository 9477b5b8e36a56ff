"""
HTTP hardening for the ops console API.

Secret key checks, CORS for the console front end, response headers,
JSON error pages and per-request access logging.
"""
import logging
import os
import secrets
import time
from typing import Any, Dict, List

from flask import Flask, Response, g, jsonify, request
from flask_cors import CORS

logger = logging.getLogger(__name__)

# Probes polled by the platform; not worth an access log line each
QUIET_PATHS = ('/api/health', '/api/ping')

WEAK_KEY_FRAGMENTS = ('dev', 'test', 'secret', 'password', '12345', 'changeme')
MIN_SECRET_KEY_LENGTH = 32

RESPONSE_HEADERS = {
    'X-Frame-Options': 'SAMEORIGIN',
    'X-Content-Type-Options': 'nosniff',
    'X-XSS-Protection': '1; mode=block',
    # API answers JSON; stored images may be shown inline
    'Content-Security-Policy': "default-src 'none'; img-src 'self' data:; frame-ancestors 'self'",
    'Referrer-Policy': 'strict-origin-when-cross-origin',
    'Permissions-Policy': 'geolocation=(), microphone=(), camera=()',
}

ERROR_PAGES = {
    400: ('Bad Request', 'The request could not be understood or was missing required parameters'),
    404: ('Not Found', 'The requested resource was not found'),
    405: ('Method Not Allowed', 'The method is not allowed for the requested URL'),
    413: ('Payload Too Large', 'The uploaded file or request is too large'),
    503: ('Service Unavailable', 'The service is temporarily unavailable. Please try again later'),
}


class SecurityConfig:
    """Secret key policy."""

    @staticmethod
    def generate_secret_key() -> str:
        return secrets.token_hex(MIN_SECRET_KEY_LENGTH)

    @staticmethod
    def validate_secret_key(secret_key: str) -> bool:
        """True when the key is long enough and not an obvious placeholder."""
        if not secret_key:
            return False
        if len(secret_key) < MIN_SECRET_KEY_LENGTH:
            logger.warning(f"SECRET_KEY shorter than {MIN_SECRET_KEY_LENGTH} characters")
            return False
        lowered = secret_key.lower()
        if any(fragment in lowered for fragment in WEAK_KEY_FRAGMENTS):
            logger.warning("SECRET_KEY looks like a placeholder")
            return False
        return True

    @staticmethod
    def ensure_secret_key(config: Dict[str, Any]) -> str:
        """
        Return the configured key, or a fresh random one when it fails validation.

        A generated key changes on every restart, so production deployments
        are told to set SECRET_KEY explicitly.
        """
        secret_key = config.get('SECRET_KEY')
        if SecurityConfig.validate_secret_key(secret_key):
            return secret_key

        if os.environ.get('FLASK_ENV') == 'production':
            logger.error("No usable SECRET_KEY in production; set it in the environment")
        generated = SecurityConfig.generate_secret_key()
        logger.warning(f"Using a generated SECRET_KEY (length {len(generated)})")
        return generated


def setup_security_headers(app: Flask):
    @app.after_request
    def add_security_headers(response: Response) -> Response:
        response.headers.update(RESPONSE_HEADERS)
        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    logger.debug("Response headers configured")


def setup_cors(app: Flask, config: Dict[str, Any]):
    """Allow the console front end to call /api/* from its configured origins."""
    origins = config.get('CORS_ORIGINS', ['*'])

    if not app.debug and '*' in origins:
        logger.warning("Wildcard CORS outside debug; set CORS_ORIGINS")

    CORS(
        app,
        resources={r'/api/*': {'origins': origins}},
        methods=config.get('CORS_METHODS', ['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS']),
        allow_headers=config.get('CORS_ALLOW_HEADERS', ['Content-Type', 'Authorization']),
        supports_credentials=True,
        max_age=3600,
    )
    logger.info(f"CORS origins: {origins}")


def internal_error_body(error: Exception, include_details: bool = False) -> Dict[str, Any]:
    """JSON body for an unhandled error; details only when debugging."""
    body = {
        'success': False,
        'error': 'Internal Server Error',
        'message': 'An error occurred while processing your request',
    }
    if include_details:
        body['details'] = str(error)
        body['type'] = type(error).__name__
    return body


def _error_page(status: int):
    title, message = ERROR_PAGES[status]

    def handler(error):
        return jsonify({'success': False, 'error': title, 'message': message}), status

    handler.__name__ = f'error_{status}'
    return handler


def setup_error_handlers(app: Flask):
    """JSON error pages for every status the console can answer with."""
    for status in ERROR_PAGES:
        app.register_error_handler(status, _error_page(status))

    @app.errorhandler(500)
    def internal_server_error(error):
        logger.error(f"Unhandled error on {request.method} {request.path}: {error}", exc_info=True)
        return jsonify(internal_error_body(error, app.debug)), 500

    logger.debug(f"Error pages registered for {sorted(ERROR_PAGES) + [500]}")


def setup_request_logging(app: Flask):
    """One access line per request with status and duration."""
    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_response(response: Response) -> Response:
        if request.path in QUIET_PATHS:
            return response

        started = g.pop('request_started', None)
        elapsed_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        logger.info(
            f"{request.method} {request.path} -> {response.status_code} "
            f"({elapsed_ms:.1f} ms, {response.content_length or 0} bytes, {request.remote_addr})"
        )
        return response


def missing_environment_variables(config: Dict[str, Any]) -> List[str]:
    """Environment variables a production deployment of the console must set."""
    required = ['SECRET_KEY', 'DATABASE_URL']
    if (config.get('FUNCTIONS_MODE') or 'local').lower() == 'http':
        required.append('FUNCTIONS_BASE_URL')
    return [name for name in required if not os.environ.get(name)]


def setup_security(app: Flask, config: Dict[str, Any]):
    app.secret_key = SecurityConfig.ensure_secret_key(config)
    setup_cors(app, config)
    setup_security_headers(app)
    setup_error_handlers(app)
    setup_request_logging(app)

    if not app.debug and not app.testing:
        missing = missing_environment_variables(config)
        if missing:
            logger.error(f"Missing environment variables: {', '.join(missing)}")

    logger.info("Security configured")

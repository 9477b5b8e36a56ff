"""
Operational probes for the ops console.

/api/health and /api/ping only prove the process answers. /api/ready
checks the data store, the object storage root, the log directory and
the remote functions configuration. /api/metrics adds process figures.
"""
import logging
import os
import sys
import time
from datetime import datetime
from typing import Any, Dict, Tuple

import psutil
from flask import Blueprint, current_app, jsonify

from database.connection import check_db_connection

logger = logging.getLogger(__name__)

SERVICE_NAME = 'ops-console'
SERVICE_VERSION = '1.0.0'

health_bp = Blueprint('health', __name__)

START_TIME = time.time()


def _extensions(app) -> Dict[str, Any]:
    return app.extensions.get('ops_console', {})


def _now() -> str:
    return datetime.utcnow().isoformat()


def get_system_metrics() -> Dict[str, Any]:
    """CPU, memory and file handles of the serving process; empty when psutil fails."""
    try:
        process = psutil.Process()
        memory = process.memory_info()
        return {
            'cpu_percent': process.cpu_percent(interval=0.1),
            'memory_mb': round(memory.rss / (1024 * 1024), 2),
            'memory_percent': round(process.memory_percent(), 2),
            'threads': process.num_threads(),
            'open_files': len(process.open_files()),
        }
    except Exception as e:
        logger.warning(f"Process metrics unavailable: {e}")
        return {}


def get_uptime() -> Dict[str, Any]:
    elapsed = time.time() - START_TIME
    return {
        'uptime_seconds': round(elapsed, 2),
        'uptime_minutes': round(elapsed / 60, 2),
        'uptime_hours': round(elapsed / 3600, 2),
        'started_at': datetime.fromtimestamp(START_TIME).isoformat(),
    }


def check_database(app) -> Dict[str, Any]:
    """
    Run a trivial query against the record store.

    Args:
        app: Flask application carrying the console extensions

    Returns:
        {'healthy': bool, 'backend': dialect name, 'error': message on failure}
    """
    engine = _extensions(app).get('engine')
    if engine is None:
        return {'healthy': False, 'error': 'Database engine not initialized'}

    status = {'backend': engine.dialect.name}
    try:
        check_db_connection(engine)
    except RuntimeError as e:
        logger.warning(f"Record store probe failed: {e}")
        return {**status, 'healthy': False, 'error': str(e)}
    return {**status, 'healthy': True}


def check_change_feed(app) -> Dict[str, Any]:
    """Subscriptions currently registered on the change feed."""
    feed = _extensions(app).get('change_feed')
    if feed is None:
        return {'available': False}
    return {'available': True, 'subscriptions': feed.subscription_count()}


def check_functions(app) -> Dict[str, Any]:
    """How remote functions are dispatched: in process or over HTTP."""
    invoker = _extensions(app).get('functions')
    if invoker is None:
        return {'configured': False}

    base_url = getattr(invoker, 'base_url', None)
    if base_url:
        return {'configured': True, 'mode': 'http', 'base_url': base_url}
    return {'configured': True, 'mode': 'local',
            'functions': sorted(getattr(invoker, 'handlers', {}))}


def _directory_status(path: str) -> Dict[str, bool]:
    exists = os.path.exists(path)
    writable = exists and os.access(path, os.W_OK)
    return {'exists': exists, 'writable': writable, 'healthy': exists and writable}


def check_filesystem(app=None) -> Dict[str, Dict[str, bool]]:
    """
    Directories the console writes to.

    Without an app only ./logs is checked; with one, the configured
    LOG_DIR and STORAGE_ROOT are.
    """
    if app is None:
        directories = {'logs': os.path.join(os.getcwd(), 'logs')}
    else:
        directories = {
            'logs': os.path.abspath(app.config.get('LOG_DIR', 'logs')),
            'storage': os.path.abspath(app.config.get('STORAGE_ROOT', 'storage')),
        }
    return {name: _directory_status(path) for name, path in directories.items()}


def collect_readiness(app) -> Tuple[bool, Dict[str, Any]]:
    """Readiness verdict plus the checks it was derived from."""
    database = check_database(app)
    filesystem = check_filesystem(app)
    functions = check_functions(app)
    filesystem_healthy = all(entry['healthy'] for entry in filesystem.values())

    checks = {
        'database': database,
        'filesystem': filesystem,
        'filesystem_healthy': filesystem_healthy,
        'functions': functions,
    }
    ready = database['healthy'] and filesystem_healthy and functions['configured']
    return ready, checks


@health_bp.route('/health', methods=['GET'])
def health_check():
    """Liveness: the process serves requests."""
    return jsonify({'status': 'healthy', 'timestamp': _now(), 'service': SERVICE_NAME}), 200


@health_bp.route('/ready', methods=['GET'])
def readiness_check():
    """200 when the console can serve pages, 503 otherwise."""
    try:
        ready, checks = collect_readiness(current_app)
    except Exception as e:
        logger.error(f"Readiness probe crashed: {e}", exc_info=True)
        return jsonify({'status': 'error', 'error': str(e), 'timestamp': _now()}), 503

    if not ready:
        logger.warning(f"Console not ready: {checks}")
    return jsonify({
        'status': 'ready' if ready else 'not_ready',
        'timestamp': _now(),
        'checks': checks,
    }), 200 if ready else 503


@health_bp.route('/metrics', methods=['GET'])
def metrics():
    try:
        app = current_app
        payload = {
            'timestamp': _now(),
            'service': SERVICE_NAME,
            'version': SERVICE_VERSION,
            'environment': os.environ.get('FLASK_ENV', 'production'),
            'python_version': sys.version.split()[0],
            'uptime': get_uptime(),
            'system': get_system_metrics(),
            'database': check_database(app),
            'change_feed': check_change_feed(app),
            'functions': check_functions(app),
            'filesystem': check_filesystem(app),
        }
    except Exception as e:
        logger.error(f"Metrics collection failed: {e}", exc_info=True)
        return jsonify({'status': 'error', 'error': str(e), 'timestamp': _now()}), 500
    return jsonify(payload), 200


@health_bp.route('/ping', methods=['GET'])
def ping():
    return 'pong', 200


def register_health_checks(app):
    """Mount the probes under /api."""
    app.register_blueprint(health_bp, url_prefix='/api')
    logger.info("Probes mounted: /api/health, /api/ready, /api/metrics, /api/ping")

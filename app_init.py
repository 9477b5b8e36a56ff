"""
Application Initialization Module
Initializes the Flask app with the data store, change feed, storage and remote functions
"""
import os
from flask import Flask
from config import config_by_name, get_app_env
from logging_config import setup_logging
from security import setup_security
from health_checks import register_health_checks
from database.connection import create_db_engine, create_session_factory, init_db
from services.change_feed import ChangeFeed
from services.data_access import DataAccess
from services.functions import build_function_invoker
from services.storage import ObjectStorage
from app import register_blueprints
from app.utils.helpers import EXTENSION_KEY, close_data_access
import logging

logger = logging.getLogger(__name__)


def create_app(config_name=None, data_access_factory=None, overrides=None):
    """
    Application factory that creates and configures Flask app with all infrastructure

    Args:
        config_name: Key of config_by_name; defaults to FLASK_ENV
        data_access_factory: Callable returning a DataAccess; defaults to one
            bound to DATABASE_URL
        overrides: Config values applied after the config class

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    # Load configuration
    config_name = config_name or get_app_env()
    app.config.from_object(config_by_name.get(config_name, config_by_name['default']))
    if overrides:
        app.config.update(overrides)

    setup_logging(app)

    logger.info("=" * 60)
    logger.info("🚀 Initializing Operations Console")
    logger.info("=" * 60)
    logger.info(f"Environment: {config_name}")
    logger.info(f"Debug mode: {app.debug}")

    # Setup security (CORS, headers, error handlers)
    setup_security(app, app.config)

    create_required_directories(app)

    engine = create_db_engine(app.config['DATABASE_URL'], **app.config.get('SQLALCHEMY_ENGINE_OPTIONS', {}))
    session_factory = create_session_factory(engine)
    if app.config.get('AUTO_CREATE_TABLES'):
        init_db(engine)

    change_feed = ChangeFeed(app.config.get('CHANGE_FEED_QUEUE_SIZE', 1000))
    if data_access_factory is None:
        def data_access_factory():
            return DataAccess(session_factory(), change_feed)

    storage = ObjectStorage(app.config['STORAGE_ROOT'], app.config.get('STORAGE_PUBLIC_URL', '/api/files'))
    functions = build_function_invoker(app.config, data_access_factory, storage)

    app.extensions[EXTENSION_KEY] = {
        'engine': engine,
        'session_factory': session_factory,
        'change_feed': change_feed,
        'data_access_factory': data_access_factory,
        'storage': storage,
        'functions': functions,
    }

    register_blueprints(app)
    register_health_checks(app)
    app.teardown_appcontext(close_data_access)

    logger.info("✅ Application initialization complete")
    logger.info("=" * 60)

    return app


def create_required_directories(app):
    """
    Create all required application directories

    Args:
        app: Flask application instance
    """
    directories = [app.config['STORAGE_ROOT'], app.config.get('LOG_DIR', 'logs')]

    for directory in directories:
        try:
            os.makedirs(directory, exist_ok=True)
            logger.debug(f"Directory ensured: {directory}")
        except OSError as e:
            logger.error(f"Failed to create directory {directory}: {e}")

    logger.info(f"✅ Created {len(directories)} required directories")

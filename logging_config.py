"""
Centralized Logging Configuration
Console output plus a rotating log file for the Operations Console
"""
import logging
import logging.handlers
from pathlib import Path

LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5

# Chatty libraries only report warnings and above
QUIET_LOGGERS = ('werkzeug', 'urllib3', 'sqlalchemy.engine')


def _configure(handler, level, formatter):
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(app):
    """
    Setup application-wide logging with file rotation and console output

    Args:
        app: Flask application instance

    Returns:
        The configured root logger
    """
    log_level = getattr(logging, app.config['LOG_LEVEL'].upper(), logging.INFO)
    formatter = logging.Formatter(app.config['LOG_FORMAT'])

    log_dir = Path(app.config.get('LOG_DIR', 'logs'))
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / app.config['LOG_FILE']

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Handlers installed by an earlier app instance would duplicate every line
    for handler in list(root_logger.handlers):
        if getattr(handler, '_ops_console', False):
            root_logger.removeHandler(handler)
            handler.close()

    handlers = [
        logging.StreamHandler(),
        logging.handlers.RotatingFileHandler(log_path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT),
    ]
    for handler in handlers:
        handler._ops_console = True
        root_logger.addHandler(_configure(handler, log_level, formatter))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    app.logger.info(f"Logging initialized at {logging.getLevelName(log_level)} level")
    app.logger.info(f"Log file: {log_path}")

    return root_logger

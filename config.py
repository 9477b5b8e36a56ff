"""
Centralized Configuration for the Operations Console
Manages environment-specific settings, secrets, and service configurations.
"""
import os
import tempfile


class Config:
    """Base configuration with defaults"""

    # Flask Settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or os.urandom(32).hex()
    MAX_CONTENT_LENGTH = 25 * 1024 * 1024  # 25MB max file upload

    # CORS Settings
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
    CORS_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']
    CORS_ALLOW_HEADERS = ['Content-Type', 'Authorization', 'X-Requested-With']

    # Data store
    DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///ops_console.db')
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }
    # Create missing tables at startup (local development only)
    AUTO_CREATE_TABLES = os.environ.get('AUTO_CREATE_TABLES', 'false').lower() == 'true'

    # Object storage
    STORAGE_ROOT = os.environ.get('STORAGE_ROOT', 'storage')
    STORAGE_PUBLIC_URL = os.environ.get('STORAGE_PUBLIC_URL', '/api/files')

    # Remote functions
    FUNCTIONS_MODE = os.environ.get('FUNCTIONS_MODE', 'local')  # local, http
    FUNCTIONS_BASE_URL = os.environ.get('FUNCTIONS_BASE_URL', '')
    FUNCTIONS_API_KEY = os.environ.get('FUNCTIONS_API_KEY', '')
    FUNCTIONS_TIMEOUT = int(os.environ.get('FUNCTIONS_TIMEOUT', '30'))  # seconds

    # External configurator (Vesuviano leads)
    CONFIGURATOR_API_URL = os.environ.get('CONFIGURATOR_API_URL', '')
    CONFIGURATOR_API_KEY = os.environ.get('CONFIGURATOR_API_KEY', '')

    # Email
    SMTP_HOST = os.environ.get('SMTP_HOST', '')
    SMTP_PORT = int(os.environ.get('SMTP_PORT', '587'))
    SMTP_USER = os.environ.get('SMTP_USER', '')
    SMTP_PASSWORD = os.environ.get('SMTP_PASSWORD', '')
    FROM_EMAIL = os.environ.get('FROM_EMAIL', 'noreply@example.com')

    # View state
    CHANGE_FEED_QUEUE_SIZE = int(os.environ.get('CHANGE_FEED_QUEUE_SIZE', '1000'))
    LEADS_PAGE_SIZE = int(os.environ.get('LEADS_PAGE_SIZE', '100'))

    # Offers
    OFFER_CODE_PREFIX = os.environ.get('OFFER_CODE_PREFIX', 'OFF')

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    LOG_DIR = os.environ.get('LOG_DIR', 'logs')
    LOG_FILE = os.environ.get('LOG_FILE', 'app.log')


class DevelopmentConfig(Config):
    """Development-specific configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = 'DEBUG'
    AUTO_CREATE_TABLES = True
    # Allow all CORS in development
    CORS_ORIGINS = ['*']


class ProductionConfig(Config):
    """Production-specific configuration"""
    DEBUG = False
    TESTING = False
    # Strict CORS in production
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'https://ops-console.example.com').split(',')
    # Force HTTPS
    PREFERRED_URL_SCHEME = 'https'
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class TestingConfig(Config):
    """Testing-specific configuration"""
    DEBUG = True
    TESTING = True
    DATABASE_URL = 'sqlite://'
    AUTO_CREATE_TABLES = True
    FUNCTIONS_MODE = 'local'
    STORAGE_ROOT = os.path.join(tempfile.gettempdir(), 'ops_console_storage')
    SMTP_HOST = ''
    CONFIGURATOR_API_URL = ''


# Configuration selector
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}


def get_app_env():
    """Current application environment name"""
    return os.environ.get('FLASK_ENV', 'development')


def is_production():
    """True when running with the production configuration"""
    return get_app_env() == 'production'


def get_config():
    """Get configuration based on FLASK_ENV environment variable"""
    return config_by_name.get(get_app_env(), DevelopmentConfig)

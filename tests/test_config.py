"""
Tests for the environment configurations
"""
import os
import pytest
from config import (
    Config,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    config_by_name,
    get_config,
    is_production
)


@pytest.mark.unit
class TestConsoleDefaults:
    """Tests for the settings every environment inherits"""

    def test_upload_limit_covers_largest_document(self):
        """Test the request limit is above the per-file document limit"""
        from validators import MAX_DOCUMENT_SIZE
        assert Config.MAX_CONTENT_LENGTH == 25 * 1024 * 1024
        assert Config.MAX_CONTENT_LENGTH > MAX_DOCUMENT_SIZE

    def test_cors_allows_console_verbs(self):
        """Test the front end may read, write and delete"""
        assert {'GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'} <= set(Config.CORS_METHODS)
        assert 'Content-Type' in Config.CORS_ALLOW_HEADERS

    def test_store_and_storage_locations(self):
        """Test a database URL and a storage root are always set"""
        assert Config.DATABASE_URL
        assert Config.STORAGE_ROOT
        assert Config.STORAGE_PUBLIC_URL == '/api/files'

    def test_functions_defaults(self):
        """Test functions run in process with a positive HTTP timeout"""
        assert Config.FUNCTIONS_MODE in ('local', 'http')
        assert Config.FUNCTIONS_TIMEOUT > 0

    def test_view_and_offer_defaults(self):
        """Test queue size, page size and offer prefix"""
        assert Config.CHANGE_FEED_QUEUE_SIZE > 0
        assert Config.LEADS_PAGE_SIZE > 0
        assert Config.OFFER_CODE_PREFIX

    def test_logging_defaults(self):
        """Test the log file name and record format"""
        assert Config.LOG_FILE == 'app.log'
        assert '%(name)s' in Config.LOG_FORMAT


@pytest.mark.unit
class TestEnvironments:
    """Tests for the per-environment overrides"""

    @pytest.mark.parametrize('config_class, debug, testing', [
        (DevelopmentConfig, True, False),
        (ProductionConfig, False, False),
        (TestingConfig, True, True),
    ])
    def test_debug_and_testing_flags(self, config_class, debug, testing):
        """Test DEBUG and TESTING per environment"""
        assert config_class.DEBUG is debug
        assert config_class.TESTING is testing

    def test_development_is_permissive(self):
        """Test development logs verbosely, creates tables and allows any origin"""
        assert DevelopmentConfig.LOG_LEVEL == 'DEBUG'
        assert DevelopmentConfig.AUTO_CREATE_TABLES is True
        assert DevelopmentConfig.CORS_ORIGINS == ['*']

    def test_production_is_locked_down(self):
        """Test production cookies, scheme and origins"""
        assert ProductionConfig.PREFERRED_URL_SCHEME == 'https'
        assert ProductionConfig.SESSION_COOKIE_SECURE is True
        assert ProductionConfig.SESSION_COOKIE_HTTPONLY is True
        assert ProductionConfig.SESSION_COOKIE_SAMESITE == 'Lax'
        assert '*' not in ProductionConfig.CORS_ORIGINS

    def test_testing_stays_offline(self):
        """Test the testing store is in memory and nothing external is called"""
        assert TestingConfig.DATABASE_URL == 'sqlite://'
        assert TestingConfig.AUTO_CREATE_TABLES is True
        assert TestingConfig.FUNCTIONS_MODE == 'local'
        assert TestingConfig.SMTP_HOST == ''
        assert TestingConfig.CONFIGURATOR_API_URL == ''


@pytest.mark.unit
class TestSelection:
    """Tests for picking the configuration from FLASK_ENV"""

    def test_default_entry(self):
        """Test 'default' maps to development"""
        assert config_by_name['default'] is DevelopmentConfig

    @pytest.mark.parametrize('env, expected', [
        ('development', DevelopmentConfig),
        ('production', ProductionConfig),
        ('testing', TestingConfig),
        ('staging', DevelopmentConfig),
    ])
    def test_flask_env_selects_config(self, monkeypatch, env, expected):
        """Test each FLASK_ENV value, unknown ones falling back to development"""
        monkeypatch.setenv('FLASK_ENV', env)
        assert get_config() is expected
        assert is_production() is (env == 'production')

    def test_unset_env_is_development(self, monkeypatch):
        """Test an unset FLASK_ENV"""
        monkeypatch.delenv('FLASK_ENV', raising=False)
        assert get_config() is DevelopmentConfig

    def test_env_fixture_selects_testing(self, test_env_vars):
        """Test the shared environment fixture"""
        assert os.environ['DATABASE_URL'] == 'sqlite://'
        assert get_config() is TestingConfig

"""
Tests for HTTP hardening
"""
import logging
import pytest
from security import (
    ERROR_PAGES,
    SecurityConfig,
    internal_error_body,
    missing_environment_variables,
)


@pytest.mark.unit
class TestSecretKey:
    """Tests for the secret key policy"""

    def test_generated_key_is_valid(self):
        """Test a generated key passes validation"""
        key = SecurityConfig.generate_secret_key()
        assert len(key) == 64
        assert SecurityConfig.validate_secret_key(key)

    @pytest.mark.parametrize('key', ['', None, 'short', 'x' * 20 + 'password' + 'y' * 20])
    def test_weak_keys_rejected(self, key):
        """Test empty, short and placeholder keys"""
        assert not SecurityConfig.validate_secret_key(key)

    def test_valid_key_kept(self):
        """Test a strong configured key is returned unchanged"""
        key = 'a8f5f167f44f4964e6c998dee827110c-b1946ac92492d2347c6235b4d2611184'
        assert SecurityConfig.ensure_secret_key({'SECRET_KEY': key}) == key

    def test_weak_key_replaced(self, caplog):
        """Test a weak key is swapped for a generated one"""
        with caplog.at_level(logging.WARNING, logger='security'):
            key = SecurityConfig.ensure_secret_key({'SECRET_KEY': 'dev'})
        assert key != 'dev'
        assert len(key) == 64
        assert 'generated SECRET_KEY' in caplog.text


@pytest.mark.unit
class TestErrorBodies:
    """Tests for JSON error bodies"""

    def test_internal_error_hides_details(self):
        """Test details are left out unless debugging"""
        body = internal_error_body(ValueError('db password is hunter2'))
        assert body['success'] is False
        assert 'details' not in body

    def test_internal_error_details_when_debugging(self):
        """Test details and type are included when asked"""
        body = internal_error_body(ValueError('boom'), include_details=True)
        assert body['details'] == 'boom'
        assert body['type'] == 'ValueError'


@pytest.mark.unit
class TestEnvironment:
    """Tests for production environment checks"""

    def test_local_functions(self, monkeypatch):
        """Test local mode needs only the key and the database"""
        monkeypatch.delenv('SECRET_KEY', raising=False)
        monkeypatch.setenv('DATABASE_URL', 'sqlite://')
        assert missing_environment_variables({'FUNCTIONS_MODE': 'local'}) == ['SECRET_KEY']

    def test_http_functions_need_base_url(self, monkeypatch):
        """Test http mode also needs FUNCTIONS_BASE_URL"""
        monkeypatch.setenv('SECRET_KEY', 'k')
        monkeypatch.setenv('DATABASE_URL', 'sqlite://')
        monkeypatch.delenv('FUNCTIONS_BASE_URL', raising=False)
        assert missing_environment_variables({'FUNCTIONS_MODE': 'HTTP'}) == ['FUNCTIONS_BASE_URL']


@pytest.mark.integration
class TestHardenedResponses:
    """Tests through the application"""

    def test_headers_on_every_response(self, client):
        """Test hardening headers on a probe response"""
        response = client.get('/api/ping')
        assert response.headers['X-Frame-Options'] == 'SAMEORIGIN'
        assert response.headers['Referrer-Policy'] == 'strict-origin-when-cross-origin'
        assert "default-src 'none'" in response.headers['Content-Security-Policy']

    def test_method_not_allowed_is_json(self, client):
        """Test 405 uses the JSON error page"""
        response = client.patch('/api/ping')
        assert response.status_code == 405
        assert response.get_json() == {
            'success': False, 'error': ERROR_PAGES[405][0], 'message': ERROR_PAGES[405][1],
        }

    def test_cors_preflight(self, client):
        """Test the API answers CORS preflight requests"""
        response = client.options('/api/customers', headers={
            'Origin': 'https://console.example.com',
            'Access-Control-Request-Method': 'POST',
        })
        assert 'Access-Control-Allow-Origin' in response.headers

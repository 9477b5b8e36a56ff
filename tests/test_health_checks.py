"""
Tests for the operational probes
"""
import time
import pytest
from unittest.mock import Mock, patch
from health_checks import (
    check_change_feed,
    check_database,
    check_filesystem,
    check_functions,
    collect_readiness,
    get_system_metrics,
    get_uptime,
)
from services.functions import HttpFunctionInvoker, LocalFunctionInvoker


def console_app(**extensions):
    app = Mock()
    app.extensions = {'ops_console': extensions}
    return app


@pytest.mark.unit
class TestProcessFigures:
    """Tests for process metrics and uptime"""

    def test_metrics_report_memory(self):
        """Test memory figures are present when psutil works"""
        metrics = get_system_metrics()
        assert isinstance(metrics, dict)
        if metrics:
            assert {'memory_mb', 'memory_percent', 'threads'} <= set(metrics)

    @patch('health_checks.psutil.Process')
    def test_metrics_empty_when_psutil_fails(self, mock_process):
        """Test a psutil failure yields an empty mapping"""
        mock_process.side_effect = RuntimeError("no /proc")
        assert get_system_metrics() == {}

    def test_uptime_grows(self):
        """Test uptime is monotonic and carries its start time"""
        first = get_uptime()
        time.sleep(0.05)
        second = get_uptime()
        assert second['uptime_seconds'] > first['uptime_seconds']
        assert second['started_at'] == first['started_at']


@pytest.mark.unit
class TestStoreAndFeedChecks:
    """Tests for the record store and change feed checks"""

    def test_reachable_store(self, engine):
        """Test a reachable engine is healthy and names its backend"""
        assert check_database(console_app(engine=engine)) == {'healthy': True, 'backend': 'sqlite'}

    def test_store_not_initialized(self):
        """Test an app without an engine"""
        app = Mock()
        app.extensions = {}
        assert check_database(app)['healthy'] is False

    @patch('health_checks.check_db_connection')
    def test_store_connection_failure(self, mock_check, engine):
        """Test the connection error is reported"""
        mock_check.side_effect = RuntimeError("Cannot connect to database: refused")

        result = check_database(console_app(engine=engine))

        assert result['healthy'] is False
        assert 'refused' in result['error']

    def test_change_feed_subscriptions(self, change_feed):
        """Test active subscriptions are counted"""
        change_feed.subscribe('leads', lambda event: None).start()
        assert check_change_feed(console_app(change_feed=change_feed)) == {'available': True, 'subscriptions': 1}

    def test_change_feed_missing(self):
        """Test an app without a change feed"""
        assert check_change_feed(console_app()) == {'available': False}


@pytest.mark.unit
class TestFunctionsCheck:
    """Tests for the remote functions check"""

    def test_local_functions_are_listed(self):
        """Test in-process handlers are reported by name"""
        invoker = LocalFunctionInvoker({'send-email': lambda body: {}, 'generate-offer-pdf': lambda body: {}})

        result = check_functions(console_app(functions=invoker))

        assert result == {'configured': True, 'mode': 'local',
                          'functions': ['generate-offer-pdf', 'send-email']}

    def test_http_functions_report_base_url(self):
        """Test the HTTP invoker reports where it calls"""
        invoker = HttpFunctionInvoker('https://functions.example.com/v1/', session=Mock())

        result = check_functions(console_app(functions=invoker))

        assert result['mode'] == 'http'
        assert result['base_url'] == 'https://functions.example.com/v1'

    def test_functions_missing(self):
        """Test an app without an invoker is not configured"""
        assert check_functions(console_app()) == {'configured': False}


@pytest.mark.unit
class TestFilesystemCheck:
    """Tests for the writable directories check"""

    @patch('os.access', return_value=True)
    @patch('os.path.exists', return_value=True)
    @patch('os.getcwd', return_value='/srv/console')
    def test_default_log_directory(self, mock_getcwd, mock_exists, mock_access):
        """Test ./logs is checked when no app is given"""
        assert check_filesystem() == {'logs': {'exists': True, 'writable': True, 'healthy': True}}

    @patch('os.access', return_value=False)
    @patch('os.path.exists', return_value=False)
    @patch('os.getcwd', return_value='/srv/console')
    def test_missing_directory(self, mock_getcwd, mock_exists, mock_access):
        """Test a missing directory is neither writable nor healthy"""
        logs = check_filesystem()['logs']
        assert logs == {'exists': False, 'writable': False, 'healthy': False}

    def test_configured_directories(self, tmp_path):
        """Test LOG_DIR and STORAGE_ROOT are checked for an app"""
        app = Mock()
        app.config = {'STORAGE_ROOT': str(tmp_path), 'LOG_DIR': str(tmp_path / 'absent')}

        filesystem = check_filesystem(app)

        assert filesystem['storage']['healthy'] is True
        assert filesystem['logs']['exists'] is False


@pytest.mark.unit
class TestReadiness:
    """Tests for the readiness verdict"""

    def test_ready_when_everything_answers(self, engine, tmp_path):
        """Test a complete app is ready"""
        app = console_app(engine=engine, functions=LocalFunctionInvoker())
        app.config = {'STORAGE_ROOT': str(tmp_path), 'LOG_DIR': str(tmp_path)}

        ready, checks = collect_readiness(app)

        assert ready is True
        assert checks['filesystem_healthy'] is True

    def test_not_ready_without_functions(self, engine, tmp_path):
        """Test a missing invoker blocks readiness"""
        app = console_app(engine=engine)
        app.config = {'STORAGE_ROOT': str(tmp_path), 'LOG_DIR': str(tmp_path)}

        ready, checks = collect_readiness(app)

        assert ready is False
        assert checks['functions'] == {'configured': False}


@pytest.mark.integration
class TestProbeEndpoints:
    """Tests for the /api probe routes"""

    def test_health(self, client):
        """Test liveness names the service"""
        response = client.get('/api/health')
        data = response.get_json()
        assert response.status_code == 200
        assert data['status'] == 'healthy'
        assert data['service'] == 'ops-console'
        assert 'timestamp' in data

    def test_ping(self, client):
        """Test the plain-text ping"""
        response = client.get('/api/ping')
        assert response.status_code == 200
        assert response.data == b'pong'

    def test_ready(self, client):
        """Test readiness of the test application"""
        response = client.get('/api/ready')
        data = response.get_json()
        assert response.status_code == 200
        assert data['status'] == 'ready'
        assert data['checks']['database']['healthy'] is True
        assert data['checks']['functions']['mode'] == 'local'

    def test_not_ready_returns_503(self, client):
        """Test an unreachable store makes readiness fail"""
        with patch('health_checks.check_db_connection', side_effect=RuntimeError("down")):
            response = client.get('/api/ready')
        assert response.status_code == 503
        assert response.get_json()['status'] == 'not_ready'

    def test_metrics(self, client):
        """Test metrics carry uptime, version and the change feed"""
        data = client.get('/api/metrics').get_json()
        assert 'uptime_seconds' in data['uptime']
        assert data['version'] == '1.0.0'
        assert data['change_feed']['available'] is True
        assert data['functions']['configured'] is True

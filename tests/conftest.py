"""
Pytest configuration and shared fixtures
"""
import itertools
import os
import sys
import pytest
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def app_config():
    """Fixture providing test configuration"""
    from config import TestingConfig
    return TestingConfig


@pytest.fixture
def test_env_vars():
    """Fixture providing test environment variables"""
    original_env = os.environ.copy()

    # Set test environment variables
    os.environ['FLASK_ENV'] = 'testing'
    os.environ['SECRET_KEY'] = 'a8f5f167f44f4964e6c998dee827110c-b1946ac92492d2347c6235b4d2611184'
    os.environ['DATABASE_URL'] = 'sqlite://'

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


# =============================================================================
# DATA STORE
# =============================================================================

@pytest.fixture
def engine():
    """In-memory SQLite store with every table created"""
    from database.connection import create_db_engine, init_db
    engine = create_db_engine('sqlite://')
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    from database.connection import create_session_factory
    return create_session_factory(engine)


@pytest.fixture
def change_feed():
    from services.change_feed import ChangeFeed
    return ChangeFeed(default_queue_size=100)


@pytest.fixture
def data_access(session_factory, change_feed):
    """DataAccess publishing to the test change feed"""
    from services.data_access import DataAccess
    data_access = DataAccess(session_factory(), change_feed)
    yield data_access
    data_access.close()


@pytest.fixture
def storage(tmp_path):
    from services.storage import ObjectStorage
    return ObjectStorage(str(tmp_path / 'storage'))


@pytest.fixture
def functions():
    """Function invoker recording every call, with canned successful handlers"""
    from services.functions import LocalFunctionInvoker

    counter = itertools.count(1)
    invoker = LocalFunctionInvoker()
    invoker.register('send-email', lambda body: {'success': True, 'sent': True})
    invoker.register('send-partner-emails', lambda body: {'success': True, 'emailsSent': 2, 'recipients': 2})
    invoker.register('send-customer-emails', lambda body: {'success': True, 'emailsSent': 1, 'recipients': 1})
    invoker.register('sync-vesuviano-lead', lambda body: {
        'success': True, 'configurator_link': f"https://configurator.example.com/{body['leadId']}"
    })
    invoker.register('sync-all-vesuviano-leads', lambda body: {
        'success': True, 'total': 0, 'synced': 0, 'failed': 0, 'errors': []
    })
    invoker.register('generate-offer-code', lambda body: {
        'success': True, 'code': f"{body.get('prefix', 'OFF')}-20250101-{next(counter):06X}"
    })
    invoker.register('generate-offer-pdf', lambda body: {
        'success': True, 'path': f"{body['offerId']}/offer.pdf", 'url': f"/api/files/offers/{body['offerId']}/offer.pdf"
    })
    return invoker


@pytest.fixture
def make_service(data_access, functions, storage):
    """Build a page service on the test collaborators"""
    def _make(service_class, **config):
        return service_class(data_access, functions=functions, storage=storage, config=config)
    return _make


# =============================================================================
# SAMPLE RECORDS
# =============================================================================

@pytest.fixture
def customer(data_access):
    return data_access.insert_one('customers', {
        'name': 'Rossi Impianti',
        'email': 'info@rossi-impianti.it',
        'city': 'Napoli',
        'active': True,
    })


@pytest.fixture
def bom(data_access):
    return data_access.insert_one('boms', {'name': 'Zapper 3000', 'version': '2'})


@pytest.fixture
def supplier(data_access):
    return data_access.insert_one('suppliers', {'name': 'Elettro Forniture', 'email': 'ordini@elettro.it'})


# =============================================================================
# APPLICATION
# =============================================================================

@pytest.fixture
def app(tmp_path, monkeypatch):
    """Application built by the factory with the testing configuration"""
    monkeypatch.chdir(tmp_path)
    from app_init import create_app
    application = create_app('testing', overrides={'STORAGE_ROOT': str(tmp_path / 'storage')})
    yield application
    application.extensions['ops_console']['engine'].dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_data_access(app):
    """DataAccess on the application's store, for seeding and checking records"""
    data_access = app.extensions['ops_console']['data_access_factory']()
    yield data_access
    data_access.close()

"""
Pytest configuration and shared fixtures for CellarTrack tests.
"""
import pytest

from cellartrack import create_app


@pytest.fixture(scope='function')
def app():
    """Create and configure a new app instance for each test."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
        'RATELIMIT_ENABLED': False,
        'PRODUCTION_TIMEZONE': 'UTC',
        'TIMELINE_REFERENCE_HOUR': 12,
        'TIMELINE_MAX_BATCHES': 50,
    })
    yield app


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()

"""
Pytest configuration for API tests.

The app runs against the in-memory transport; no Redis is needed.
"""

import pytest
from fastapi.testclient import TestClient

from api_service.main import create_app
from starter_core.settings import Settings
from task_dispatch.transport.memory import InMemoryTransport


@pytest.fixture
def settings():
    return Settings(ENVIRONMENT="test", CORS_ORIGINS=["http://localhost:5173"])


@pytest.fixture
def queue():
    return InMemoryTransport()


@pytest.fixture
def client(settings, queue):
    app = create_app(settings=settings, transport=queue)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def failing_client(settings):
    app = create_app(settings=settings, transport=InMemoryTransport(fail_sends=True))
    with TestClient(app) as test_client:
        yield test_client


class BrokenTransport(InMemoryTransport):
    """Transport whose submissions blow up with an unexpected error."""

    def send_batch(self, envelopes):
        raise RuntimeError("disk on fire")


@pytest.fixture
def make_broken_client():
    """TestClient factory for an app whose transport raises RuntimeError; server errors become 500s."""
    clients = []

    def make(environment):
        app = create_app(settings=Settings(ENVIRONMENT=environment), transport=BrokenTransport())
        test_client = TestClient(app, raise_server_exceptions=False)
        test_client.__enter__()
        clients.append(test_client)
        return test_client

    yield make
    for test_client in clients:
        test_client.__exit__(None, None, None)

"""
Pytest configuration for worker tests.
"""

import pytest

from dispatch_worker import main as worker
from task_dispatch.dispatcher import TaskDispatcher
from task_dispatch.handlers.registry import build_default_registry
from task_dispatch.transport.memory import InMemoryTransport


@pytest.fixture(autouse=True)
def reset_shutdown_flag(monkeypatch):
    monkeypatch.setattr(worker, "shutdown_requested", False)


@pytest.fixture
def memory_transport():
    return InMemoryTransport(max_deliveries=2)


@pytest.fixture
def dispatcher():
    return TaskDispatcher(build_default_registry(), max_concurrency=4)

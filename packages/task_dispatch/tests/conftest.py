"""
Pytest fixtures for task dispatch tests.
"""

import pytest

from task_dispatch.contracts.envelope import TaskEnvelope
from task_dispatch.contracts.types import TaskKind
from task_dispatch.errors import HandlerError
from task_dispatch.handlers.base import TaskHandler
from task_dispatch.handlers.registry import HandlerRegistry
from task_dispatch.transport.memory import InMemoryTransport


class RecordingHandler(TaskHandler):
    """Records every payload it executes; fails when the payload says so."""

    def __init__(self, kind: TaskKind):
        self.kind = kind
        self.calls = []

    async def execute(self, payload, context):
        self.calls.append((dict(payload), context))
        if payload.get("fail"):
            raise HandlerError(self.kind.value, f"Simulated failure for {payload.get('id')}")


@pytest.fixture
def sample_timestamp():
    return 1700000000000


@pytest.fixture
def fixed_clock(sample_timestamp):
    """Clock that ticks one millisecond per call, starting at sample_timestamp."""
    state = {"now": sample_timestamp - 1}

    def clock():
        state["now"] += 1
        return state["now"]

    return clock


@pytest.fixture
def transport():
    return InMemoryTransport(max_deliveries=3)


@pytest.fixture
def handlers():
    return {kind: RecordingHandler(kind) for kind in TaskKind}


@pytest.fixture
def registry(handlers):
    registry = HandlerRegistry()
    for handler in handlers.values():
        registry.register(handler)
    return registry


@pytest.fixture
def make_envelope(sample_timestamp):
    def make(kind=TaskKind.EMAIL, payload=None, enqueued_at=None):
        return TaskEnvelope(
            kind=kind,
            payload=payload if payload is not None else {"to": "a@example.com"},
            enqueued_at=enqueued_at or sample_timestamp,
        )

    return make

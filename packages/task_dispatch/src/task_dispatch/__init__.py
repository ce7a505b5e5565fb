"""
Task Dispatch - queue-backed asynchronous task dispatch.

This package provides:
- Task contracts (kinds, envelope, request models)
- The producer (validate, stamp, submit)
- Queue transports (Redis Streams, in-memory)
- Handlers and their registry
- The dispatcher (route, then ack or retry per message)

The HTTP API and the worker process live in apps/ and only wire these
pieces together.
"""

from task_dispatch.contracts import TaskEnvelope, TaskKind, TaskRequest
from task_dispatch.dispatcher import BatchReport, TaskDispatcher
from task_dispatch.producer import TaskProducer

__all__ = [
    "TaskEnvelope",
    "TaskKind",
    "TaskRequest",
    "TaskProducer",
    "TaskDispatcher",
    "BatchReport",
]

"""
Queue transports.

The application never implements delivery guarantees itself; it talks to one
of these through the QueueTransport interface.
"""

import redis

from task_dispatch.transport.base import (
    Batch,
    DeliveredMessage,
    DeliveryStatus,
    QueueTransport,
)
from task_dispatch.transport.memory import InMemoryTransport
from task_dispatch.transport.redis_streams import RedisStreamTransport

__all__ = [
    "Batch",
    "DeliveredMessage",
    "DeliveryStatus",
    "QueueTransport",
    "InMemoryTransport",
    "RedisStreamTransport",
    "SUPPORTED_BACKENDS",
    "create_transport",
]


SUPPORTED_BACKENDS = ("redis",)


def create_transport(
    settings,
    redis_client: redis.Redis | None = None,
    consumer_name: str = "task-worker",
) -> QueueTransport:
    """
    Build the transport selected by settings.QUEUE_BACKEND.

    Only "redis" is deployable. InMemoryTransport lives in one process, so the
    API and the worker would each get their own queue; tests pass it in directly.
    """
    if settings.QUEUE_BACKEND not in SUPPORTED_BACKENDS:
        raise ValueError(f"Unsupported QUEUE_BACKEND: {settings.QUEUE_BACKEND!r}; only 'redis' is supported")
    if redis_client is None:
        raise ValueError("redis_client is required for the redis queue backend")

    return RedisStreamTransport(
        redis_client,
        stream_name=settings.QUEUE_STREAM_NAME,
        group_name=settings.QUEUE_GROUP_NAME,
        consumer_name=consumer_name,
        dlq_stream=settings.QUEUE_DLQ_STREAM,
        max_len=settings.QUEUE_MAX_LEN,
        max_deliveries=settings.QUEUE_MAX_DELIVERIES,
    )

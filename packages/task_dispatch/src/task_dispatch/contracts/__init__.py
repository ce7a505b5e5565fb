"""Task contracts - kinds, envelope and request models."""

from task_dispatch.contracts.envelope import TaskEnvelope
from task_dispatch.contracts.requests import (
    MAX_BATCH_SIZE,
    MIN_BATCH_SIZE,
    BatchQueuedResponse,
    BatchTaskRequest,
    QueuedResponse,
    TaskRequest,
)
from task_dispatch.contracts.types import TaskKind

__all__ = [
    "TaskEnvelope",
    "TaskKind",
    "TaskRequest",
    "BatchTaskRequest",
    "QueuedResponse",
    "BatchQueuedResponse",
    "MIN_BATCH_SIZE",
    "MAX_BATCH_SIZE",
]

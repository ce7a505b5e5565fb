"""
Task Request Models

Pydantic models for task requests accepted by the producer API.
Clients send kind and payload only; the enqueue timestamp is never accepted
from a client.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from task_dispatch.contracts.types import TaskKind

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 100


class TaskRequest(BaseModel):
    """A single task to enqueue."""

    model_config = ConfigDict(extra="forbid")

    kind: TaskKind = Field(..., description="Task kind (email, notification, webhook)")
    payload: dict[str, Any] = Field(..., description="Kind-specific data (JSON object)")


class BatchTaskRequest(BaseModel):
    """A batch of tasks to enqueue together."""

    model_config = ConfigDict(extra="forbid")

    messages: list[TaskRequest] = Field(
        ...,
        min_length=MIN_BATCH_SIZE,
        max_length=MAX_BATCH_SIZE,
        description=f"{MIN_BATCH_SIZE}-{MAX_BATCH_SIZE} tasks",
    )


class QueuedResponse(BaseModel):
    queued: bool = True
    timestamp: int


class BatchQueuedResponse(BaseModel):
    queued: bool = True
    count: int

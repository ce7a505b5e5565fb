"""
Queue routes - enqueue tasks for the background worker.

Both routes validate the whole request before anything is submitted.
"""

from fastapi import APIRouter, Depends, status

from api_service.deps import get_producer
from task_dispatch.contracts.requests import (
    BatchQueuedResponse,
    BatchTaskRequest,
    QueuedResponse,
    TaskRequest,
)
from task_dispatch.producer import TaskProducer

queue_router = APIRouter(prefix="/queue", tags=["queue"])


@queue_router.post("/send", status_code=status.HTTP_201_CREATED)
async def send_task(
    body: TaskRequest,
    producer: TaskProducer = Depends(get_producer),
) -> dict[str, QueuedResponse]:
    """Queue one task. Returns the enqueue timestamp (ms since epoch)."""
    result = producer.send(body)
    return {"data": QueuedResponse(timestamp=result.timestamp)}


@queue_router.post("/send-batch", status_code=status.HTTP_201_CREATED)
async def send_task_batch(
    body: BatchTaskRequest,
    producer: TaskProducer = Depends(get_producer),
) -> dict[str, BatchQueuedResponse]:
    """Queue 1-100 tasks in one submission."""
    result = producer.send_batch(body.messages)
    return {"data": BatchQueuedResponse(count=result.count)}

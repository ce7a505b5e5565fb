"""
Task Handler Base

Abstract interface for task handlers.
Implementations: email, notification, webhook (log-only stubs).
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from starter_core.resources import Resources
from task_dispatch.contracts.types import TaskKind


@dataclass
class HandlerContext:
    """
    What a handler gets besides the payload.

    Attributes:
        resources: Process-lifetime handles (database, redis); None in tests
            that don't need them
        delivery_id: Transport delivery id, useful as an idempotency key
        attempts: Delivery attempt number (1 on first delivery)
        enqueued_at: Producer timestamp in milliseconds
    """

    resources: Resources | None
    delivery_id: str
    attempts: int
    enqueued_at: int


class TaskHandler(ABC):
    """
    Abstract interface for task handlers.

    Implementations must:
    - Declare the TaskKind they handle
    - Raise on failure (HandlerError preferred); returning means success
    - Tolerate running more than once for the same task, since the
      transport may redeliver
    """

    kind: TaskKind

    @abstractmethod
    async def execute(self, payload: Mapping[str, Any], context: HandlerContext) -> None:
        """
        Execute one task.

        Args:
            payload: Kind-specific task data (read-only)
            context: Delivery context and shared resources

        Raises:
            HandlerError: on failure; the message will be retried
        """
        pass

"""
Task Producer

Validates task requests, stamps envelopes and submits them to the queue
transport. Validation is all-or-nothing: a batch with one bad item submits
nothing.
"""

import logging
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import pydantic

from task_dispatch.contracts.envelope import TaskEnvelope
from task_dispatch.contracts.requests import (
    MAX_BATCH_SIZE,
    MIN_BATCH_SIZE,
    BatchTaskRequest,
    TaskRequest,
)
from task_dispatch.errors import ValidationError
from task_dispatch.transport.base import QueueTransport

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return time.time_ns() // 1_000_000


class MonotonicClock:
    """
    Millisecond wall clock that never goes backwards.

    If the system clock steps back, the last stamp is reused.
    """

    def __init__(self, source: Callable[[], int] = now_ms):
        self._source = source
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            self._last = max(self._source(), self._last)
            return self._last


@dataclass(frozen=True)
class SendResult:
    timestamp: int
    message_id: str


@dataclass(frozen=True)
class BatchSendResult:
    count: int
    timestamps: list[int]
    message_ids: list[str]


def format_error_location(loc: Sequence[Any]) -> str:
    """("messages", 3, "kind") -> "messages[3].kind"."""
    out = ""
    for part in loc:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out or "body"


def validation_error_from_pydantic(exc: pydantic.ValidationError, prefix: Sequence[Any] = ()) -> ValidationError:
    """Convert the first pydantic error into a ValidationError naming the field."""
    first = exc.errors()[0]
    return ValidationError(
        field=format_error_location([*prefix, *first["loc"]]),
        message=first["msg"],
    )


class TaskProducer:
    """
    Producer for submitting tasks to the queue transport.

    Usage:
        producer = TaskProducer(transport)
        producer.send(TaskRequest(kind=TaskKind.EMAIL, payload={"to": "a@example.com"}))
    """

    def __init__(
        self,
        transport: QueueTransport,
        clock: Callable[[], int] | None = None,
    ):
        self.transport = transport
        self.clock = clock or MonotonicClock()

    @staticmethod
    def parse_request(data: Any) -> TaskRequest:
        """
        Validate raw input (e.g. decoded JSON) into a TaskRequest.

        Raises:
            ValidationError: unknown kind, payload not an object, extra fields
        """
        if isinstance(data, TaskRequest):
            return data
        if not isinstance(data, Mapping):
            raise ValidationError("body", "Task request must be an object")
        try:
            return TaskRequest.model_validate(dict(data))
        except pydantic.ValidationError as e:
            raise validation_error_from_pydantic(e) from e

    @staticmethod
    def parse_batch(data: Any) -> list[TaskRequest]:
        """
        Validate raw batch input ({"messages": [...]}) into TaskRequests.

        Raises:
            ValidationError: batch size out of bounds or any item invalid
        """
        if isinstance(data, BatchTaskRequest):
            return list(data.messages)
        if not isinstance(data, Mapping):
            raise ValidationError("body", "Batch request must be an object")
        try:
            return list(BatchTaskRequest.model_validate(dict(data)).messages)
        except pydantic.ValidationError as e:
            raise validation_error_from_pydantic(e) from e

    def send(self, request: TaskRequest | Mapping[str, Any]) -> SendResult:
        """
        Validate and submit one task.

        Raises:
            ValidationError: nothing was submitted
            TransportError: the transport failed the submission
        """
        request = self.parse_request(request)
        envelope = TaskEnvelope.create(request.kind, request.payload, self.clock())

        message_id = self.transport.send(envelope)

        logger.info(
            f"Queued {envelope.kind_value} task",
            extra={"kind": envelope.kind_value, "enqueued_at": envelope.enqueued_at, "msg_id": message_id},
        )
        return SendResult(timestamp=envelope.enqueued_at, message_id=message_id)

    def send_batch(self, requests: Sequence[TaskRequest | Mapping[str, Any]]) -> BatchSendResult:
        """
        Validate every task, then submit them in one transport call.

        Raises:
            ValidationError: batch size out of bounds or any item invalid;
                nothing was submitted
            TransportError: the transport failed the submission
        """
        if isinstance(requests, (str, bytes, Mapping)) or not isinstance(requests, Sequence):
            raise ValidationError("messages", "Expected a list of task requests")
        if not MIN_BATCH_SIZE <= len(requests) <= MAX_BATCH_SIZE:
            raise ValidationError(
                "messages",
                f"Batch size must be between {MIN_BATCH_SIZE} and {MAX_BATCH_SIZE}, got {len(requests)}",
            )

        parsed = []
        for index, item in enumerate(requests):
            try:
                parsed.append(self.parse_request(item))
            except ValidationError as e:
                raise ValidationError(f"messages[{index}].{e.field}", e.message) from e

        envelopes = [TaskEnvelope.create(r.kind, r.payload, self.clock()) for r in parsed]
        message_ids = self.transport.send_batch(envelopes)

        logger.info(
            f"Queued batch of {len(envelopes)} tasks",
            extra={"count": len(envelopes)},
        )
        return BatchSendResult(
            count=len(envelopes),
            timestamps=[e.enqueued_at for e in envelopes],
            message_ids=message_ids,
        )

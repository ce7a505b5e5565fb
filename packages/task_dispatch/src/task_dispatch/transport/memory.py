"""
In-Memory Transport

Test transport that keeps everything in process. Not selectable through
QUEUE_BACKEND: a queue that lives in one process cannot connect the API to
the worker. Tests construct it and pass it in.

- Records every submitted envelope in ``sent``
- Retried messages go back to the queue and come out on the next receive()
- Messages retried max_deliveries times go to ``dead_letters``
- Can be configured to fail submissions
"""

import itertools
import logging
from collections import deque
from collections.abc import Sequence

from task_dispatch.contracts.envelope import TaskEnvelope
from task_dispatch.errors import TransportError
from task_dispatch.transport.base import Batch, DeliveredMessage, QueueTransport

logger = logging.getLogger(__name__)


class InMemoryTransport(QueueTransport):
    """In-process queue transport with at-least-once semantics."""

    def __init__(self, max_deliveries: int = 5, fail_sends: bool = False):
        self.max_deliveries = max_deliveries
        self.fail_sends = fail_sends
        self.sent: list[TaskEnvelope] = []
        self.acked: list[str] = []
        self.retried: list[str] = []
        self.dead_letters: list[tuple[str, TaskEnvelope]] = []
        self._ready: deque[tuple[str, TaskEnvelope, int]] = deque()
        self._pending: dict[str, tuple[TaskEnvelope, int]] = {}
        self._ids = itertools.count(1)

    def ensure_ready(self) -> None:
        pass

    def send(self, envelope: TaskEnvelope) -> str:
        return self.send_batch([envelope])[0]

    def send_batch(self, envelopes: Sequence[TaskEnvelope]) -> list[str]:
        if self.fail_sends:
            raise TransportError("In-memory transport configured to fail sends")

        msg_ids = []
        for envelope in envelopes:
            msg_id = f"mem-{next(self._ids)}"
            self.sent.append(envelope)
            self._ready.append((msg_id, envelope, 0))
            msg_ids.append(msg_id)

        logger.debug(f"[MEMORY] Queued {len(msg_ids)} messages")
        return msg_ids

    def deliver(self, envelope: TaskEnvelope, delivery_id: str | None = None) -> None:
        """Queue an envelope for delivery without recording it as sent (redelivery simulation)."""
        self._ready.append((delivery_id or f"mem-{next(self._ids)}", envelope, 0))

    def receive(self, count: int = 10, block_ms: int = 5000) -> Batch:
        messages = []
        while self._ready and len(messages) < count:
            msg_id, envelope, previous_attempts = self._ready.popleft()
            attempts = previous_attempts + 1
            self._pending[msg_id] = (envelope, attempts)
            messages.append(
                DeliveredMessage(
                    envelope=envelope,
                    delivery_id=msg_id,
                    attempts=attempts,
                    _on_ack=self._ack,
                    _on_retry=self._retry,
                )
            )
        return Batch(messages)

    def reclaim(self, min_idle_ms: int = 60000, count: int = 100) -> Batch:
        # Retried messages are requeued immediately, so nothing sits idle here
        return Batch()

    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def queued_count(self) -> int:
        return len(self._ready)

    def _ack(self, message: DeliveredMessage) -> None:
        self._pending.pop(message.delivery_id, None)
        self.acked.append(message.delivery_id)

    def _retry(self, message: DeliveredMessage) -> None:
        envelope, attempts = self._pending.pop(message.delivery_id, (message.envelope, message.attempts))
        self.retried.append(message.delivery_id)

        if attempts >= self.max_deliveries:
            self.dead_letters.append((message.delivery_id, envelope))
            logger.warning(
                f"[MEMORY] Message {message.delivery_id} dead-lettered after {attempts} deliveries",
                extra={"msg_id": message.delivery_id, "kind": envelope.kind_value},
            )
            return

        self._ready.append((message.delivery_id, envelope, attempts))

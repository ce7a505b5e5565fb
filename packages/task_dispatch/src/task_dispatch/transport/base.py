"""
Queue Transport Base

Abstract interface for the at-least-once queue the producer submits to and
the worker receives from. Implementations: Redis Streams, in-memory.

The transport owns delivery, redelivery timing and the attempt limit. The
dispatcher only decides ack or retry for each delivered message.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum

from task_dispatch.contracts.envelope import TaskEnvelope
from task_dispatch.errors import MessageAlreadySettled


class DeliveryStatus(str, Enum):
    """Settlement state of a delivered message."""

    PENDING = "pending"
    ACKED = "acked"
    RETRIED = "retried"


@dataclass(eq=False)
class DeliveredMessage:
    """
    One delivered envelope plus the transport's ack/retry controls.

    Attributes:
        envelope: The task envelope
        delivery_id: Transport-assigned id (stable across redeliveries)
        attempts: How many times the transport has delivered this message
    """

    envelope: TaskEnvelope
    delivery_id: str
    attempts: int
    _on_ack: Callable[["DeliveredMessage"], None] = field(repr=False)
    _on_retry: Callable[["DeliveredMessage"], None] = field(repr=False)
    status: DeliveryStatus = DeliveryStatus.PENDING

    @property
    def settled(self) -> bool:
        return self.status != DeliveryStatus.PENDING

    def ack(self) -> None:
        """Tell the transport this message was processed and must not be redelivered."""
        self._settle(DeliveryStatus.ACKED, self._on_ack)

    def retry(self) -> None:
        """Tell the transport this message failed and should be redelivered later."""
        self._settle(DeliveryStatus.RETRIED, self._on_retry)

    def _settle(
        self,
        status: DeliveryStatus,
        callback: Callable[["DeliveredMessage"], None],
    ) -> None:
        if self.settled:
            raise MessageAlreadySettled(
                f"Message {self.delivery_id} already {self.status.value}"
            )
        callback(self)
        self.status = status


@dataclass
class Batch:
    """Ordered set of delivered messages handed to the dispatcher in one call."""

    messages: list[DeliveredMessage] = field(default_factory=list)

    def __iter__(self) -> Iterator[DeliveredMessage]:
        return iter(self.messages)

    def __len__(self) -> int:
        return len(self.messages)

    @property
    def unsettled(self) -> list[DeliveredMessage]:
        return [m for m in self.messages if not m.settled]


class QueueTransport(ABC):
    """
    Abstract interface for queue transports.

    Implementations must handle:
    - Submitting one envelope or a batch of envelopes as a unit
    - Delivering batches with per-message ack/retry controls
    - Redelivering retried or abandoned messages up to their attempt limit
    """

    @abstractmethod
    def ensure_ready(self) -> None:
        """Create whatever the transport needs (streams, groups). Idempotent."""
        pass

    @abstractmethod
    def send(self, envelope: TaskEnvelope) -> str:
        """
        Submit one envelope.

        Returns:
            Transport message id

        Raises:
            TransportError: if the submission failed
        """
        pass

    @abstractmethod
    def send_batch(self, envelopes: Sequence[TaskEnvelope]) -> list[str]:
        """
        Submit several envelopes in one call.

        Returns:
            Transport message ids, in input order

        Raises:
            TransportError: if the submission failed
        """
        pass

    @abstractmethod
    def receive(self, count: int = 10, block_ms: int = 5000) -> Batch:
        """Receive up to count new messages."""
        pass

    @abstractmethod
    def reclaim(self, min_idle_ms: int = 60000, count: int = 100) -> Batch:
        """
        Take over messages that were delivered but never settled.

        Messages past the attempt limit are dead-lettered instead of returned.
        """
        pass

    def pending_count(self) -> int:
        """Number of delivered but unacknowledged messages."""
        return 0

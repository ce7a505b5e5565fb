"""
Task Envelope - the unit of dispatch.

Built by the producer, carried by the queue transport, and handed to the
dispatcher inside a DeliveredMessage. Delivery metadata (delivery id,
attempt count) belongs to the transport and is not part of the envelope.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from task_dispatch.contracts.types import TaskKind


def coerce_kind(value: Any) -> TaskKind | str:
    """
    Map a wire value onto TaskKind.

    Unrecognised values are kept as plain strings so the dispatcher can drop
    them at the registry boundary instead of failing at decode time.
    """
    if isinstance(value, TaskKind):
        return value
    try:
        return TaskKind(value)
    except ValueError:
        return str(value)


@dataclass(frozen=True)
class TaskEnvelope:
    """
    Immutable task envelope.

    Attributes:
        kind: Task category. Envelopes built by TaskProducer always carry a
            TaskKind; envelopes decoded from the wire may carry an unknown
            kind string written by another producer version.
        payload: Kind-specific data (read-only view, may be empty)
        enqueued_at: Milliseconds since epoch, stamped by the producer
    """

    kind: TaskKind | str
    payload: Mapping[str, Any]
    enqueued_at: int

    def __post_init__(self):
        if not isinstance(self.payload, Mapping):
            raise TypeError(f"payload must be a mapping, got {type(self.payload).__name__}")
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    @classmethod
    def create(cls, kind: TaskKind, payload: Mapping[str, Any], enqueued_at: int) -> "TaskEnvelope":
        """Create a producer-side envelope. kind must be a TaskKind."""
        if not isinstance(kind, TaskKind):
            raise TypeError(f"kind must be a TaskKind, got {kind!r}")
        return cls(kind=kind, payload=payload, enqueued_at=enqueued_at)

    @property
    def kind_value(self) -> str:
        return self.kind.value if isinstance(self.kind, TaskKind) else self.kind

    @property
    def is_known_kind(self) -> bool:
        return isinstance(self.kind, TaskKind)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskEnvelope":
        """Create an envelope from a dictionary (e.g. a decoded message body)."""
        return cls(
            kind=coerce_kind(data["kind"]),
            payload=data.get("payload") or {},
            enqueued_at=int(data["timestamp"]),
        )

    @classmethod
    def from_stream_data(cls, data: Mapping[str, str]) -> "TaskEnvelope":
        """Parse a Redis Stream entry (all string values) into an envelope."""
        payload = json.loads(data.get("payload") or "{}")
        if not isinstance(payload, dict):
            raise ValueError("stream payload is not a JSON object")
        return cls(
            kind=coerce_kind(data["kind"]),
            payload=payload,
            enqueued_at=int(data["timestamp"]),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind_value,
            "payload": dict(self.payload),
            "timestamp": self.enqueued_at,
        }

    def to_stream_data(self) -> dict[str, str]:
        """Convert to dictionary suitable for Redis Stream (all string values)."""
        return {
            "kind": self.kind_value,
            "payload": json.dumps(dict(self.payload)),
            "timestamp": str(self.enqueued_at),
        }

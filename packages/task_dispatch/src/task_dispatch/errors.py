"""
Task dispatch errors.

Producer side:   ValidationError, TransportError
Consumer side:   RoutingError (message dropped), HandlerError (message retried)
"""

from typing import Any


class TaskDispatchError(Exception):
    """Base class for task dispatch errors."""


class ValidationError(TaskDispatchError):
    """A task request failed validation. Nothing was enqueued."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class TransportError(TaskDispatchError):
    """The queue transport rejected or failed a submission."""


class RoutingError(TaskDispatchError):
    """No handler is registered for a task kind."""

    def __init__(self, kind: Any):
        super().__init__(f"No handler registered for task kind: {kind!r}")
        self.kind = kind


class HandlerError(TaskDispatchError):
    """
    A handler failed to execute a task.

    Handlers may raise any exception; this one carries the task kind and
    details for logging.
    """

    def __init__(
        self,
        kind: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.details = details or {}


class MessageAlreadySettled(TaskDispatchError):
    """ack() or retry() was called on a message that was already settled."""

"""
Handler Registry - maps task kinds to handlers.

Populated once at startup. The dispatcher asks it for a handler and never
looks at the kind itself.
"""

import logging

from task_dispatch.contracts.types import TaskKind
from task_dispatch.errors import RoutingError
from task_dispatch.handlers.base import TaskHandler

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Registry of one handler per TaskKind."""

    def __init__(self):
        self._handlers: dict[TaskKind, TaskHandler] = {}

    def register(self, handler: TaskHandler, replace: bool = False) -> None:
        """
        Register a handler for its kind.

        Raises:
            ValueError: kind is not a TaskKind, or already registered and
                replace is False
        """
        kind = getattr(handler, "kind", None)
        if not isinstance(kind, TaskKind):
            raise ValueError(f"Handler {type(handler).__name__} has no valid TaskKind: {kind!r}")
        if kind in self._handlers and not replace:
            raise ValueError(f"Handler already registered for {kind.value}")

        self._handlers[kind] = handler
        logger.debug(f"Registered {type(handler).__name__} for {kind.value}")

    def resolve(self, kind: TaskKind | str) -> TaskHandler:
        """
        Get the handler for a kind.

        Raises:
            RoutingError: kind is outside TaskKind or has no handler
        """
        if not isinstance(kind, TaskKind):
            try:
                kind = TaskKind(kind)
            except ValueError:
                raise RoutingError(kind) from None
        handler = self._handlers.get(kind)
        if handler is None:
            raise RoutingError(kind)
        return handler

    def __contains__(self, kind: object) -> bool:
        return kind in self._handlers

    @property
    def kinds(self) -> list[TaskKind]:
        return list(self._handlers)


def build_default_registry() -> HandlerRegistry:
    """Registry with the built-in handler for every TaskKind."""
    from task_dispatch.handlers.email import EmailHandler
    from task_dispatch.handlers.notification import NotificationHandler
    from task_dispatch.handlers.webhook import WebhookHandler

    registry = HandlerRegistry()
    registry.register(EmailHandler())
    registry.register(NotificationHandler())
    registry.register(WebhookHandler())
    return registry

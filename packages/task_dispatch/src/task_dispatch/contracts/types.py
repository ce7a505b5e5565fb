"""
Task Kinds - the closed set of dispatchable task categories.
"""

from enum import Enum


class TaskKind(str, Enum):
    """
    Known task kinds.

    Adding a kind means adding a member here and registering a handler for it;
    the dispatcher itself does not change.
    """

    EMAIL = "email"
    NOTIFICATION = "notification"
    WEBHOOK = "webhook"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]

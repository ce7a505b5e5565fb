"""
Notification Handler (stub)

Logs the push notification it would send.
"""

import logging
from collections.abc import Mapping
from typing import Any

from task_dispatch.contracts.types import TaskKind
from task_dispatch.handlers.base import HandlerContext, TaskHandler

logger = logging.getLogger(__name__)


class NotificationHandler(TaskHandler):
    kind = TaskKind.NOTIFICATION

    async def execute(self, payload: Mapping[str, Any], context: HandlerContext) -> None:
        logger.info(
            "[STUB] Sending notification",
            extra={
                "user_id": payload.get("user_id"),
                "title": payload.get("title"),
                "delivery_id": context.delivery_id,
            },
        )

"""
Webhook Handler (stub)

Logs the webhook call it would make. A real implementation would POST the
payload with an idempotency header built from context.delivery_id.
"""

import logging
from collections.abc import Mapping
from typing import Any

from task_dispatch.contracts.types import TaskKind
from task_dispatch.handlers.base import HandlerContext, TaskHandler

logger = logging.getLogger(__name__)


class WebhookHandler(TaskHandler):
    kind = TaskKind.WEBHOOK

    async def execute(self, payload: Mapping[str, Any], context: HandlerContext) -> None:
        logger.info(
            "[STUB] Calling webhook",
            extra={
                "url": payload.get("url"),
                "delivery_id": context.delivery_id,
                "attempts": context.attempts,
            },
        )

"""
Email Handler (stub)

Logs the email it would send. A real implementation would call a mail API
(Resend, SendGrid, SES, ...) and should key on context.delivery_id so a
redelivered task does not send twice.
"""

import logging
from collections.abc import Mapping
from typing import Any

from task_dispatch.contracts.types import TaskKind
from task_dispatch.handlers.base import HandlerContext, TaskHandler

logger = logging.getLogger(__name__)


class EmailHandler(TaskHandler):
    kind = TaskKind.EMAIL

    async def execute(self, payload: Mapping[str, Any], context: HandlerContext) -> None:
        logger.info(
            "[STUB] Sending email",
            extra={
                "to": payload.get("to"),
                "subject": payload.get("subject"),
                "delivery_id": context.delivery_id,
                "attempts": context.attempts,
            },
        )

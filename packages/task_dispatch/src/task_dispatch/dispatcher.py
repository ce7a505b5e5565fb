"""
Task Dispatcher

Takes a batch of delivered messages, routes each one to its handler and
settles it with the transport:

- handler returned           -> ack
- handler raised             -> retry (transport redelivers later)
- no handler for the kind    -> ack (dropped; retrying can never succeed)

Each message is settled on its own. A failure in one message never touches
the others, and nothing is remembered between batches.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from starter_core.resources import Resources
from task_dispatch.errors import RoutingError
from task_dispatch.handlers.base import HandlerContext
from task_dispatch.handlers.registry import HandlerRegistry
from task_dispatch.transport.base import Batch, DeliveredMessage

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 10


@dataclass
class BatchReport:
    """Outcome of one dispatch() call, by delivery id."""

    acked: list[str] = field(default_factory=list)
    retried: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    unsettled: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.acked) + len(self.retried) + len(self.dropped) + len(self.unsettled)

    def to_dict(self) -> dict[str, int]:
        return {
            "acked": len(self.acked),
            "retried": len(self.retried),
            "dropped": len(self.dropped),
            "unsettled": len(self.unsettled),
        }


class TaskDispatcher:
    """
    Routes delivered tasks to handlers and decides ack vs. retry.

    Messages in a batch run concurrently, at most max_concurrency at a time.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        resources: Resources | None = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.registry = registry
        self.resources = resources
        self.max_concurrency = max_concurrency

    async def dispatch(self, batch: Batch) -> BatchReport:
        """
        Process every message in the batch.

        Never raises for a message-level failure; see the report for outcomes.
        """
        report = BatchReport()
        if not len(batch):
            return report

        logger.info(f"Processing {len(batch)} messages from queue")

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(message: DeliveredMessage) -> None:
            async with semaphore:
                await self._process(message, report)

        await asyncio.gather(*(bounded(message) for message in batch))

        logger.info(
            f"Batch done: {report.to_dict()}",
            extra=report.to_dict(),
        )
        return report

    async def _process(self, message: DeliveredMessage, report: BatchReport) -> None:
        envelope = message.envelope
        log_extra = {
            "msg_id": message.delivery_id,
            "kind": envelope.kind_value,
            "attempts": message.attempts,
        }

        try:
            handler = self.registry.resolve(envelope.kind)
        except RoutingError as e:
            logger.warning(f"Dropping message {message.delivery_id}: {e}", extra=log_extra)
            self._settle(message, ack=True, bucket=report.dropped, report=report)
            return

        context = HandlerContext(
            resources=self.resources,
            delivery_id=message.delivery_id,
            attempts=message.attempts,
            enqueued_at=envelope.enqueued_at,
        )

        try:
            await handler.execute(envelope.payload, context)
        except Exception as e:
            # Don't ACK - transport will redeliver
            logger.error(
                f"Failed to process message {message.delivery_id}: {e}",
                extra=log_extra,
                exc_info=True,
            )
            self._settle(message, ack=False, bucket=report.retried, report=report)
            return

        self._settle(message, ack=True, bucket=report.acked, report=report)
        logger.debug(f"ACKed message {message.delivery_id}", extra=log_extra)

    def _settle(
        self,
        message: DeliveredMessage,
        ack: bool,
        bucket: list[str],
        report: BatchReport,
    ) -> None:
        try:
            if ack:
                message.ack()
            else:
                message.retry()
        except Exception as e:
            # Unsettled messages stay pending in the transport and get redelivered
            logger.error(
                f"Failed to {'ack' if ack else 'retry'} message {message.delivery_id}: {e}",
                extra={"msg_id": message.delivery_id},
                exc_info=True,
            )
            report.unsettled.append(message.delivery_id)
            return
        bucket.append(message.delivery_id)

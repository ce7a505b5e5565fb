"""
Dispatch Worker - Queue Consumer

Pulls batches of task messages from the queue transport and hands them to
the TaskDispatcher, which acks or retries each message.

This worker uses ONLY:
- starter_core (settings, logging, resources)
- task_dispatch (transport, handlers, dispatcher)

Features:
- XREADGROUP consumer for horizontal scaling
- PEL reclaim for messages left pending (retried or from crashed workers)
- Dead-lettering after the transport's delivery limit
- Graceful shutdown
"""

import asyncio
import logging
import os
import signal
import socket
import time

from starter_core.logging import setup_logging
from starter_core.resources import Resources
from starter_core.settings import get_settings
from task_dispatch.dispatcher import BatchReport, TaskDispatcher
from task_dispatch.handlers.registry import build_default_registry
from task_dispatch.transport import SUPPORTED_BACKENDS, QueueTransport, create_transport

setup_logging()
logger = logging.getLogger(__name__)

# Configuration
CONSUMER_NAME = os.getenv(
    "WORKER_CONSUMER_NAME",
    f"task-worker-{socket.gethostname()}-{os.getpid()}",
)
BATCH_SIZE = int(os.getenv("WORKER_BATCH_SIZE", "10"))
BLOCK_MS = int(os.getenv("WORKER_BLOCK_MS", "5000"))
RECLAIM_INTERVAL_SEC = int(os.getenv("WORKER_RECLAIM_INTERVAL", "60"))
RECLAIM_IDLE_MS = int(os.getenv("WORKER_RECLAIM_IDLE_MS", "60000"))
CONCURRENCY = int(os.getenv("WORKER_CONCURRENCY", "10"))

# Graceful shutdown
shutdown_requested = False


def signal_handler(signum, frame):
    global shutdown_requested
    logger.info(f"Received signal {signum}, requesting shutdown...")
    shutdown_requested = True


async def process_batch(
    transport: QueueTransport,
    dispatcher: TaskDispatcher,
    count: int = BATCH_SIZE,
    block_ms: int = BLOCK_MS,
) -> BatchReport:
    """Receive one batch and dispatch it."""
    # receive() blocks on XREADGROUP; keep it off the event loop
    batch = await asyncio.to_thread(transport.receive, count, block_ms)
    return await dispatcher.dispatch(batch)


async def reclaim_pending(
    transport: QueueTransport,
    dispatcher: TaskDispatcher,
    min_idle_ms: int = RECLAIM_IDLE_MS,
) -> BatchReport:
    """Redeliver messages that have sat unacknowledged for min_idle_ms."""
    batch = await asyncio.to_thread(transport.reclaim, min_idle_ms, 100)
    if len(batch):
        logger.info(f"Reclaimed {len(batch)} pending messages")
    return await dispatcher.dispatch(batch)


async def main_loop(transport: QueueTransport, dispatcher: TaskDispatcher) -> None:
    """
    Main worker loop.

    Runs until shutdown_requested is set (SIGTERM/SIGINT).
    """
    transport.ensure_ready()

    logger.info(
        f"Starting dispatch worker "
        f"(consumer={CONSUMER_NAME}, batch={BATCH_SIZE}, transport={type(transport).__name__})"
    )

    # Initial reclaim on startup to pick up orphaned messages
    try:
        await reclaim_pending(transport, dispatcher)
    except Exception as e:
        logger.warning(f"Initial reclaim failed: {e}")

    last_reclaim = time.monotonic()

    while not shutdown_requested:
        try:
            report = await process_batch(transport, dispatcher)
            if report.total > 0:
                logger.info(f"Processed {report.total} messages")

            if time.monotonic() - last_reclaim >= RECLAIM_INTERVAL_SEC:
                last_reclaim = time.monotonic()
                await reclaim_pending(transport, dispatcher)

            # Small sleep if nothing processed (non-blocking transports)
            if report.total == 0:
                await asyncio.sleep(0.1)

        except Exception as e:
            logger.error(f"Error in main loop: {e}", exc_info=True)
            await asyncio.sleep(1)

    logger.info("Dispatch worker shutting down gracefully")


def main():
    """Entry point."""
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    logger.info("Dispatch worker starting...")
    settings = get_settings()
    # Fails fast on an unsupported QUEUE_BACKEND, before any connection is made
    if settings.QUEUE_BACKEND not in SUPPORTED_BACKENDS:
        raise SystemExit(f"Unsupported QUEUE_BACKEND: {settings.QUEUE_BACKEND!r}; only 'redis' is supported")

    resources = Resources.create(settings)
    try:
        transport = create_transport(settings, resources.redis, consumer_name=CONSUMER_NAME)
        dispatcher = TaskDispatcher(
            build_default_registry(),
            resources=resources,
            max_concurrency=CONCURRENCY,
        )
        asyncio.run(main_loop(transport, dispatcher))
    finally:
        resources.close()


if __name__ == "__main__":
    main()

"""
Redis Streams Transport

Publishes task envelopes with XADD and delivers them to workers through a
consumer group (XREADGROUP). Redelivery works through the pending entries
list (PEL): a retried message is left unacknowledged and reclaimed with
XCLAIM once it has been idle long enough. Messages delivered more than
max_deliveries times go to the dead-letter stream.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

import redis

from starter_core.redis import ensure_stream_group, get_pending_count
from task_dispatch.contracts.envelope import TaskEnvelope
from task_dispatch.errors import TransportError
from task_dispatch.transport.base import Batch, DeliveredMessage, QueueTransport

logger = logging.getLogger(__name__)

DEFAULT_STREAM_NAME = "tasks:default"
DEFAULT_GROUP_NAME = "task-dispatchers"
DEFAULT_DLQ_STREAM = "tasks:dlq"


class RedisStreamTransport(QueueTransport):
    """
    Queue transport backed by a Redis stream and consumer group.

    One instance per process. The producer side only needs send/send_batch;
    the worker side also needs consumer_name for receive/reclaim.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        stream_name: str = DEFAULT_STREAM_NAME,
        group_name: str = DEFAULT_GROUP_NAME,
        consumer_name: str = "task-worker",
        dlq_stream: str = DEFAULT_DLQ_STREAM,
        max_len: int | None = 100000,
        max_deliveries: int = 5,
    ):
        self.redis = redis_client
        self.stream_name = stream_name
        self.group_name = group_name
        self.consumer_name = consumer_name
        self.dlq_stream = dlq_stream
        self.max_len = max_len
        self.max_deliveries = max_deliveries

    def ensure_ready(self) -> None:
        ensure_stream_group(self.redis, self.stream_name, self.group_name, start_id="0")

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def send(self, envelope: TaskEnvelope) -> str:
        try:
            msg_id = self._xadd(self.redis, envelope)
        except redis.RedisError as e:
            raise TransportError(f"Failed to publish to {self.stream_name}: {e}") from e

        logger.debug(
            f"Published to {self.stream_name}",
            extra={"stream": self.stream_name, "kind": envelope.kind_value, "msg_id": msg_id},
        )
        return msg_id

    def send_batch(self, envelopes: Sequence[TaskEnvelope]) -> list[str]:
        """Publish all envelopes in one MULTI/EXEC so the batch lands as a unit."""
        try:
            pipe = self.redis.pipeline(transaction=True)
            for envelope in envelopes:
                self._xadd(pipe, envelope)
            msg_ids = pipe.execute()
        except redis.RedisError as e:
            raise TransportError(f"Failed to publish batch to {self.stream_name}: {e}") from e

        logger.debug(
            f"Published batch of {len(msg_ids)} to {self.stream_name}",
            extra={"stream": self.stream_name, "count": len(msg_ids)},
        )
        return list(msg_ids)

    def _xadd(self, client, envelope: TaskEnvelope):
        data = envelope.to_stream_data()
        if self.max_len:
            return client.xadd(self.stream_name, data, maxlen=self.max_len, approximate=True)
        return client.xadd(self.stream_name, data)

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    def receive(self, count: int = 10, block_ms: int = 5000) -> Batch:
        try:
            result = self.redis.xreadgroup(
                self.group_name,
                self.consumer_name,
                {self.stream_name: ">"},
                count=count,
                block=block_ms,
            )
        except redis.ResponseError as e:
            if "NOGROUP" in str(e):
                logger.error(
                    f"Consumer group {self.group_name} does not exist for {self.stream_name}"
                )
            raise

        if not result:
            return Batch()

        # Result format: [[stream_name, [(msg_id, data), ...]]]
        messages = []
        for _stream, entries in result:
            for msg_id, data in entries:
                message = self._to_delivered(msg_id, data, attempts=1)
                if message is not None:
                    messages.append(message)

        return Batch(messages)

    def reclaim(self, min_idle_ms: int = 60000, count: int = 100) -> Batch:
        pending = self._get_idle_pending(min_idle_ms, count)
        if not pending:
            return Batch()

        delivery_counts = dict(pending)

        try:
            claimed = self.redis.xclaim(
                self.stream_name,
                self.group_name,
                self.consumer_name,
                min_idle_ms,
                list(delivery_counts),
            )
        except redis.ResponseError as e:
            logger.error(f"Failed to claim messages: {e}")
            return Batch()

        messages = []
        for msg_id, data in claimed:
            # XCLAIM counts as another delivery
            attempts = delivery_counts.get(msg_id, 0) + 1

            if not data:
                # Entry was trimmed from the stream; nothing left to deliver
                self._ack_id(msg_id)
                continue

            if attempts > self.max_deliveries:
                self._dead_letter(msg_id, data, attempts)
                continue

            message = self._to_delivered(msg_id, data, attempts=attempts)
            if message is not None:
                messages.append(message)

        if messages:
            logger.info(f"Reclaimed {len(messages)} pending messages from {self.stream_name}")

        return Batch(messages)

    def pending_count(self) -> int:
        try:
            return get_pending_count(self.redis, self.stream_name, self.group_name)
        except redis.RedisError as e:
            raise TransportError(f"Failed to read pending count for {self.stream_name}: {e}") from e

    def _get_idle_pending(self, min_idle_ms: int, count: int) -> list[tuple[str, int]]:
        """(message id, times delivered) for PEL entries idle at least min_idle_ms."""
        try:
            summary = self.redis.xpending(self.stream_name, self.group_name)
            if not summary or not summary.get("pending"):
                return []

            entries = self.redis.xpending_range(
                self.stream_name,
                self.group_name,
                min="-",
                max="+",
                count=count,
                idle=min_idle_ms,
            )
        except redis.ResponseError as e:
            logger.error(f"Failed to read pending entries: {e}")
            return []

        return [
            (entry["message_id"], entry["times_delivered"])
            for entry in entries
            if entry["time_since_delivered"] >= min_idle_ms
        ]

    def _to_delivered(self, msg_id: str, data: dict[str, str], attempts: int) -> DeliveredMessage | None:
        try:
            envelope = TaskEnvelope.from_stream_data(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.error(f"Failed to parse message {msg_id}: {e}", extra={"msg_id": msg_id})
            # Undecodable entries would otherwise sit in the PEL forever
            self._ack_id(msg_id)
            return None

        return DeliveredMessage(
            envelope=envelope,
            delivery_id=msg_id,
            attempts=attempts,
            _on_ack=self._ack,
            _on_retry=self._retry,
        )

    def _ack(self, message: DeliveredMessage) -> None:
        self._ack_id(message.delivery_id)

    def _ack_id(self, msg_id: str) -> int:
        return self.redis.xack(self.stream_name, self.group_name, msg_id)

    def _retry(self, message: DeliveredMessage) -> None:
        # Left in the PEL; reclaim() redelivers it once idle
        logger.debug(
            f"Message {message.delivery_id} left pending for redelivery",
            extra={"msg_id": message.delivery_id, "attempts": message.attempts},
        )

    def _dead_letter(self, msg_id: str, data: dict[str, str], attempts: int) -> None:
        entry = dict(data)
        entry["original_msg_id"] = msg_id
        entry["attempts"] = str(attempts)
        entry["dead_lettered_at"] = datetime.now(timezone.utc).isoformat()

        pipe = self.redis.pipeline(transaction=True)
        pipe.xadd(self.dlq_stream, entry)
        pipe.xack(self.stream_name, self.group_name, msg_id)
        pipe.execute()

        logger.warning(
            f"Message {msg_id} moved to {self.dlq_stream} after {attempts - 1} deliveries",
            extra={"msg_id": msg_id, "kind": data.get("kind"), "attempts": attempts},
        )

    # ------------------------------------------------------------------
    # Operations (admin CLI)
    # ------------------------------------------------------------------

    def stream_info(self) -> dict:
        """Length of the task and dead-letter streams plus consumer group stats."""
        try:
            groups = self.redis.xinfo_groups(self.stream_name)
        except redis.ResponseError:
            # Stream does not exist yet
            groups = []

        return {
            "stream": self.stream_name,
            "length": self.redis.xlen(self.stream_name),
            "dlq_stream": self.dlq_stream,
            "dlq_length": self.redis.xlen(self.dlq_stream),
            "groups": [
                {
                    "name": group.get("name"),
                    "consumers": group.get("consumers", 0),
                    "pending": group.get("pending", 0),
                }
                for group in groups
            ],
        }

    def read_dead_letters(self, count: int = 10) -> list[tuple[str, dict[str, str]]]:
        """Oldest entries of the dead-letter stream, without removing them."""
        return list(self.redis.xrange(self.dlq_stream, count=count))

    def replay_dead_letter(self, dlq_id: str, data: dict[str, str]) -> str:
        """
        Republish a dead-lettered entry to the task stream and delete it from
        the dead-letter stream.

        Raises:
            ValueError: the entry does not decode into an envelope
        """
        envelope = TaskEnvelope.from_stream_data(data)

        pipe = self.redis.pipeline(transaction=True)
        self._xadd(pipe, envelope)
        pipe.xdel(self.dlq_stream, dlq_id)
        msg_id, _ = pipe.execute()

        logger.info(
            f"Replayed {dlq_id} from {self.dlq_stream} as {msg_id}",
            extra={"dlq_id": dlq_id, "msg_id": msg_id, "kind": envelope.kind_value},
        )
        return msg_id

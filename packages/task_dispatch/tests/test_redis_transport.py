"""
Tests for the Redis Streams transport (against a mocked redis client).
"""

from unittest.mock import MagicMock

import pytest
import redis

from starter_core.settings import Settings
from task_dispatch.contracts.types import TaskKind
from task_dispatch.errors import TransportError
from task_dispatch.transport import create_transport
from task_dispatch.transport.redis_streams import RedisStreamTransport


@pytest.fixture
def redis_client():
    return MagicMock(spec=redis.Redis)


@pytest.fixture
def redis_transport(redis_client):
    return RedisStreamTransport(
        redis_client,
        stream_name="tasks:test",
        group_name="workers",
        consumer_name="worker-1",
        dlq_stream="tasks:test:dlq",
        max_len=1000,
        max_deliveries=3,
    )


def stream_entry(kind="email", payload='{"to": "a@example.com"}', timestamp="1700000000000"):
    return {"kind": kind, "payload": payload, "timestamp": timestamp}


class TestSend:
    def test_send_xadds_stream_data(self, redis_transport, redis_client, make_envelope):
        redis_client.xadd.return_value = "1-0"

        msg_id = redis_transport.send(make_envelope())

        assert msg_id == "1-0"
        redis_client.xadd.assert_called_once_with(
            "tasks:test",
            stream_entry(),
            maxlen=1000,
            approximate=True,
        )

    def test_send_wraps_redis_errors(self, redis_transport, redis_client, make_envelope):
        redis_client.xadd.side_effect = redis.ConnectionError("refused")

        with pytest.raises(TransportError):
            redis_transport.send(make_envelope())

    def test_send_batch_uses_one_transaction(self, redis_transport, redis_client, make_envelope):
        pipe = MagicMock()
        pipe.execute.return_value = ["1-0", "1-1"]
        redis_client.pipeline.return_value = pipe

        ids = redis_transport.send_batch([make_envelope(), make_envelope(TaskKind.WEBHOOK, {})])

        redis_client.pipeline.assert_called_once_with(transaction=True)
        assert pipe.xadd.call_count == 2
        pipe.execute.assert_called_once()
        assert ids == ["1-0", "1-1"]

    def test_send_batch_failure_raises(self, redis_transport, redis_client, make_envelope):
        pipe = MagicMock()
        pipe.execute.side_effect = redis.ConnectionError("refused")
        redis_client.pipeline.return_value = pipe

        with pytest.raises(TransportError):
            redis_transport.send_batch([make_envelope()])


class TestReceive:
    def test_receive_builds_batch(self, redis_transport, redis_client):
        redis_client.xreadgroup.return_value = [
            ["tasks:test", [("1-0", stream_entry()), ("1-1", stream_entry(kind="webhook", payload="{}"))]]
        ]

        batch = redis_transport.receive(count=5, block_ms=100)

        redis_client.xreadgroup.assert_called_once_with(
            "workers", "worker-1", {"tasks:test": ">"}, count=5, block=100
        )
        assert [m.delivery_id for m in batch] == ["1-0", "1-1"]
        assert batch.messages[0].envelope.kind is TaskKind.EMAIL
        assert batch.messages[0].attempts == 1

    def test_receive_nothing(self, redis_transport, redis_client):
        redis_client.xreadgroup.return_value = []

        assert len(redis_transport.receive()) == 0

    def test_unparseable_entry_is_acked_and_skipped(self, redis_transport, redis_client):
        redis_client.xreadgroup.return_value = [
            ["tasks:test", [("1-0", {"payload": "not json"}), ("1-1", stream_entry())]]
        ]

        batch = redis_transport.receive()

        assert [m.delivery_id for m in batch] == ["1-1"]
        redis_client.xack.assert_called_once_with("tasks:test", "workers", "1-0")

    def test_ack_xacks(self, redis_transport, redis_client):
        redis_client.xreadgroup.return_value = [["tasks:test", [("1-0", stream_entry())]]]
        message = redis_transport.receive().messages[0]

        message.ack()

        redis_client.xack.assert_called_once_with("tasks:test", "workers", "1-0")

    def test_retry_leaves_message_pending(self, redis_transport, redis_client):
        redis_client.xreadgroup.return_value = [["tasks:test", [("1-0", stream_entry())]]]
        message = redis_transport.receive().messages[0]

        message.retry()

        redis_client.xack.assert_not_called()


class TestReclaim:
    def pending(self, redis_client, entries):
        redis_client.xpending.return_value = {"pending": len(entries)}
        redis_client.xpending_range.return_value = [
            {
                "message_id": msg_id,
                "consumer": "worker-0",
                "time_since_delivered": idle,
                "times_delivered": delivered,
            }
            for msg_id, idle, delivered in entries
        ]

    def test_reclaims_idle_messages(self, redis_transport, redis_client):
        self.pending(redis_client, [("1-0", 90000, 1), ("1-1", 10, 1)])
        redis_client.xclaim.return_value = [("1-0", stream_entry())]

        batch = redis_transport.reclaim(min_idle_ms=60000)

        redis_client.xclaim.assert_called_once_with("tasks:test", "workers", "worker-1", 60000, ["1-0"])
        assert [m.delivery_id for m in batch] == ["1-0"]
        assert batch.messages[0].attempts == 2

    def test_nothing_pending(self, redis_transport, redis_client):
        redis_client.xpending.return_value = {"pending": 0}

        assert len(redis_transport.reclaim()) == 0
        redis_client.xclaim.assert_not_called()

    def test_over_limit_goes_to_dead_letter_stream(self, redis_transport, redis_client):
        self.pending(redis_client, [("1-0", 90000, 3)])
        redis_client.xclaim.return_value = [("1-0", stream_entry())]
        pipe = MagicMock()
        redis_client.pipeline.return_value = pipe

        batch = redis_transport.reclaim(min_idle_ms=60000)

        assert len(batch) == 0
        dlq_stream, dlq_entry = pipe.xadd.call_args[0]
        assert dlq_stream == "tasks:test:dlq"
        assert dlq_entry["original_msg_id"] == "1-0"
        assert dlq_entry["attempts"] == "4"
        pipe.xack.assert_called_once_with("tasks:test", "workers", "1-0")
        pipe.execute.assert_called_once()

    def test_trimmed_entry_is_acked(self, redis_transport, redis_client):
        self.pending(redis_client, [("1-0", 90000, 1)])
        redis_client.xclaim.return_value = [("1-0", None)]

        batch = redis_transport.reclaim(min_idle_ms=60000)

        assert len(batch) == 0
        redis_client.xack.assert_called_once_with("tasks:test", "workers", "1-0")


def test_ensure_ready_tolerates_existing_group(redis_transport, redis_client):
    redis_client.xgroup_create.side_effect = redis.ResponseError("BUSYGROUP Consumer Group name already exists")

    redis_transport.ensure_ready()

    redis_client.xgroup_create.assert_called_once_with("tasks:test", "workers", id="0", mkstream=True)


def test_pending_count(redis_transport, redis_client):
    redis_client.xpending.return_value = {"pending": 7}

    assert redis_transport.pending_count() == 7


def test_pending_count_connection_error(redis_transport, redis_client):
    redis_client.xpending.side_effect = redis.ConnectionError("refused")

    with pytest.raises(TransportError):
        redis_transport.pending_count()


def test_reclaim_filters_idle_entries_on_the_server(redis_transport, redis_client):
    # Two recently delivered entries ahead of one idle entry; the server-side
    # idle filter keeps the busy ones from filling the window
    redis_client.xpending.return_value = {"pending": 3}
    redis_client.xpending_range.return_value = [
        {"message_id": "1-2", "consumer": "worker-0", "time_since_delivered": 90000, "times_delivered": 1}
    ]
    redis_client.xclaim.return_value = [("1-2", stream_entry())]

    batch = redis_transport.reclaim(min_idle_ms=60000, count=2)

    redis_client.xpending_range.assert_called_once_with(
        "tasks:test", "workers", min="-", max="+", count=2, idle=60000
    )
    assert [m.delivery_id for m in batch] == ["1-2"]


class TestCreateTransport:
    def test_redis_backend(self, redis_client):
        settings = Settings(QUEUE_BACKEND="redis", QUEUE_STREAM_NAME="tasks:test")

        transport = create_transport(settings, redis_client, consumer_name="worker-1")

        assert isinstance(transport, RedisStreamTransport)
        assert transport.stream_name == "tasks:test"
        assert transport.consumer_name == "worker-1"

    def test_memory_backend_rejected(self, redis_client):
        with pytest.raises(ValueError, match="QUEUE_BACKEND"):
            create_transport(Settings(QUEUE_BACKEND="memory"), redis_client)

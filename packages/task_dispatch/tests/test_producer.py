"""
Tests for the task producer.
"""

import logging

import pytest

from task_dispatch.contracts.requests import MAX_BATCH_SIZE, TaskRequest
from task_dispatch.contracts.types import TaskKind
from task_dispatch.errors import TransportError, ValidationError
from task_dispatch.producer import MonotonicClock, TaskProducer, format_error_location
from task_dispatch.transport.memory import InMemoryTransport


@pytest.fixture
def producer(transport, fixed_clock):
    return TaskProducer(transport, clock=fixed_clock)


def email_request(i=0):
    return {"kind": "email", "payload": {"to": f"user{i}@example.com"}}


class TestSend:
    def test_send_enqueues_one_envelope(self, producer, transport, sample_timestamp):
        result = producer.send(email_request())

        assert result.timestamp == sample_timestamp
        assert len(transport.sent) == 1
        envelope = transport.sent[0]
        assert envelope.kind is TaskKind.EMAIL
        assert envelope.enqueued_at == result.timestamp
        assert dict(envelope.payload) == {"to": "user0@example.com"}

    def test_send_logs_enqueued_at(self, producer, sample_timestamp, caplog):
        with caplog.at_level(logging.INFO, logger="task_dispatch.producer"):
            producer.send(email_request())

        record = next(r for r in caplog.records if r.name == "task_dispatch.producer")
        assert record.enqueued_at == sample_timestamp
        assert not hasattr(record, "timestamp")

    def test_send_accepts_task_request(self, producer, transport):
        producer.send(TaskRequest(kind=TaskKind.WEBHOOK, payload={}))

        assert transport.sent[0].kind is TaskKind.WEBHOOK

    def test_timestamp_not_before_request(self, transport):
        from task_dispatch.producer import now_ms

        producer = TaskProducer(transport)
        received_at = now_ms()

        result = producer.send(email_request())

        assert result.timestamp >= received_at

    @pytest.mark.parametrize("kind", ["sms", "", None, 3, "EMAIL"])
    def test_unknown_kind_rejected(self, producer, transport, kind):
        with pytest.raises(ValidationError) as exc:
            producer.send({"kind": kind, "payload": {}})

        assert exc.value.field == "kind"
        assert transport.sent == []

    @pytest.mark.parametrize("payload", [[1, 2], "text", 42, None, True])
    def test_non_object_payload_rejected(self, producer, transport, payload):
        with pytest.raises(ValidationError) as exc:
            producer.send({"kind": "email", "payload": payload})

        assert exc.value.field == "payload"
        assert transport.sent == []

    def test_missing_payload_rejected(self, producer, transport):
        with pytest.raises(ValidationError) as exc:
            producer.send({"kind": "email"})

        assert exc.value.field == "payload"

    def test_client_timestamp_rejected(self, producer, transport):
        with pytest.raises(ValidationError) as exc:
            producer.send({"kind": "email", "payload": {}, "timestamp": 1})

        assert exc.value.field == "timestamp"
        assert transport.sent == []

    def test_non_mapping_body_rejected(self, producer):
        with pytest.raises(ValidationError) as exc:
            producer.send(["email"])

        assert exc.value.field == "body"

    def test_transport_failure_raises(self, fixed_clock):
        producer = TaskProducer(InMemoryTransport(fail_sends=True), clock=fixed_clock)

        with pytest.raises(TransportError):
            producer.send(email_request())


class TestSendBatch:
    def test_batch_of_max_size_accepted(self, producer, transport):
        result = producer.send_batch([email_request(i) for i in range(MAX_BATCH_SIZE)])

        assert result.count == MAX_BATCH_SIZE
        assert len(transport.sent) == MAX_BATCH_SIZE
        assert result.timestamps == [e.enqueued_at for e in transport.sent]

    def test_empty_batch_rejected(self, producer, transport):
        with pytest.raises(ValidationError) as exc:
            producer.send_batch([])

        assert exc.value.field == "messages"
        assert transport.sent == []

    def test_oversized_batch_rejected(self, producer, transport):
        with pytest.raises(ValidationError) as exc:
            producer.send_batch([email_request(i) for i in range(MAX_BATCH_SIZE + 1)])

        assert exc.value.field == "messages"
        assert transport.sent == []

    def test_one_bad_item_rejects_whole_batch(self, producer, transport):
        requests = [email_request(i) for i in range(5)]
        requests[3] = {"kind": "fax", "payload": {}}

        with pytest.raises(ValidationError) as exc:
            producer.send_batch(requests)

        assert exc.value.field == "messages[3].kind"
        assert transport.sent == []

    def test_batch_must_be_a_list(self, producer):
        with pytest.raises(ValidationError):
            producer.send_batch({"kind": "email", "payload": {}})

    def test_batch_timestamps_are_monotonic(self, producer):
        result = producer.send_batch([email_request(i) for i in range(10)])

        assert result.timestamps == sorted(result.timestamps)

    def test_parse_batch_reports_item_field(self):
        with pytest.raises(ValidationError) as exc:
            TaskProducer.parse_batch({"messages": [email_request(), {"kind": "email", "payload": []}]})

        assert exc.value.field == "messages[1].payload"


class TestMonotonicClock:
    def test_never_goes_backwards(self):
        readings = iter([100, 105, 90, 106])
        clock = MonotonicClock(source=lambda: next(readings))

        assert [clock(), clock(), clock(), clock()] == [100, 105, 105, 106]


def test_format_error_location():
    assert format_error_location(["messages", 3, "kind"]) == "messages[3].kind"
    assert format_error_location(["payload"]) == "payload"
    assert format_error_location([]) == "body"

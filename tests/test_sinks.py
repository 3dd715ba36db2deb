"""Tests for sinks and the notification dispatcher."""

import json
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from loan_ledger.exceptions import SinkError
from loan_ledger.models import Event
from loan_ledger.models.financial import Borrower, LedgerEventType
from loan_ledger.notifications import NotificationDispatcher
from loan_ledger.sinks.console import ConsoleSink
from loan_ledger.sinks.json_file import JsonFileSink
from loan_ledger.sinks.memory import MemorySink


def _event(subject: str = "p-001") -> Event:
    return Event(
        event_id="e-001",
        event_type=LedgerEventType.PAYMENT_CONFIRMED.value,
        event_time=datetime(2025, 3, 2, 8, 15, tzinfo=timezone.utc),
        source="loan-ledger",
        subject=subject,
        data={"amount": Decimal("4000"), "fund_delta": Decimal("666.666667")},
    )


def _borrower() -> Borrower:
    return Borrower("b-001", "María Benítez", "maria@example.com", "+595981000001", datetime(2025, 3, 1))


class TestConsoleSink:
    """Tests for ConsoleSink."""

    def test_publish(self, capsys: pytest.CaptureFixture) -> None:
        sink = ConsoleSink(pretty=False)

        sink.publish(_event())
        captured = capsys.readouterr()

        assert '"payment.confirmed"' in captured.out
        assert '"666.666667"' in captured.out
        assert sink.counts["payment.confirmed"] == 1

    def test_write_batch_truncates(self, capsys: pytest.CaptureFixture) -> None:
        sink = ConsoleSink(pretty=True, max_records=2)

        sink.write_batch("loans", [{"loan_id": f"l-{i}"} for i in range(5)])
        captured = capsys.readouterr()

        assert "loans (5 records)" in captured.out
        assert "(3 more not shown)" in captured.out
        assert sink.counts["loans"] == 5

    def test_close_prints_summary(self, capsys: pytest.CaptureFixture) -> None:
        sink = ConsoleSink()
        sink.write_batch("payments", [])
        sink.close()

        assert "payments: 0" in capsys.readouterr().out


class TestJsonFileSink:
    """Tests for JsonFileSink."""

    def test_publish_appends_jsonl(self, tmp_path: Path) -> None:
        sink = JsonFileSink(tmp_path)

        sink.publish(_event("p-001"))
        sink.publish(_event("p-002"))

        lines = (tmp_path / "events.jsonl").read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["subject"] for line in lines] == ["p-001", "p-002"]
        assert json.loads(lines[0])["data"]["amount"] == "4000"

    def test_write_batch(self, tmp_path: Path) -> None:
        sink = JsonFileSink(tmp_path / "nested", pretty=True)

        sink.write_batch("borrowers", [_borrower()])

        data = json.loads((tmp_path / "nested" / "borrowers.json").read_text(encoding="utf-8"))
        assert data[0]["borrower_id"] == "b-001"
        assert data[0]["fund_balance"] == "0"

    def test_close_reports_counts(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        sink = JsonFileSink(tmp_path)
        sink.write_batch("loans", [{"loan_id": "l-001"}])
        sink.publish(_event())
        sink.close()

        out = capsys.readouterr().out
        assert "loans: 1" in out
        assert "events: 1" in out
        assert not list(tmp_path.glob("*.tmp"))


class TestMemorySink:
    def test_collects(self) -> None:
        sink = MemorySink()
        sink.publish(_event())
        sink.write_batch("loans", [1, 2])
        sink.write_batch("loans", [3])

        assert sink.event_types() == ["payment.confirmed"]
        assert sink.batches == {"loans": [1, 2, 3]}


class TestNotificationDispatcher:
    def test_build_addresses_recipient(self) -> None:
        dispatcher = NotificationDispatcher(source="ledger-test")

        event = dispatcher.build(
            LedgerEventType.LOAN_ORIGINATED, "l-001", _borrower(), {"loan_id": "l-001"}
        )

        assert event.event_type == "loan.originated"
        assert event.source == "ledger-test"
        assert event.subject == "l-001"
        assert event.data["recipient"]["email"] == "maria@example.com"
        assert event.data["loan_id"] == "l-001"
        assert event.event_time.tzinfo is not None

    def test_publish_counts_deliveries_and_failures(self) -> None:
        broken = MagicMock()
        broken.publish.side_effect = SinkError("queue full")
        memory = MemorySink()
        dispatcher = NotificationDispatcher([broken])
        dispatcher.add_sink(memory)

        delivered = dispatcher.publish([_event("p-001"), _event("p-002")])

        assert delivered == 2
        assert dispatcher.failures == 2
        assert len(memory.events) == 2


class TestKafkaSinkMocked:
    """Tests for KafkaSink using mocks (no actual Kafka connection)."""

    @staticmethod
    def _producer(mock_producer_class: MagicMock) -> MagicMock:
        producer = MagicMock()
        producer.flush.return_value = 0
        mock_producer_class.return_value = producer
        return producer

    def test_delivery_stats_pending(self) -> None:
        from loan_ledger.sinks.kafka import DeliveryStats

        assert DeliveryStats(sent=10, delivered=7, failed=1).pending == 2
        assert DeliveryStats().pending == 0

    @patch("loan_ledger.sinks.kafka.Producer")
    def test_init_with_string(self, mock_producer_class: MagicMock) -> None:
        from loan_ledger.sinks.kafka import KafkaSink

        sink = KafkaSink("localhost:9092")

        assert sink.config.bootstrap_servers == "localhost:9092"
        assert sink.config.topic == "ledger.notifications"
        conf = mock_producer_class.call_args[0][0]
        assert conf["bootstrap.servers"] == "localhost:9092"
        assert conf["acks"] == "all"

    @patch("loan_ledger.sinks.kafka.Producer")
    def test_init_with_config(self, mock_producer_class: MagicMock) -> None:
        from loan_ledger.config import KafkaConfig
        from loan_ledger.sinks.kafka import KafkaSink

        sink = KafkaSink(KafkaConfig(bootstrap_servers="kafka:9092", topic="prod.ledger"))

        assert sink.config.topic == "prod.ledger"
        assert mock_producer_class.call_args[0][0]["bootstrap.servers"] == "kafka:9092"

    @patch("loan_ledger.sinks.kafka.Producer")
    def test_publish_keys_by_subject(self, mock_producer_class: MagicMock) -> None:
        from loan_ledger.sinks.kafka import KafkaSink

        producer = self._producer(mock_producer_class)
        sink = KafkaSink("localhost:9092")

        sink.publish(_event("p-042"))

        kwargs = producer.produce.call_args[1]
        assert kwargs["topic"] == "ledger.notifications"
        assert kwargs["key"] == b"p-042"
        assert json.loads(kwargs["value"])["data"]["fund_delta"] == "666.666667"
        assert sink.stats.sent == 1
        producer.poll.assert_called_with(0)

    @patch("loan_ledger.sinks.kafka.Producer")
    def test_write_batch_keys_by_entity(self, mock_producer_class: MagicMock) -> None:
        from loan_ledger.sinks.kafka import KafkaSink

        producer = self._producer(mock_producer_class)
        sink = KafkaSink("localhost:9092")

        sink.write_batch("borrowers", [_borrower(), {"borrower_id": "b-002"}])

        calls = producer.produce.call_args_list
        assert [c[1]["topic"] for c in calls] == ["ledger.borrowers", "ledger.borrowers"]
        assert [c[1]["key"] for c in calls] == [b"b-001", b"b-002"]
        producer.flush.assert_called_once()

    @patch("loan_ledger.sinks.kafka.Producer")
    def test_unknown_entity_has_no_key(self, mock_producer_class: MagicMock) -> None:
        from loan_ledger.sinks.kafka import KafkaSink

        producer = self._producer(mock_producer_class)
        sink = KafkaSink("localhost:9092", snapshot_prefix="audit")

        sink.write_batch("notes", [{"id": 1}])

        kwargs = producer.produce.call_args[1]
        assert kwargs["topic"] == "audit.notes"
        assert kwargs["key"] is None

    @patch("loan_ledger.sinks.kafka.Producer")
    def test_full_queue_raises_sink_error(self, mock_producer_class: MagicMock) -> None:
        from loan_ledger.sinks.kafka import KafkaSink

        producer = self._producer(mock_producer_class)
        producer.produce.side_effect = BufferError("Local: Queue full")
        sink = KafkaSink("localhost:9092")

        with pytest.raises(SinkError):
            sink.publish(_event())
        assert sink.stats.sent == 0

    @patch("loan_ledger.sinks.kafka.Producer")
    def test_delivery_callback(self, mock_producer_class: MagicMock) -> None:
        from loan_ledger.sinks.kafka import KafkaSink

        sink = KafkaSink("localhost:9092")
        msg = MagicMock()
        msg.topic.return_value = "ledger.notifications"
        msg.partition.return_value = 0
        msg.offset.return_value = 7

        sink._on_delivery(None, msg)
        sink._on_delivery("broker down", msg)

        assert sink.stats.delivered == 1
        assert sink.stats.failed == 1

    @patch("loan_ledger.sinks.kafka.Producer")
    def test_close_flushes(self, mock_producer_class: MagicMock) -> None:
        from loan_ledger.sinks.kafka import KafkaSink

        producer = self._producer(mock_producer_class)

        KafkaSink("localhost:9092").close()

        producer.flush.assert_called_once_with(30.0)

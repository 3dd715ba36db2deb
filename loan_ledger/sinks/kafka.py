"""Kafka sink for ledger notifications and snapshot exports."""

import logging
from dataclasses import dataclass
from typing import Any

from confluent_kafka import Producer

from loan_ledger.config import KafkaConfig
from loan_ledger.exceptions import SinkError
from loan_ledger.models.base import Event
from loan_ledger.sinks.serialization import encode_json

logger = logging.getLogger(__name__)


@dataclass
class DeliveryStats:
    """Counts reported back by the producer's delivery callbacks."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0

    @property
    def pending(self) -> int:
        return self.sent - self.delivered - self.failed


class KafkaSink:
    """Publish events to the notifications topic and snapshots to per-entity topics.

    Events are keyed by their subject. Snapshot records are keyed by the
    field that keeps one borrower's or loan's history on one partition.
    """

    SNAPSHOT_KEYS = {
        "borrowers": "borrower_id",
        "loans": "borrower_id",
        "installments": "loan_id",
        "payments": "installment_id",
        "rollover_credits": "loan_id",
    }

    def __init__(self, config: KafkaConfig | str, snapshot_prefix: str = "ledger") -> None:
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)
        self.config = config
        self.snapshot_prefix = snapshot_prefix
        self.stats = DeliveryStats()
        self.producer = Producer(config.producer_settings())

    def _on_delivery(self, err: Any, msg: Any) -> None:
        if err is not None:
            self.stats.failed += 1
            logger.error("Kafka delivery to %s failed: %s", msg.topic(), err)
            return
        self.stats.delivered += 1
        logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def send(self, topic: str, record: Any, key: str | None = None) -> None:
        """Queue one record as JSON.

        Raises
        ------
        SinkError
            If the producer's local queue is full.
        """
        try:
            self.producer.produce(
                topic=topic,
                key=key.encode("utf-8") if key else None,
                value=encode_json(record).encode("utf-8"),
                on_delivery=self._on_delivery,
            )
        except BufferError as exc:
            raise SinkError(f"Kafka producer queue is full for {topic}") from exc
        self.stats.sent += 1
        self.producer.poll(0)

    def publish(self, event: Event) -> None:
        """Queue an event without waiting for delivery."""
        self.send(self.config.topic, event, key=event.subject)

    def write_batch(self, entity_type: str, records: list[Any]) -> None:
        topic = f"{self.snapshot_prefix}.{entity_type}"
        key_field = self.SNAPSHOT_KEYS.get(entity_type)
        for record in records:
            self.send(topic, record, key=_field(record, key_field))
        self.flush()
        logger.info("Exported %d %s to %s (failed so far: %d)", len(records), entity_type, topic, self.stats.failed)

    def flush(self, timeout: float = 30.0) -> None:
        remaining = self.producer.flush(timeout)
        if remaining:
            logger.warning("%d Kafka messages still queued after %.1fs", remaining, timeout)

    def close(self) -> None:
        self.flush()
        logger.info(
            "Kafka sink closed: sent=%d delivered=%d failed=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
        )


def _field(record: Any, name: str | None) -> str | None:
    if name is None:
        return None
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)

"""Fan-out of committed ledger events to notification sinks."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from loan_ledger.models import Event, new_id
from loan_ledger.models.financial import Borrower, LedgerEventType

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    def publish(self, event: Event) -> None: ...


class NotificationDispatcher:
    """Deliver events to every sink, fire-and-forget.

    Called only after a unit of work has committed. A failing sink is
    logged and skipped; the ledger operation it reports on stands.
    """

    def __init__(self, sinks: list[EventSink] | None = None, source: str = "loan-ledger") -> None:
        self.sinks: list[EventSink] = list(sinks or [])
        self.source = source
        self.failures = 0

    def add_sink(self, sink: EventSink) -> None:
        self.sinks.append(sink)

    def build(
        self,
        event_type: LedgerEventType,
        subject: str,
        recipient: Borrower,
        data: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> Event:
        """Wrap event data in the standard envelope, addressed to a borrower."""
        payload = {
            "recipient": {
                "borrower_id": recipient.borrower_id,
                "name": recipient.name,
                "email": recipient.email,
                "phone": recipient.phone,
            },
            **data,
        }
        return Event(
            event_id=new_id(),
            event_type=event_type.value,
            event_time=datetime.now(timezone.utc),
            source=self.source,
            subject=subject,
            data=payload,
            metadata=dict(metadata or {}),
        )

    def publish(self, events: list[Event]) -> int:
        """Send events to all sinks; returns the number of successful deliveries."""
        delivered = 0
        for event in events:
            for sink in self.sinks:
                try:
                    sink.publish(event)
                except Exception:
                    self.failures += 1
                    logger.exception(
                        "Notification %s (%s) failed on %s",
                        event.event_id,
                        event.event_type,
                        type(sink).__name__,
                    )
                else:
                    delivered += 1
        return delivered

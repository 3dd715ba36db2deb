"""In-memory sink that keeps everything it receives."""

import threading
from typing import Any

from loan_ledger.models.base import Event


class MemorySink:
    """Collect published events and written batches for inspection."""

    def __init__(self) -> None:
        self.events: list[Event] = []
        self.batches: dict[str, list[Any]] = {}
        self._lock = threading.Lock()

    def publish(self, event: Event) -> None:
        with self._lock:
            self.events.append(event)

    def write_batch(self, entity_type: str, records: list[Any]) -> None:
        with self._lock:
            self.batches.setdefault(entity_type, []).extend(records)

    def event_types(self) -> list[str]:
        with self._lock:
            return [e.event_type for e in self.events]

    def close(self) -> None:
        pass

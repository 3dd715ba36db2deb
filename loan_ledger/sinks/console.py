"""Stdout sink for watching a ledger while developing."""

from collections import Counter
from typing import Any

from loan_ledger.models.base import Event
from loan_ledger.sinks.serialization import encode_json


class ConsoleSink:
    """Echo events and snapshot batches as JSON."""

    RULE = "-" * 60

    def __init__(self, pretty: bool = True, max_records: int | None = None) -> None:
        self.pretty = pretty
        self.max_records = max_records
        self.counts: Counter[str] = Counter()

    def publish(self, event: Event) -> None:
        print(f"[{event.event_type}] {event.subject}")
        print(encode_json(event, self.pretty))
        self.counts[event.event_type] += 1

    def write_batch(self, entity_type: str, records: list[Any]) -> None:
        """Print a batch, truncated to ``max_records`` when set."""
        shown = records if self.max_records is None else records[: self.max_records]
        print(self.RULE)
        print(f"{entity_type}: {len(records)} records")
        print(self.RULE)
        for record in shown:
            print(encode_json(record, self.pretty))
        if len(records) > len(shown):
            print(f"({len(records) - len(shown)} more not shown)")
        self.counts[entity_type] += len(records)

    def close(self) -> None:
        print(f"Console sink: {sum(self.counts.values())} records")
        for name in sorted(self.counts):
            print(f"  {name}: {self.counts[name]}")

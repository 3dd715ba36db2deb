"""Directory sink: one JSON file per snapshot, one JSON Lines log of events."""

import json
import logging
import os
import threading
from collections import Counter
from pathlib import Path
from typing import Any

from loan_ledger.models.base import Event
from loan_ledger.sinks.serialization import encode_json, to_record

logger = logging.getLogger(__name__)


class JsonFileSink:
    """Write ledger output under ``output_dir``.

    Snapshot batches replace ``<entity_type>.json`` atomically, so a reader
    never sees a half-written export. Events are appended to
    ``events_filename`` as they are published.
    """

    def __init__(
        self,
        output_dir: str | Path,
        pretty: bool = False,
        events_filename: str = "events.jsonl",
    ) -> None:
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.pretty = pretty
        self.events_path = self.output_dir / events_filename
        self.counts: Counter[str] = Counter()
        self._lock = threading.Lock()

    def publish(self, event: Event) -> None:
        line = encode_json(event)
        with self._lock:
            with self.events_path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
            self.counts["events"] += 1

    def write_batch(self, entity_type: str, records: list[Any]) -> None:
        target = self.output_dir / f"{entity_type}.json"
        partial = target.with_name(target.name + ".tmp")
        rows = [to_record(record) for record in records]

        with partial.open("w", encoding="utf-8") as fh:
            json.dump(rows, fh, ensure_ascii=False, indent=2 if self.pretty else None)
        os.replace(partial, target)

        with self._lock:
            self.counts[entity_type] = len(rows)
        logger.debug("Wrote %d %s to %s", len(rows), entity_type, target)

    def close(self) -> None:
        print(f"Ledger export in {self.output_dir}")
        for name in sorted(self.counts):
            print(f"  {name}: {self.counts[name]}")

"""Output sinks for ledger notifications and snapshots."""

from loan_ledger.sinks.console import ConsoleSink
from loan_ledger.sinks.json_file import JsonFileSink
from loan_ledger.sinks.kafka import KafkaSink
from loan_ledger.sinks.memory import MemorySink

__all__ = ["ConsoleSink", "JsonFileSink", "KafkaSink", "MemorySink"]

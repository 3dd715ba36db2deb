"""Transactional backing stores for the ledger."""

from loan_ledger.store.base import LedgerStore, UnitOfWork
from loan_ledger.store.memory import InMemoryLedgerStore

__all__ = ["InMemoryLedgerStore", "LedgerStore", "UnitOfWork"]

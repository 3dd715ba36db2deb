"""Domain models for the loan ledger."""

from loan_ledger.models.base import Event, new_id

__all__ = ["Event", "new_id"]

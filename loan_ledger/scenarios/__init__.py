"""Scenarios for generating realistic ledger activity."""

from loan_ledger.scenarios.financial import DailyCollectionScenario

__all__ = ["DailyCollectionScenario"]

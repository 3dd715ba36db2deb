"""Financial scenarios for simulating daily-collection lending."""

from loan_ledger.scenarios.financial.daily_collection import DailyCollectionScenario

__all__ = ["DailyCollectionScenario"]

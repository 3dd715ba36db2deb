"""Daily repayment schedule generation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterator

from loan_ledger.exceptions import InvalidScheduleParametersError


@dataclass(frozen=True)
class ScheduleEntry:
    """One expected daily installment."""

    installment_number: int
    due_date: date
    expected_amount: Decimal


def generate_schedule(
    principal: Decimal,
    daily_amount: Decimal,
    term_days: int,
    start_date: date,
) -> list[ScheduleEntry]:
    """Build the uniform daily schedule of a loan.

    Parameters
    ----------
    principal : Decimal
        Amount disbursed. Only validated; the schedule depends on the
        daily amount alone.
    daily_amount : Decimal
        Amount expected on every day of the term.
    term_days : int
        Number of consecutive daily installments.
    start_date : date
        Due date of the first installment.

    Returns
    -------
    list[ScheduleEntry]
        ``term_days`` entries due on ``start_date + i`` days, in order.

    Raises
    ------
    InvalidScheduleParametersError
        If the term is not a positive integer or an amount is not positive.
    """
    if isinstance(term_days, bool) or not isinstance(term_days, int) or term_days <= 0:
        raise InvalidScheduleParametersError(f"term_days must be a positive integer, got {term_days!r}")
    if principal <= 0:
        raise InvalidScheduleParametersError(f"principal must be positive, got {principal}")
    if daily_amount <= 0:
        raise InvalidScheduleParametersError(f"daily_amount must be positive, got {daily_amount}")

    return list(_iter_entries(daily_amount, term_days, start_date))


def _iter_entries(daily_amount: Decimal, term_days: int, start_date: date) -> Iterator[ScheduleEntry]:
    for i in range(term_days):
        yield ScheduleEntry(
            installment_number=i + 1,
            due_date=start_date + timedelta(days=i),
            expected_amount=daily_amount,
        )

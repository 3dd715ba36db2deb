"""Tests for daily schedule generation."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from loan_ledger.exceptions import InvalidScheduleParametersError, ValidationError
from loan_ledger.ledger.schedule import ScheduleEntry, generate_schedule


class TestGenerateSchedule:
    """Tests for generate_schedule."""

    def test_thirty_day_schedule(self) -> None:
        start = date(2025, 3, 2)
        entries = generate_schedule(Decimal("100000"), Decimal("4000"), 30, start)

        assert len(entries) == 30
        assert entries[0] == ScheduleEntry(1, start, Decimal("4000"))
        assert entries[-1].installment_number == 30
        assert entries[-1].due_date == start + timedelta(days=29)
        assert sum(e.expected_amount for e in entries) == Decimal("120000")

    def test_consecutive_days_across_month_end(self) -> None:
        entries = generate_schedule(Decimal("10000"), Decimal("1000"), 5, date(2024, 2, 27))

        assert [e.due_date for e in entries] == [
            date(2024, 2, 27),
            date(2024, 2, 28),
            date(2024, 2, 29),
            date(2024, 3, 1),
            date(2024, 3, 2),
        ]

    def test_single_day_term(self) -> None:
        entries = generate_schedule(Decimal("1000"), Decimal("1200"), 1, date(2025, 1, 1))

        assert len(entries) == 1
        assert entries[0].installment_number == 1

    @pytest.mark.parametrize(
        "principal, daily, term",
        [
            (Decimal("100000"), Decimal("4000"), 0),
            (Decimal("100000"), Decimal("4000"), -3),
            (Decimal("100000"), Decimal("4000"), 2.5),
            (Decimal("100000"), Decimal("4000"), True),
            (Decimal("0"), Decimal("4000"), 30),
            (Decimal("100000"), Decimal("0"), 30),
            (Decimal("100000"), Decimal("-1"), 30),
        ],
    )
    def test_invalid_parameters(self, principal: Decimal, daily: Decimal, term: object) -> None:
        with pytest.raises(InvalidScheduleParametersError):
            generate_schedule(principal, daily, term, date(2025, 1, 1))

    def test_invalid_parameters_are_validation_errors(self) -> None:
        with pytest.raises(ValidationError):
            generate_schedule(Decimal("100000"), Decimal("4000"), 0, date(2025, 1, 1))

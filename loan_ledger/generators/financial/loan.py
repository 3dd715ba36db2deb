"""Loan request generator for daily-installment credit."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from loan_ledger.generators.base import BaseGenerator


@dataclass(frozen=True)
class LoanRequest:
    """Principal and pricing for a loan about to be originated."""

    principal: Decimal
    interest_percent: Decimal
    term_days: int


class LoanRequestGenerator(BaseGenerator):
    """Generate loan requests typical of street-level daily collection."""

    # Principal in whole currency units, drawn in steps of 10 000
    PRINCIPAL_RANGE = (50_000, 1_000_000)
    PRINCIPAL_STEP = 10_000

    TERMS = [20, 24, 30, 45, 60]
    TERM_WEIGHTS = [0.10, 0.15, 0.50, 0.15, 0.10]

    INTEREST_RATES = [Decimal("15"), Decimal("20"), Decimal("25")]
    INTEREST_WEIGHTS = [0.20, 0.60, 0.20]

    def generate(self) -> LoanRequest:
        """Generate a single loan request.

        Returns
        -------
        LoanRequest
            Principal, flat interest and term for a new loan.
        """
        low, high = self.PRINCIPAL_RANGE
        steps = self.rng.randint(low // self.PRINCIPAL_STEP, high // self.PRINCIPAL_STEP)
        term = self.rng.choices(self.TERMS, weights=self.TERM_WEIGHTS, k=1)[0]
        rate = self.rng.choices(self.INTEREST_RATES, weights=self.INTEREST_WEIGHTS, k=1)[0]
        return LoanRequest(
            principal=Decimal(steps * self.PRINCIPAL_STEP),
            interest_percent=rate,
            term_days=term,
        )

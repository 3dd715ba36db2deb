"""Loan models for lending domain."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from loan_ledger.models.financial.enums import (
    InstallmentStatus,
    LoanStatus,
    SettlementReason,
)
from loan_ledger.models.financial.payment import Payment

ZERO = Decimal("0")


def installment_status(paid_amount: Decimal, expected_amount: Decimal) -> InstallmentStatus:
    """Derive an installment's status from what has been paid against it."""
    if paid_amount >= expected_amount:
        return InstallmentStatus.PAID
    if paid_amount > ZERO:
        return InstallmentStatus.PARTIAL
    return InstallmentStatus.PENDING


@dataclass
class Loan:
    """Daily-installment loan contract.

    ``total_to_return`` is authoritative; ``interest_percent`` is derived
    from it for display.
    """

    loan_id: str
    borrower_id: str
    principal: Decimal
    interest_percent: Decimal
    total_to_return: Decimal  # daily_amount * term_days at creation
    term_days: int
    daily_amount: Decimal
    granted_date: date
    collection_start_date: date
    status: LoanStatus
    created_at: datetime
    settlement_reason: SettlementReason | None = None
    settled_at: datetime | None = None
    settled_by: str | None = None  # Renewal loan that closed this one
    renewed_from: list[str] = field(default_factory=list)
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE

    def settle(self, reason: SettlementReason, when: datetime, settled_by: str | None = None) -> None:
        """Move the loan to its terminal state."""
        self.status = LoanStatus.SETTLED
        self.settlement_reason = reason
        self.settled_at = when
        self.settled_by = settled_by
        self.updated_at = when


@dataclass
class Installment:
    """Loan installment (cuota).

    ``status`` is never set directly; every change to ``paid_amount`` goes
    through :meth:`apply` or :meth:`force_paid`, which re-derive it.
    """

    installment_id: str
    loan_id: str
    borrower_id: str
    installment_number: int  # 1, 2, 3, ...
    due_date: date
    expected_amount: Decimal
    paid_amount: Decimal = ZERO
    status: InstallmentStatus = InstallmentStatus.PENDING
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def outstanding(self) -> Decimal:
        return max(ZERO, self.expected_amount - self.paid_amount)

    def apply(self, delta: Decimal) -> Decimal:
        """Add ``delta`` (possibly negative) to the paid amount, floored at 0.

        Returns the change actually applied.
        """
        before = self.paid_amount
        self.paid_amount = max(ZERO, before + delta)
        self.status = installment_status(self.paid_amount, self.expected_amount)
        return self.paid_amount - before

    def force_paid(self) -> Decimal:
        """Mark fully paid without a collection; returns the amount absorbed."""
        absorbed = self.outstanding
        self.paid_amount = max(self.paid_amount, self.expected_amount)
        self.status = installment_status(self.paid_amount, self.expected_amount)
        return absorbed


@dataclass
class InstallmentLine:
    """An installment together with the payments recorded against it."""

    installment: Installment
    payments: list[Payment]


@dataclass
class LoanStatement:
    """Read model of a loan, its schedule and its payments."""

    loan: Loan
    lines: list[InstallmentLine]

    @property
    def total_paid(self) -> Decimal:
        return sum((line.installment.paid_amount for line in self.lines), ZERO)

    @property
    def total_pending(self) -> Decimal:
        return self.loan.total_to_return - self.total_paid

    @property
    def remaining_installments(self) -> int:
        return sum(1 for line in self.lines if line.installment.status != InstallmentStatus.PAID)

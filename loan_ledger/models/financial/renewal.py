"""Renewal (consolidation) models for lending domain."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from loan_ledger.models.financial.loan import Installment, Loan


@dataclass
class LoanStanding:
    """How far a single active loan has been repaid."""

    loan_id: str
    principal: Decimal
    total_to_return: Decimal
    total_paid: Decimal
    pending_debt: Decimal
    principal_ratio_paid: Decimal
    remaining_installments: int
    eligible: bool


@dataclass
class EligibilityReport:
    """Renewal eligibility of a borrower's active loans."""

    borrower_id: str
    borrower_name: str
    eligible: bool
    eligible_loans: list[LoanStanding]
    total_pending_debt: Decimal
    standings: list[LoanStanding] = field(default_factory=list)  # All active loans


@dataclass
class RolloverCredit:
    """Unpaid remainder of an installment absorbed into a renewal loan."""

    credit_id: str
    loan_id: str
    installment_id: str
    renewal_loan_id: str
    amount: Decimal
    created_at: datetime


@dataclass
class RenewalResult:
    """Outcome of consolidating loans into a new one."""

    loan: Loan
    installments: list[Installment]
    closed_loan_ids: list[str]
    cash_disbursed: Decimal  # new principal minus rolled-over debt
    debt_rolled_over: Decimal
    rollover_credits: list[RolloverCredit]

"""Lending domain models."""

from loan_ledger.models.financial.borrower import Borrower
from loan_ledger.models.financial.enums import (
    Capability,
    InstallmentStatus,
    LedgerEventType,
    LoanStatus,
    Role,
    SettlementReason,
)
from loan_ledger.models.financial.loan import (
    Installment,
    InstallmentLine,
    Loan,
    LoanStatement,
    installment_status,
)
from loan_ledger.models.financial.payment import Payment
from loan_ledger.models.financial.renewal import (
    EligibilityReport,
    LoanStanding,
    RenewalResult,
    RolloverCredit,
)

__all__ = [
    "Borrower",
    "Capability",
    "EligibilityReport",
    "Installment",
    "InstallmentLine",
    "InstallmentStatus",
    "LedgerEventType",
    "Loan",
    "LoanStanding",
    "LoanStatement",
    "LoanStatus",
    "Payment",
    "RenewalResult",
    "Role",
    "RolloverCredit",
    "SettlementReason",
    "installment_status",
]

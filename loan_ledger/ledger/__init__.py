"""Loan ledger core: schedules, payments, fund accrual and renewals."""

from loan_ledger.ledger.accrual import FundAccrualEngine
from loan_ledger.ledger.auth import ActorToken, Identity, authorize
from loan_ledger.ledger.origination import LoanOriginator, LoanTerms, Origination, quote_terms
from loan_ledger.ledger.payments import PaymentLedger, PaymentOutcome
from loan_ledger.ledger.renewal import RenewalConsolidator
from loan_ledger.ledger.schedule import ScheduleEntry, generate_schedule
from loan_ledger.ledger.service import LoanLedgerService

__all__ = [
    "ActorToken",
    "FundAccrualEngine",
    "Identity",
    "LoanLedgerService",
    "LoanOriginator",
    "LoanTerms",
    "Origination",
    "PaymentLedger",
    "PaymentOutcome",
    "RenewalConsolidator",
    "ScheduleEntry",
    "authorize",
    "generate_schedule",
    "quote_terms",
]

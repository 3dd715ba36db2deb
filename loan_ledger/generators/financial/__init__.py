"""Financial domain generators."""

from loan_ledger.generators.financial.borrower import BorrowerGenerator, BorrowerProfile
from loan_ledger.generators.financial.loan import LoanRequest, LoanRequestGenerator

__all__ = [
    "BorrowerGenerator",
    "BorrowerProfile",
    "LoanRequest",
    "LoanRequestGenerator",
]

"""Daily-installment loan ledger: payments, fund accrual and renewals."""

__version__ = "0.1.0"

"""Accrual of the lender's interest margin into the borrower fund."""

import logging
from decimal import Decimal

from loan_ledger.config import MoneyConfig
from loan_ledger.exceptions import InvalidLoanEconomicsError
from loan_ledger.models.financial import Loan
from loan_ledger.money import ZERO, quantize
from loan_ledger.store.base import UnitOfWork

logger = logging.getLogger(__name__)


class FundAccrualEngine:
    """Keep each borrower's fund equal to the margin share of confirmed collections.

    The fund is a side-ledger adjusted incrementally: every confirmed
    change to a payment amount, positive or negative, moves it by the
    same fraction of that change.
    """

    def __init__(self, money: MoneyConfig | None = None) -> None:
        self.money = money or MoneyConfig()

    def interest_fraction(self, loan: Loan) -> Decimal:
        """Share of every collected unit that is margin rather than principal."""
        if loan.total_to_return == ZERO:
            raise InvalidLoanEconomicsError(f"Loan {loan.loan_id} has zero total to return")
        return (loan.total_to_return - loan.principal) / loan.total_to_return

    def margin_share(self, loan: Loan, delta: Decimal) -> Decimal:
        """Fund movement for a confirmed change of ``delta``."""
        return quantize(delta * self.interest_fraction(loan), self.money.fund_quantum, self.money.rounding)

    def accrue(self, uow: UnitOfWork, loan: Loan, delta: Decimal) -> Decimal:
        """Apply the margin share of ``delta`` to the loan's borrower.

        Returns
        -------
        Decimal
            The amount the fund moved by.
        """
        share = self.margin_share(loan, delta)
        if share == ZERO:
            return share

        borrower = uow.get_borrower(loan.borrower_id, for_update=True)
        borrower.fund_balance += share
        uow.save_borrower(borrower)

        logger.debug(
            "Fund of borrower %s moved by %s (loan %s, delta %s)",
            borrower.borrower_id,
            share,
            loan.loan_id,
            delta,
        )
        return share

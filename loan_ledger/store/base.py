"""Unit-of-work contract shared by ledger storage backends."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator

from loan_ledger.exceptions import LedgerError, TransactionAbortedError
from loan_ledger.models.financial import (
    Borrower,
    Installment,
    Loan,
    LoanStatus,
    Payment,
    RolloverCredit,
)

logger = logging.getLogger(__name__)


class UnitOfWork(ABC):
    """One atomic batch of ledger reads and writes.

    Reads return detached copies. Nothing a caller mutates is persisted
    until it is passed back through ``add_*``/``save_*``, and nothing is
    visible to other units of work until commit.

    ``for_update`` reads lock the row until the unit of work ends.
    """

    @abstractmethod
    def get_borrower(self, borrower_id: str, for_update: bool = False) -> Borrower: ...

    @abstractmethod
    def add_borrower(self, borrower: Borrower) -> None: ...

    @abstractmethod
    def save_borrower(self, borrower: Borrower) -> None: ...

    @abstractmethod
    def get_loan(self, loan_id: str, for_update: bool = False) -> Loan: ...

    @abstractmethod
    def add_loan(self, loan: Loan) -> None: ...

    @abstractmethod
    def save_loan(self, loan: Loan) -> None: ...

    @abstractmethod
    def get_borrower_loans(
        self,
        borrower_id: str,
        status: LoanStatus | None = None,
        for_update: bool = False,
    ) -> list[Loan]: ...

    @abstractmethod
    def get_installment(self, installment_id: str, for_update: bool = False) -> Installment: ...

    @abstractmethod
    def add_installments(self, installments: list[Installment]) -> None: ...

    @abstractmethod
    def save_installment(self, installment: Installment) -> None: ...

    @abstractmethod
    def get_loan_installments(self, loan_id: str, for_update: bool = False) -> list[Installment]:
        """Installments of a loan in schedule order."""

    @abstractmethod
    def get_payment(self, payment_id: str, for_update: bool = False) -> Payment: ...

    @abstractmethod
    def add_payment(self, payment: Payment) -> None: ...

    @abstractmethod
    def save_payment(self, payment: Payment) -> None: ...

    @abstractmethod
    def delete_payment(self, payment_id: str) -> None: ...

    @abstractmethod
    def get_installment_payments(self, installment_id: str) -> list[Payment]: ...

    @abstractmethod
    def add_rollover_credits(self, credits: list[RolloverCredit]) -> None: ...

    @abstractmethod
    def get_loan_rollover_credits(self, loan_id: str) -> list[RolloverCredit]: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...

    def close(self) -> None:
        """Release resources held by the unit of work."""


class LedgerStore(ABC):
    """A transactional backing store for the ledger."""

    @abstractmethod
    def _begin(self) -> UnitOfWork: ...

    @contextmanager
    def transaction(self) -> Iterator[UnitOfWork]:
        """Run a block as a single all-or-nothing unit of work.

        Ledger errors roll back and propagate unchanged. Any other failure
        rolls back and surfaces as a retryable ``TransactionAbortedError``.
        """
        uow = self._begin()
        try:
            yield uow
        except LedgerError:
            uow.rollback()
            raise
        except Exception as exc:
            uow.rollback()
            logger.error("Unit of work rolled back: %s", exc)
            raise TransactionAbortedError(f"Unit of work rolled back: {exc}") from exc
        else:
            uow.commit()
        finally:
            uow.close()

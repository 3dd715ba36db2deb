"""In-memory ledger store with referential integrity and rollback."""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from loan_ledger.exceptions import EntityNotFoundError, ReferentialIntegrityError
from loan_ledger.models.financial import (
    Borrower,
    Installment,
    Loan,
    LoanStatus,
    Payment,
    RolloverCredit,
)
from loan_ledger.store.base import LedgerStore, UnitOfWork

logger = logging.getLogger(__name__)


@dataclass
class _Tables:
    """Primary entities plus relationship indexes."""

    borrowers: dict[str, Borrower] = field(default_factory=dict)
    loans: dict[str, Loan] = field(default_factory=dict)
    installments: dict[str, Installment] = field(default_factory=dict)
    payments: dict[str, Payment] = field(default_factory=dict)
    rollover_credits: dict[str, RolloverCredit] = field(default_factory=dict)

    _borrower_loans: dict[str, list[str]] = field(default_factory=dict)
    _loan_installments: dict[str, list[str]] = field(default_factory=dict)
    _installment_payments: dict[str, list[str]] = field(default_factory=dict)
    _loan_credits: dict[str, list[str]] = field(default_factory=dict)


class InMemoryLedgerStore(LedgerStore):
    """Process-local store.

    A re-entrant lock serializes units of work across threads; each unit
    keeps an undo journal so a failed block leaves no trace.
    """

    def __init__(self) -> None:
        self._tables = _Tables()
        self._lock = threading.RLock()

    def _begin(self) -> UnitOfWork:
        self._lock.acquire()
        return _InMemoryUnitOfWork(self._tables, self._lock)

    def summary(self) -> dict[str, int]:
        """Return summary counts of all entities."""
        with self._lock:
            return {
                "borrowers": len(self._tables.borrowers),
                "loans": len(self._tables.loans),
                "installments": len(self._tables.installments),
                "payments": len(self._tables.payments),
                "rollover_credits": len(self._tables.rollover_credits),
            }

    def snapshot(self) -> dict[str, list[Any]]:
        """Return detached copies of every entity, keyed by entity type."""
        with self._lock:
            return {
                "borrowers": copy.deepcopy(list(self._tables.borrowers.values())),
                "loans": copy.deepcopy(list(self._tables.loans.values())),
                "installments": copy.deepcopy(list(self._tables.installments.values())),
                "payments": copy.deepcopy(list(self._tables.payments.values())),
                "rollover_credits": copy.deepcopy(list(self._tables.rollover_credits.values())),
            }


class _InMemoryUnitOfWork(UnitOfWork):
    def __init__(self, tables: _Tables, lock: threading.RLock) -> None:
        self._t = tables
        self._lock = lock
        self._undo: list[Callable[[], None]] = []
        self._closed = False

    # Journal helpers
    def _put(self, table: dict[str, Any], key: str, value: Any) -> None:
        if key in table:
            previous = table[key]
            self._undo.append(lambda: table.__setitem__(key, previous))
        else:
            self._undo.append(lambda: table.pop(key, None))
        table[key] = copy.deepcopy(value)

    def _index(self, index: dict[str, list[str]], key: str, value: str) -> None:
        bucket = index.setdefault(key, [])
        bucket.append(value)
        self._undo.append(lambda: bucket.remove(value))

    @staticmethod
    def _fetch(table: dict[str, Any], key: str, label: str) -> Any:
        try:
            return copy.deepcopy(table[key])
        except KeyError:
            raise EntityNotFoundError(f"{label} {key} not found") from None

    @staticmethod
    def _require_existing(table: dict[str, Any], key: str, label: str) -> None:
        if key not in table:
            raise EntityNotFoundError(f"{label} {key} not found")

    # Borrowers
    def get_borrower(self, borrower_id: str, for_update: bool = False) -> Borrower:
        return self._fetch(self._t.borrowers, borrower_id, "Borrower")

    def add_borrower(self, borrower: Borrower) -> None:
        self._put(self._t.borrowers, borrower.borrower_id, borrower)

    def save_borrower(self, borrower: Borrower) -> None:
        self._require_existing(self._t.borrowers, borrower.borrower_id, "Borrower")
        self._put(self._t.borrowers, borrower.borrower_id, borrower)

    # Loans
    def get_loan(self, loan_id: str, for_update: bool = False) -> Loan:
        return self._fetch(self._t.loans, loan_id, "Loan")

    def add_loan(self, loan: Loan) -> None:
        if loan.borrower_id not in self._t.borrowers:
            raise ReferentialIntegrityError(f"Borrower {loan.borrower_id} not found")
        self._put(self._t.loans, loan.loan_id, loan)
        self._index(self._t._borrower_loans, loan.borrower_id, loan.loan_id)

    def save_loan(self, loan: Loan) -> None:
        self._require_existing(self._t.loans, loan.loan_id, "Loan")
        self._put(self._t.loans, loan.loan_id, loan)

    def get_borrower_loans(
        self,
        borrower_id: str,
        status: LoanStatus | None = None,
        for_update: bool = False,
    ) -> list[Loan]:
        loan_ids = self._t._borrower_loans.get(borrower_id, [])
        loans = [copy.deepcopy(self._t.loans[lid]) for lid in loan_ids]
        if status is not None:
            loans = [loan for loan in loans if loan.status == status]
        return loans

    # Installments
    def get_installment(self, installment_id: str, for_update: bool = False) -> Installment:
        return self._fetch(self._t.installments, installment_id, "Installment")

    def add_installments(self, installments: list[Installment]) -> None:
        for inst in installments:
            if inst.loan_id not in self._t.loans:
                raise ReferentialIntegrityError(f"Loan {inst.loan_id} not found")
            self._put(self._t.installments, inst.installment_id, inst)
            self._index(self._t._loan_installments, inst.loan_id, inst.installment_id)

    def save_installment(self, installment: Installment) -> None:
        self._require_existing(self._t.installments, installment.installment_id, "Installment")
        self._put(self._t.installments, installment.installment_id, installment)

    def get_loan_installments(self, loan_id: str, for_update: bool = False) -> list[Installment]:
        ids = self._t._loan_installments.get(loan_id, [])
        installments = [copy.deepcopy(self._t.installments[i]) for i in ids]
        return sorted(installments, key=lambda i: (i.due_date, i.installment_number))

    # Payments
    def get_payment(self, payment_id: str, for_update: bool = False) -> Payment:
        return self._fetch(self._t.payments, payment_id, "Payment")

    def add_payment(self, payment: Payment) -> None:
        if payment.installment_id not in self._t.installments:
            raise ReferentialIntegrityError(f"Installment {payment.installment_id} not found")
        if payment.borrower_id not in self._t.borrowers:
            raise ReferentialIntegrityError(f"Borrower {payment.borrower_id} not found")
        self._put(self._t.payments, payment.payment_id, payment)
        self._index(self._t._installment_payments, payment.installment_id, payment.payment_id)

    def save_payment(self, payment: Payment) -> None:
        self._require_existing(self._t.payments, payment.payment_id, "Payment")
        self._put(self._t.payments, payment.payment_id, payment)

    def delete_payment(self, payment_id: str) -> None:
        payment = self._t.payments.pop(payment_id, None)
        if payment is None:
            raise EntityNotFoundError(f"Payment {payment_id} not found")
        bucket = self._t._installment_payments[payment.installment_id]
        position = bucket.index(payment_id)
        bucket.pop(position)

        def restore() -> None:
            self._t.payments[payment_id] = payment
            bucket.insert(position, payment_id)

        self._undo.append(restore)

    def get_installment_payments(self, installment_id: str) -> list[Payment]:
        ids = self._t._installment_payments.get(installment_id, [])
        return [copy.deepcopy(self._t.payments[pid]) for pid in ids]

    # Rollover credits
    def add_rollover_credits(self, credits: list[RolloverCredit]) -> None:
        for credit in credits:
            if credit.installment_id not in self._t.installments:
                raise ReferentialIntegrityError(f"Installment {credit.installment_id} not found")
            self._put(self._t.rollover_credits, credit.credit_id, credit)
            self._index(self._t._loan_credits, credit.loan_id, credit.credit_id)

    def get_loan_rollover_credits(self, loan_id: str) -> list[RolloverCredit]:
        ids = self._t._loan_credits.get(loan_id, [])
        return [copy.deepcopy(self._t.rollover_credits[cid]) for cid in ids]

    # Lifecycle
    def commit(self) -> None:
        self._undo.clear()

    def rollback(self) -> None:
        undone = len(self._undo)
        while self._undo:
            self._undo.pop()()
        if undone:
            logger.debug("Rolled back %d in-memory writes", undone)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._lock.release()

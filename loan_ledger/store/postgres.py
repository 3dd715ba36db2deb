"""PostgreSQL ledger store.

Each unit of work owns one connection and one database transaction.
``for_update`` reads take row locks (``SELECT ... FOR UPDATE``), so two
workers confirming payments on the same installment queue behind each
other instead of racing on its paid amount.
"""

from __future__ import annotations

import logging
from typing import Any

import psycopg
from psycopg.rows import dict_row

from loan_ledger.config import PostgresConfig
from loan_ledger.exceptions import (
    EntityNotFoundError,
    ReferentialIntegrityError,
    TransactionAbortedError,
)
from loan_ledger.models.financial import (
    Borrower,
    Installment,
    InstallmentStatus,
    Loan,
    LoanStatus,
    Payment,
    RolloverCredit,
    SettlementReason,
)
from loan_ledger.store.base import LedgerStore, UnitOfWork

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS borrowers (
    borrower_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT,
    phone TEXT,
    fund_balance NUMERIC(24, 6) NOT NULL DEFAULT 0,
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS loans (
    loan_id TEXT PRIMARY KEY,
    borrower_id TEXT NOT NULL REFERENCES borrowers (borrower_id),
    principal NUMERIC(20, 2) NOT NULL CHECK (principal > 0),
    interest_percent NUMERIC(10, 2) NOT NULL,
    total_to_return NUMERIC(20, 2) NOT NULL,
    term_days INTEGER NOT NULL CHECK (term_days > 0),
    daily_amount NUMERIC(20, 2) NOT NULL CHECK (daily_amount > 0),
    granted_date DATE NOT NULL,
    collection_start_date DATE NOT NULL,
    status TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL,
    settlement_reason TEXT,
    settled_at TIMESTAMP,
    settled_by TEXT,
    renewed_from TEXT[] NOT NULL DEFAULT '{}',
    updated_at TIMESTAMP
);
CREATE INDEX IF NOT EXISTS loans_borrower_idx ON loans (borrower_id);

CREATE TABLE IF NOT EXISTS installments (
    installment_id TEXT PRIMARY KEY,
    loan_id TEXT NOT NULL REFERENCES loans (loan_id),
    borrower_id TEXT NOT NULL REFERENCES borrowers (borrower_id),
    installment_number INTEGER NOT NULL,
    due_date DATE NOT NULL,
    expected_amount NUMERIC(20, 2) NOT NULL CHECK (expected_amount > 0),
    paid_amount NUMERIC(20, 2) NOT NULL DEFAULT 0 CHECK (paid_amount >= 0),
    status TEXT NOT NULL,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    UNIQUE (loan_id, installment_number)
);

CREATE TABLE IF NOT EXISTS payments (
    payment_id TEXT PRIMARY KEY,
    installment_id TEXT NOT NULL REFERENCES installments (installment_id),
    borrower_id TEXT NOT NULL REFERENCES borrowers (borrower_id),
    amount NUMERIC(20, 2) NOT NULL CHECK (amount > 0),
    receipt_ref TEXT,
    comment TEXT,
    created_at TIMESTAMP NOT NULL,
    confirmed BOOLEAN NOT NULL DEFAULT FALSE,
    confirmed_by TEXT,
    confirmed_at TIMESTAMP,
    updated_at TIMESTAMP
);
CREATE INDEX IF NOT EXISTS payments_installment_idx ON payments (installment_id);

CREATE TABLE IF NOT EXISTS rollover_credits (
    credit_id TEXT PRIMARY KEY,
    loan_id TEXT NOT NULL REFERENCES loans (loan_id),
    installment_id TEXT NOT NULL REFERENCES installments (installment_id),
    renewal_loan_id TEXT NOT NULL REFERENCES loans (loan_id),
    amount NUMERIC(20, 2) NOT NULL,
    created_at TIMESTAMP NOT NULL
);
"""

_BORROWER_COLUMNS = "borrower_id, name, email, phone, fund_balance, created_at, updated_at"
_LOAN_COLUMNS = (
    "loan_id, borrower_id, principal, interest_percent, total_to_return, term_days, "
    "daily_amount, granted_date, collection_start_date, status, created_at, "
    "settlement_reason, settled_at, settled_by, renewed_from, updated_at"
)
_INSTALLMENT_COLUMNS = (
    "installment_id, loan_id, borrower_id, installment_number, due_date, "
    "expected_amount, paid_amount, status, created_at, updated_at"
)
_PAYMENT_COLUMNS = (
    "payment_id, installment_id, borrower_id, amount, receipt_ref, comment, "
    "created_at, confirmed, confirmed_by, confirmed_at, updated_at"
)
_CREDIT_COLUMNS = "credit_id, loan_id, installment_id, renewal_loan_id, amount, created_at"


class PostgresLedgerStore(LedgerStore):
    """Ledger store backed by PostgreSQL through psycopg."""

    def __init__(self, conninfo: str | PostgresConfig) -> None:
        if isinstance(conninfo, PostgresConfig):
            conninfo = conninfo.url
        self.conninfo = conninfo

    def create_schema(self) -> None:
        """Create the ledger tables if they do not exist."""
        with psycopg.connect(self.conninfo) as conn:
            conn.execute(SCHEMA)
        logger.info("Ledger schema ensured")

    def _begin(self) -> UnitOfWork:
        try:
            conn = psycopg.connect(self.conninfo, row_factory=dict_row)
        except psycopg.OperationalError as exc:
            raise TransactionAbortedError(f"Could not connect to ledger database: {exc}") from exc
        return _PostgresUnitOfWork(conn)


class _PostgresUnitOfWork(UnitOfWork):
    def __init__(self, conn: psycopg.Connection) -> None:
        self._conn = conn

    def _one(self, sql: str, params: tuple, label: str, key: str) -> dict[str, Any]:
        row = self._conn.execute(sql, params).fetchone()
        if row is None:
            raise EntityNotFoundError(f"{label} {key} not found")
        return row

    def _write(self, sql: str, params: tuple | list) -> None:
        try:
            self._conn.execute(sql, params)
        except psycopg.errors.ForeignKeyViolation as exc:
            raise ReferentialIntegrityError(str(exc).splitlines()[0]) from exc

    @staticmethod
    def _lock(for_update: bool) -> str:
        return " FOR UPDATE" if for_update else ""

    # Borrowers
    def get_borrower(self, borrower_id: str, for_update: bool = False) -> Borrower:
        row = self._one(
            f"SELECT {_BORROWER_COLUMNS} FROM borrowers WHERE borrower_id = %s{self._lock(for_update)}",
            (borrower_id,),
            "Borrower",
            borrower_id,
        )
        return Borrower(**row)

    def add_borrower(self, borrower: Borrower) -> None:
        self._write(
            f"INSERT INTO borrowers ({_BORROWER_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s, %s)",
            (
                borrower.borrower_id,
                borrower.name,
                borrower.email,
                borrower.phone,
                borrower.fund_balance,
                borrower.created_at,
                borrower.updated_at,
            ),
        )

    def save_borrower(self, borrower: Borrower) -> None:
        self._write(
            "UPDATE borrowers SET name = %s, email = %s, phone = %s, fund_balance = %s, "
            "updated_at = %s WHERE borrower_id = %s",
            (
                borrower.name,
                borrower.email,
                borrower.phone,
                borrower.fund_balance,
                borrower.updated_at,
                borrower.borrower_id,
            ),
        )

    # Loans
    def get_loan(self, loan_id: str, for_update: bool = False) -> Loan:
        row = self._one(
            f"SELECT {_LOAN_COLUMNS} FROM loans WHERE loan_id = %s{self._lock(for_update)}",
            (loan_id,),
            "Loan",
            loan_id,
        )
        return _loan(row)

    def add_loan(self, loan: Loan) -> None:
        self._write(
            f"INSERT INTO loans ({_LOAN_COLUMNS}) VALUES "
            "(%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
            _loan_params(loan),
        )

    def save_loan(self, loan: Loan) -> None:
        self._write(
            "UPDATE loans SET status = %s, settlement_reason = %s, settled_at = %s, "
            "settled_by = %s, updated_at = %s WHERE loan_id = %s",
            (
                loan.status.value,
                loan.settlement_reason.value if loan.settlement_reason else None,
                loan.settled_at,
                loan.settled_by,
                loan.updated_at,
                loan.loan_id,
            ),
        )

    def get_borrower_loans(
        self,
        borrower_id: str,
        status: LoanStatus | None = None,
        for_update: bool = False,
    ) -> list[Loan]:
        sql = f"SELECT {_LOAN_COLUMNS} FROM loans WHERE borrower_id = %s"
        params: tuple = (borrower_id,)
        if status is not None:
            sql += " AND status = %s"
            params += (status.value,)
        sql += f" ORDER BY created_at, loan_id{self._lock(for_update)}"
        return [_loan(row) for row in self._conn.execute(sql, params).fetchall()]

    # Installments
    def get_installment(self, installment_id: str, for_update: bool = False) -> Installment:
        row = self._one(
            f"SELECT {_INSTALLMENT_COLUMNS} FROM installments WHERE installment_id = %s"
            f"{self._lock(for_update)}",
            (installment_id,),
            "Installment",
            installment_id,
        )
        return _installment(row)

    def add_installments(self, installments: list[Installment]) -> None:
        if not installments:
            return
        try:
            with self._conn.cursor() as cur:
                cur.executemany(
                    f"INSERT INTO installments ({_INSTALLMENT_COLUMNS}) VALUES "
                    "(%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
                    [
                        (
                            i.installment_id,
                            i.loan_id,
                            i.borrower_id,
                            i.installment_number,
                            i.due_date,
                            i.expected_amount,
                            i.paid_amount,
                            i.status.value,
                            i.created_at,
                            i.updated_at,
                        )
                        for i in installments
                    ],
                )
        except psycopg.errors.ForeignKeyViolation as exc:
            raise ReferentialIntegrityError(str(exc).splitlines()[0]) from exc

    def save_installment(self, installment: Installment) -> None:
        self._write(
            "UPDATE installments SET paid_amount = %s, status = %s, updated_at = %s "
            "WHERE installment_id = %s",
            (
                installment.paid_amount,
                installment.status.value,
                installment.updated_at,
                installment.installment_id,
            ),
        )

    def get_loan_installments(self, loan_id: str, for_update: bool = False) -> list[Installment]:
        rows = self._conn.execute(
            f"SELECT {_INSTALLMENT_COLUMNS} FROM installments WHERE loan_id = %s "
            f"ORDER BY due_date, installment_number{self._lock(for_update)}",
            (loan_id,),
        ).fetchall()
        return [_installment(row) for row in rows]

    # Payments
    def get_payment(self, payment_id: str, for_update: bool = False) -> Payment:
        row = self._one(
            f"SELECT {_PAYMENT_COLUMNS} FROM payments WHERE payment_id = %s{self._lock(for_update)}",
            (payment_id,),
            "Payment",
            payment_id,
        )
        return Payment(**row)

    def add_payment(self, payment: Payment) -> None:
        self._write(
            f"INSERT INTO payments ({_PAYMENT_COLUMNS}) VALUES "
            "(%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
            (
                payment.payment_id,
                payment.installment_id,
                payment.borrower_id,
                payment.amount,
                payment.receipt_ref,
                payment.comment,
                payment.created_at,
                payment.confirmed,
                payment.confirmed_by,
                payment.confirmed_at,
                payment.updated_at,
            ),
        )

    def save_payment(self, payment: Payment) -> None:
        self._write(
            "UPDATE payments SET amount = %s, receipt_ref = %s, comment = %s, confirmed = %s, "
            "confirmed_by = %s, confirmed_at = %s, updated_at = %s WHERE payment_id = %s",
            (
                payment.amount,
                payment.receipt_ref,
                payment.comment,
                payment.confirmed,
                payment.confirmed_by,
                payment.confirmed_at,
                payment.updated_at,
                payment.payment_id,
            ),
        )

    def delete_payment(self, payment_id: str) -> None:
        cur = self._conn.execute("DELETE FROM payments WHERE payment_id = %s", (payment_id,))
        if cur.rowcount == 0:
            raise EntityNotFoundError(f"Payment {payment_id} not found")

    def get_installment_payments(self, installment_id: str) -> list[Payment]:
        rows = self._conn.execute(
            f"SELECT {_PAYMENT_COLUMNS} FROM payments WHERE installment_id = %s "
            "ORDER BY created_at, payment_id",
            (installment_id,),
        ).fetchall()
        return [Payment(**row) for row in rows]

    # Rollover credits
    def add_rollover_credits(self, credits: list[RolloverCredit]) -> None:
        for credit in credits:
            self._write(
                f"INSERT INTO rollover_credits ({_CREDIT_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s)",
                (
                    credit.credit_id,
                    credit.loan_id,
                    credit.installment_id,
                    credit.renewal_loan_id,
                    credit.amount,
                    credit.created_at,
                ),
            )

    def get_loan_rollover_credits(self, loan_id: str) -> list[RolloverCredit]:
        rows = self._conn.execute(
            f"SELECT {_CREDIT_COLUMNS} FROM rollover_credits WHERE loan_id = %s ORDER BY created_at",
            (loan_id,),
        ).fetchall()
        return [RolloverCredit(**row) for row in rows]

    # Lifecycle
    def commit(self) -> None:
        try:
            self._conn.commit()
        except psycopg.Error as exc:
            raise TransactionAbortedError(f"Commit failed: {exc}") from exc

    def rollback(self) -> None:
        try:
            self._conn.rollback()
        except psycopg.Error:
            logger.exception("Rollback failed; the connection will be discarded")

    def close(self) -> None:
        self._conn.close()


def _loan(row: dict[str, Any]) -> Loan:
    row = dict(row)
    row["status"] = LoanStatus(row["status"])
    if row["settlement_reason"] is not None:
        row["settlement_reason"] = SettlementReason(row["settlement_reason"])
    row["renewed_from"] = list(row["renewed_from"] or [])
    return Loan(**row)


def _loan_params(loan: Loan) -> tuple:
    return (
        loan.loan_id,
        loan.borrower_id,
        loan.principal,
        loan.interest_percent,
        loan.total_to_return,
        loan.term_days,
        loan.daily_amount,
        loan.granted_date,
        loan.collection_start_date,
        loan.status.value,
        loan.created_at,
        loan.settlement_reason.value if loan.settlement_reason else None,
        loan.settled_at,
        loan.settled_by,
        loan.renewed_from,
        loan.updated_at,
    )


def _installment(row: dict[str, Any]) -> Installment:
    row = dict(row)
    row["status"] = InstallmentStatus(row["status"])
    return Installment(**row)

"""Loan origination and flat-rate term quoting."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_CEILING, Decimal
from typing import Any

from loan_ledger.config import MoneyConfig, OriginationConfig
from loan_ledger.exceptions import ValidationError
from loan_ledger.ledger.schedule import generate_schedule
from loan_ledger.models import new_id
from loan_ledger.models.financial import Installment, Loan, LoanStatus
from loan_ledger.money import parse_decimal, positive_amount, positive_int, quantize
from loan_ledger.store.base import LedgerStore, UnitOfWork

logger = logging.getLogger(__name__)

PERCENT_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class LoanTerms:
    """Economics of a loan before it is booked."""

    principal: Decimal
    interest_percent: Decimal
    total_to_return: Decimal
    daily_amount: Decimal
    term_days: int


@dataclass
class Origination:
    """A booked loan and its schedule."""

    loan: Loan
    installments: list[Installment]


def terms_from_daily_amount(
    principal: Any,
    daily_amount: Any,
    term_days: Any,
    money: MoneyConfig,
) -> LoanTerms:
    """Terms of a loan priced by its daily amount.

    A total below principal is accepted; the derived interest percent is
    then negative.
    """
    principal = positive_amount(principal, "principal", money)
    daily_amount = positive_amount(daily_amount, "daily_amount", money)
    term_days = positive_int(term_days, "term_days")

    total = daily_amount * term_days
    interest_percent = quantize((total / principal - 1) * 100, PERCENT_QUANTUM)
    return LoanTerms(principal, interest_percent, total, daily_amount, term_days)


def quote_terms(
    principal: Any,
    interest_percent: Any,
    term_days: Any,
    money: MoneyConfig,
) -> LoanTerms:
    """Terms of a loan priced by a flat interest over the whole term.

    The daily amount is rounded to the currency quantum and the total is
    recomputed from it, so ``total_to_return == daily_amount * term_days``.
    Rounding goes up instead when it would leave the total below principal.
    """
    principal = positive_amount(principal, "principal", money)
    percent = parse_decimal(interest_percent, "interest_percent")
    if percent < 0:
        raise ValidationError(f"interest_percent must not be negative, got {interest_percent!r}")
    term_days = positive_int(term_days, "term_days")

    gross = principal * (1 + percent / 100)
    daily_amount = quantize(gross / term_days, money.currency_quantum, money.rounding)
    if daily_amount * term_days < principal:
        daily_amount = quantize(gross / term_days, money.currency_quantum, ROUND_CEILING)
    return terms_from_daily_amount(principal, daily_amount, term_days, money)


class LoanOriginator:
    """Book new loans together with their daily schedule."""

    def __init__(
        self,
        store: LedgerStore,
        money: MoneyConfig | None = None,
        config: OriginationConfig | None = None,
    ) -> None:
        self.store = store
        self.money = money or MoneyConfig()
        self.config = config or OriginationConfig()

    def originate(
        self,
        borrower_id: str,
        principal: Any,
        daily_amount: Any,
        term_days: Any,
        granted_date: date | None = None,
        collection_start_date: date | None = None,
    ) -> Origination:
        """Disburse a loan whose total to return is ``daily_amount * term_days``."""
        terms = terms_from_daily_amount(principal, daily_amount, term_days, self.money)
        return self._book(borrower_id, terms, granted_date, collection_start_date)

    def originate_at_rate(
        self,
        borrower_id: str,
        principal: Any,
        interest_percent: Any = None,
        term_days: Any = None,
        granted_date: date | None = None,
        collection_start_date: date | None = None,
    ) -> Origination:
        """Disburse a loan priced by flat interest (default from configuration)."""
        if interest_percent is None:
            interest_percent = self.config.default_interest_percent
        if term_days is None:
            term_days = self.config.default_term_days
        terms = quote_terms(principal, interest_percent, term_days, self.money)
        return self._book(borrower_id, terms, granted_date, collection_start_date)

    def _book(
        self,
        borrower_id: str,
        terms: LoanTerms,
        granted_date: date | None,
        collection_start_date: date | None,
    ) -> Origination:
        granted_date, collection_start_date = resolve_dates(granted_date, collection_start_date)
        with self.store.transaction() as uow:
            uow.get_borrower(borrower_id)
            loan, installments = self.build_loan(uow, borrower_id, terms, granted_date, collection_start_date)

        logger.info(
            "Originated loan %s for borrower %s: principal=%s total=%s daily=%s x %d days",
            loan.loan_id,
            borrower_id,
            terms.principal,
            terms.total_to_return,
            terms.daily_amount,
            terms.term_days,
            extra={"borrower_id": borrower_id, "loan_id": loan.loan_id},
        )
        return Origination(loan=loan, installments=installments)

    def build_loan(
        self,
        uow: UnitOfWork,
        borrower_id: str,
        terms: LoanTerms,
        granted_date: date,
        collection_start_date: date,
        renewed_from: list[str] | None = None,
    ) -> tuple[Loan, list[Installment]]:
        """Persist a loan and its schedule inside an open unit of work."""
        now = datetime.now()
        loan = Loan(
            loan_id=new_id(),
            borrower_id=borrower_id,
            principal=terms.principal,
            interest_percent=terms.interest_percent,
            total_to_return=terms.total_to_return,
            term_days=terms.term_days,
            daily_amount=terms.daily_amount,
            granted_date=granted_date,
            collection_start_date=collection_start_date,
            status=LoanStatus.ACTIVE,
            created_at=now,
            renewed_from=list(renewed_from or []),
        )
        schedule = generate_schedule(
            terms.principal, terms.daily_amount, terms.term_days, collection_start_date
        )
        installments = [
            Installment(
                installment_id=new_id(),
                loan_id=loan.loan_id,
                borrower_id=borrower_id,
                installment_number=entry.installment_number,
                due_date=entry.due_date,
                expected_amount=entry.expected_amount,
                created_at=now,
            )
            for entry in schedule
        ]
        uow.add_loan(loan)
        uow.add_installments(installments)
        return loan, installments


def resolve_dates(granted_date: date | None, collection_start_date: date | None) -> tuple[date, date]:
    if granted_date is None:
        granted_date = date.today()
    if collection_start_date is None:
        collection_start_date = granted_date + timedelta(days=1)
    for name, value in (("granted_date", granted_date), ("collection_start_date", collection_start_date)):
        if not isinstance(value, date):
            raise ValidationError(f"{name} must be a date, got {value!r}")
    if collection_start_date < granted_date:
        raise ValidationError("collection_start_date must not precede granted_date")
    return granted_date, collection_start_date

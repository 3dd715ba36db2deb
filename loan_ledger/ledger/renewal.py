"""Consolidation of a borrower's open loans into one renewed loan."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from loan_ledger.config import MoneyConfig, RenewalConfig
from loan_ledger.exceptions import (
    EntityNotFoundError,
    InsufficientRenewalAmountError,
    LoanSettledError,
    ValidationError,
)
from loan_ledger.ledger.origination import LoanOriginator, quote_terms, resolve_dates
from loan_ledger.models import new_id
from loan_ledger.models.financial import (
    EligibilityReport,
    Installment,
    InstallmentStatus,
    Loan,
    LoanStanding,
    LoanStatus,
    RenewalResult,
    RolloverCredit,
    SettlementReason,
)
from loan_ledger.money import ZERO
from loan_ledger.store.base import LedgerStore, UnitOfWork

logger = logging.getLogger(__name__)


class RenewalConsolidator:
    """Retire several active loans into a single new one.

    Unpaid remainders of the retired loans are absorbed into the new
    loan's principal. Each absorbed remainder is recorded as a
    :class:`RolloverCredit`; it is not a collection and never reaches the
    borrower fund.
    """

    def __init__(
        self,
        store: LedgerStore,
        originator: LoanOriginator,
        money: MoneyConfig | None = None,
        config: RenewalConfig | None = None,
    ) -> None:
        self.store = store
        self.originator = originator
        self.money = money or MoneyConfig()
        self.config = config or RenewalConfig()

    def standing(self, loan: Loan, installments: list[Installment]) -> LoanStanding:
        """Repayment progress of a loan and whether it qualifies for renewal."""
        total_paid = sum((inst.paid_amount for inst in installments), ZERO)
        ratio = total_paid / loan.principal
        remaining = sum(1 for inst in installments if inst.status != InstallmentStatus.PAID)
        eligible = (
            ratio >= self.config.principal_ratio
            or remaining <= self.config.max_remaining_installments
        )
        return LoanStanding(
            loan_id=loan.loan_id,
            principal=loan.principal,
            total_to_return=loan.total_to_return,
            total_paid=total_paid,
            pending_debt=loan.total_to_return - total_paid,
            principal_ratio_paid=ratio,
            remaining_installments=remaining,
            eligible=eligible,
        )

    def check_eligibility(self, borrower_id: str) -> EligibilityReport:
        """Report which active loans of a borrower may be consolidated."""
        with self.store.transaction() as uow:
            borrower = uow.get_borrower(borrower_id)
            standings = [
                self.standing(loan, uow.get_loan_installments(loan.loan_id))
                for loan in uow.get_borrower_loans(borrower_id, status=LoanStatus.ACTIVE)
            ]

        eligible = [s for s in standings if s.eligible]
        report = EligibilityReport(
            borrower_id=borrower_id,
            borrower_name=borrower.name,
            eligible=bool(eligible),
            eligible_loans=eligible,
            total_pending_debt=sum((s.pending_debt for s in eligible), ZERO),
            standings=standings,
        )
        logger.debug(
            "Renewal eligibility for %s: %d of %d active loans, pending debt %s",
            borrower_id,
            len(eligible),
            len(standings),
            report.total_pending_debt,
        )
        return report

    def create_renewal(
        self,
        borrower_id: str,
        new_principal: Any,
        new_interest_percent: Any,
        new_term_days: Any,
        new_collection_start_date: date,
        loan_ids_to_close: list[str],
        granted_date: date | None = None,
    ) -> RenewalResult:
        """Book a new loan and settle ``loan_ids_to_close`` in one unit of work.

        Raises
        ------
        ValidationError
            If no loans are given or an input is malformed.
        EntityNotFoundError
            If a loan does not exist or belongs to another borrower.
        LoanSettledError
            If a loan to close is already settled.
        InsufficientRenewalAmountError
            If ``new_principal`` does not exceed the pending debt of the
            loans being closed.
        """
        terms = quote_terms(new_principal, new_interest_percent, new_term_days, self.money)
        if granted_date is None and isinstance(new_collection_start_date, date):
            granted_date = min(date.today(), new_collection_start_date)
        granted_date, start_date = resolve_dates(granted_date, new_collection_start_date)
        loan_ids = list(dict.fromkeys(loan_ids_to_close or []))
        if not loan_ids:
            raise ValidationError("At least one loan to close is required for a renewal")

        with self.store.transaction() as uow:
            uow.get_borrower(borrower_id)
            closing = [self._lock_for_closing(uow, borrower_id, loan_id) for loan_id in loan_ids]

            pending_debt = sum(
                (loan.total_to_return - sum((i.paid_amount for i in insts), ZERO) for loan, insts in closing),
                ZERO,
            )
            if terms.principal <= pending_debt:
                raise InsufficientRenewalAmountError(
                    f"New principal {terms.principal} must exceed pending debt {pending_debt}"
                )

            new_loan, new_installments = self.originator.build_loan(
                uow, borrower_id, terms, granted_date, start_date, renewed_from=loan_ids
            )
            credits: list[RolloverCredit] = []
            for loan, installments in closing:
                credits.extend(self._close(uow, loan, installments, new_loan.loan_id))
            uow.add_rollover_credits(credits)

        cash = terms.principal - pending_debt
        logger.info(
            "Renewed %d loans of borrower %s into %s: principal=%s rolled_over=%s cash=%s",
            len(loan_ids),
            borrower_id,
            new_loan.loan_id,
            terms.principal,
            pending_debt,
            cash,
            extra={"borrower_id": borrower_id, "loan_id": new_loan.loan_id},
        )
        return RenewalResult(
            loan=new_loan,
            installments=new_installments,
            closed_loan_ids=loan_ids,
            cash_disbursed=cash,
            debt_rolled_over=pending_debt,
            rollover_credits=credits,
        )

    def _lock_for_closing(
        self, uow: UnitOfWork, borrower_id: str, loan_id: str
    ) -> tuple[Loan, list[Installment]]:
        loan = uow.get_loan(loan_id, for_update=True)
        if loan.borrower_id != borrower_id:
            raise EntityNotFoundError(f"Loan {loan_id} not found for borrower {borrower_id}")
        if not loan.is_active:
            raise LoanSettledError(f"Loan {loan_id} is already settled")
        return loan, uow.get_loan_installments(loan_id, for_update=True)

    def _close(
        self,
        uow: UnitOfWork,
        loan: Loan,
        installments: list[Installment],
        renewal_loan_id: str,
    ) -> list[RolloverCredit]:
        now = datetime.now()
        credits = []
        for inst in installments:
            if inst.status == InstallmentStatus.PAID:
                continue
            absorbed = inst.force_paid()
            inst.updated_at = now
            uow.save_installment(inst)
            credits.append(
                RolloverCredit(
                    credit_id=new_id(),
                    loan_id=loan.loan_id,
                    installment_id=inst.installment_id,
                    renewal_loan_id=renewal_loan_id,
                    amount=absorbed,
                    created_at=now,
                )
            )
        loan.settle(SettlementReason.RENEWAL, now, settled_by=renewal_loan_id)
        uow.save_loan(loan)
        return credits

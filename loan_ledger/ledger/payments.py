"""Payment ledger: record, confirm, edit and delete installment payments."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from loan_ledger.config import MoneyConfig
from loan_ledger.exceptions import (
    AlreadyConfirmedError,
    LoanSettledError,
    ReferentialIntegrityError,
)
from loan_ledger.ledger.accrual import FundAccrualEngine
from loan_ledger.models import new_id
from loan_ledger.models.financial import (
    Borrower,
    Installment,
    InstallmentStatus,
    Loan,
    Payment,
    SettlementReason,
)
from loan_ledger.money import ZERO, positive_amount
from loan_ledger.store.base import LedgerStore, UnitOfWork

logger = logging.getLogger(__name__)


@dataclass
class PaymentOutcome:
    """State of the affected entities after a payment operation."""

    payment: Payment
    installment: Installment
    loan: Loan
    borrower: Borrower
    paid_delta: Decimal = ZERO
    fund_delta: Decimal = ZERO
    loan_settled: bool = False


class PaymentLedger:
    """Apply payments to installments and keep the fund in step.

    Every operation runs as one unit of work. Confirmed amounts move the
    installment's paid amount and the borrower fund together; unconfirmed
    payments have no ledger effect.
    """

    def __init__(
        self,
        store: LedgerStore,
        accrual: FundAccrualEngine | None = None,
        money: MoneyConfig | None = None,
    ) -> None:
        self.store = store
        self.money = money or MoneyConfig()
        self.accrual = accrual or FundAccrualEngine(self.money)

    def submit(
        self,
        installment_id: str,
        borrower_id: str,
        amount: Any,
        receipt_ref: str | None = None,
        comment: str | None = None,
    ) -> PaymentOutcome:
        """Record an unconfirmed payment; the installment is not changed."""
        amount = positive_amount(amount, "amount", self.money)
        with self.store.transaction() as uow:
            outcome = self._submit(uow, installment_id, borrower_id, amount, receipt_ref, comment)

        logger.info(
            "Payment %s of %s submitted for installment %s",
            outcome.payment.payment_id,
            amount,
            installment_id,
        )
        return outcome

    def confirm(
        self,
        payment_id: str,
        confirming_actor_id: str,
        amount: Any = None,
    ) -> PaymentOutcome:
        """Confirm a submitted payment and apply it to the ledger.

        Parameters
        ----------
        payment_id : str
            Payment to confirm.
        confirming_actor_id : str
            Collector or admin vouching for the payment.
        amount : Any
            Corrected amount, when the collector received a different sum
            than was submitted.

        Raises
        ------
        AlreadyConfirmedError
            If the payment was confirmed before.
        LoanSettledError
            If the installment's loan is already settled.
        """
        corrected = None if amount is None else positive_amount(amount, "amount", self.money)
        with self.store.transaction() as uow:
            payment = uow.get_payment(payment_id, for_update=True)
            if payment.confirmed:
                raise AlreadyConfirmedError(f"Payment {payment_id} is already confirmed")
            outcome = self._confirm(uow, payment, confirming_actor_id, corrected)

        logger.info(
            "Payment %s confirmed by %s: installment %s now %s/%s (%s)",
            payment_id,
            confirming_actor_id,
            outcome.installment.installment_id,
            outcome.installment.paid_amount,
            outcome.installment.expected_amount,
            outcome.installment.status.value,
            extra={"payment_id": payment_id, "loan_id": outcome.loan.loan_id, "actor_id": confirming_actor_id},
        )
        return outcome

    def submit_and_confirm(
        self,
        installment_id: str,
        borrower_id: str,
        amount: Any,
        confirming_actor_id: str,
        receipt_ref: str | None = None,
        comment: str | None = None,
    ) -> PaymentOutcome:
        """Record a payment already vouched for by the collecting actor."""
        amount = positive_amount(amount, "amount", self.money)
        with self.store.transaction() as uow:
            submitted = self._submit(uow, installment_id, borrower_id, amount, receipt_ref, comment)
            outcome = self._confirm(uow, submitted.payment, confirming_actor_id, None)

        logger.info(
            "Payment %s of %s recorded and confirmed by %s for installment %s",
            outcome.payment.payment_id,
            amount,
            confirming_actor_id,
            installment_id,
        )
        return outcome

    def edit(
        self,
        payment_id: str,
        new_amount: Any = None,
        new_receipt_ref: str | None = None,
        new_comment: str | None = None,
    ) -> PaymentOutcome:
        """Change a payment's amount, receipt or comment.

        For a confirmed payment an amount change moves the installment and
        the fund by the difference only.
        """
        amount = None if new_amount is None else positive_amount(new_amount, "new_amount", self.money)
        with self.store.transaction() as uow:
            payment = uow.get_payment(payment_id, for_update=True)
            installment = uow.get_installment(payment.installment_id)
            loan = uow.get_loan(installment.loan_id)
            outcome = None

            if amount is not None and amount != payment.amount:
                delta = amount - payment.amount
                payment.amount = amount
                if payment.confirmed:
                    outcome = self._apply(uow, payment, installment.loan_id, delta)

            if new_receipt_ref is not None:
                payment.receipt_ref = new_receipt_ref
            if new_comment is not None:
                payment.comment = new_comment
            payment.updated_at = datetime.now()
            uow.save_payment(payment)

            if outcome is None:
                outcome = PaymentOutcome(payment, installment, loan, uow.get_borrower(loan.borrower_id))
            outcome.payment = payment

        logger.info("Payment %s updated (paid delta %s)", payment_id, outcome.paid_delta)
        return outcome

    def delete(self, payment_id: str) -> PaymentOutcome:
        """Remove a payment, first reversing its effect if it was confirmed."""
        with self.store.transaction() as uow:
            payment = uow.get_payment(payment_id, for_update=True)
            if payment.confirmed:
                installment = uow.get_installment(payment.installment_id)
                outcome = self._apply(uow, payment, installment.loan_id, -payment.amount)
            else:
                installment = uow.get_installment(payment.installment_id)
                loan = uow.get_loan(installment.loan_id)
                outcome = PaymentOutcome(payment, installment, loan, uow.get_borrower(loan.borrower_id))
            uow.delete_payment(payment_id)

        logger.info(
            "Payment %s deleted (confirmed=%s, paid delta %s)",
            payment_id,
            payment.confirmed,
            outcome.paid_delta,
        )
        return outcome

    def _submit(
        self,
        uow: UnitOfWork,
        installment_id: str,
        borrower_id: str,
        amount: Decimal,
        receipt_ref: str | None,
        comment: str | None,
    ) -> PaymentOutcome:
        installment = uow.get_installment(installment_id)
        if installment.borrower_id != borrower_id:
            raise ReferentialIntegrityError(
                f"Installment {installment_id} does not belong to borrower {borrower_id}"
            )
        borrower = uow.get_borrower(borrower_id)
        loan = uow.get_loan(installment.loan_id)
        _ensure_active(loan)

        payment = Payment(
            payment_id=new_id(),
            installment_id=installment_id,
            borrower_id=borrower_id,
            amount=amount,
            receipt_ref=receipt_ref,
            comment=comment,
            created_at=datetime.now(),
        )
        uow.add_payment(payment)
        return PaymentOutcome(payment, installment, loan, borrower)

    def _confirm(
        self,
        uow: UnitOfWork,
        payment: Payment,
        confirming_actor_id: str,
        corrected: Decimal | None,
    ) -> PaymentOutcome:
        if corrected is not None:
            payment.amount = corrected
        now = datetime.now()
        payment.confirmed = True
        payment.confirmed_by = confirming_actor_id
        payment.confirmed_at = now
        payment.updated_at = now
        uow.save_payment(payment)

        installment = uow.get_installment(payment.installment_id)
        outcome = self._apply(uow, payment, installment.loan_id, payment.amount)
        outcome.payment = payment
        return outcome

    def _apply(self, uow: UnitOfWork, payment: Payment, loan_id: str, delta: Decimal) -> PaymentOutcome:
        """Move a confirmed amount into the installment and the fund.

        Locks loan, then installment, then borrower.
        """
        loan = uow.get_loan(loan_id, for_update=True)
        _ensure_active(loan)
        installment = uow.get_installment(payment.installment_id, for_update=True)

        applied = installment.apply(delta)
        installment.updated_at = datetime.now()
        uow.save_installment(installment)

        # The fund follows the confirmed amount, not the floored paid amount
        fund_delta = self.accrual.accrue(uow, loan, delta)

        settled = False
        if delta > ZERO:
            settled = self._settle_if_paid_off(uow, loan)

        return PaymentOutcome(
            payment=payment,
            installment=installment,
            loan=loan,
            borrower=uow.get_borrower(loan.borrower_id),
            paid_delta=applied,
            fund_delta=fund_delta,
            loan_settled=settled,
        )

    def _settle_if_paid_off(self, uow: UnitOfWork, loan: Loan) -> bool:
        installments = uow.get_loan_installments(loan.loan_id)
        if not all(inst.status == InstallmentStatus.PAID for inst in installments):
            return False
        loan.settle(SettlementReason.PAYOFF, datetime.now())
        uow.save_loan(loan)
        logger.info("Loan %s paid off and settled", loan.loan_id)
        return True


def _ensure_active(loan: Loan) -> None:
    if not loan.is_active:
        raise LoanSettledError(f"Loan {loan.loan_id} is already settled")

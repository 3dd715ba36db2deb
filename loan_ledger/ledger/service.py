"""Ledger operations exposed to callers, gated by capability tokens."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable

from loan_ledger.config import LedgerConfig
from loan_ledger.exceptions import ValidationError
from loan_ledger.ledger.accrual import FundAccrualEngine
from loan_ledger.ledger.auth import ActorToken, require, require_for_borrower
from loan_ledger.ledger.origination import LoanOriginator, Origination
from loan_ledger.ledger.payments import PaymentLedger, PaymentOutcome
from loan_ledger.ledger.renewal import RenewalConsolidator
from loan_ledger.models import Event, new_id
from loan_ledger.models.financial import (
    Borrower,
    Capability,
    EligibilityReport,
    InstallmentLine,
    LedgerEventType,
    Loan,
    LoanStatement,
    LoanStatus,
    Payment,
    RenewalResult,
    SettlementReason,
)
from loan_ledger.notifications import NotificationDispatcher
from loan_ledger.store.base import LedgerStore

logger = logging.getLogger(__name__)


class LoanLedgerService:
    """Entry point for request handlers.

    Each call authorizes the actor, runs the ledger operation in its own
    unit of work and, once committed, hands the resulting events to the
    notification dispatcher.
    """

    def __init__(
        self,
        store: LedgerStore,
        config: LedgerConfig | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self.store = store
        self.config = config or LedgerConfig()
        self.dispatcher = dispatcher or NotificationDispatcher()

        money = self.config.money
        self.accrual = FundAccrualEngine(money)
        self.payments = PaymentLedger(store, self.accrual, money)
        self.originator = LoanOriginator(store, money, self.config.origination)
        self.renewals = RenewalConsolidator(store, self.originator, money, self.config.renewal)

    # Borrowers
    def register_borrower(
        self,
        actor: ActorToken,
        name: str,
        email: str | None = None,
        phone: str | None = None,
    ) -> Borrower:
        require(actor, Capability.MANAGE_BORROWERS)
        if not name or not name.strip():
            raise ValidationError("Borrower name is required")

        borrower = Borrower(
            borrower_id=new_id(),
            name=name.strip(),
            email=email,
            phone=phone,
            created_at=datetime.now(),
        )
        with self.store.transaction() as uow:
            uow.add_borrower(borrower)

        logger.info("Registered borrower %s", borrower.borrower_id)
        self._emit(lambda: [
            self.dispatcher.build(LedgerEventType.BORROWER_REGISTERED, borrower.borrower_id, borrower, {}),
        ])
        return borrower

    def get_borrower(self, actor: ActorToken, borrower_id: str) -> Borrower:
        require_for_borrower(actor, Capability.VIEW_LEDGER, borrower_id)
        with self.store.transaction() as uow:
            return uow.get_borrower(borrower_id)

    def list_borrower_loans(
        self,
        actor: ActorToken,
        borrower_id: str,
        status: LoanStatus | None = None,
    ) -> list[Loan]:
        require_for_borrower(actor, Capability.VIEW_LEDGER, borrower_id)
        with self.store.transaction() as uow:
            uow.get_borrower(borrower_id)
            return uow.get_borrower_loans(borrower_id, status=status)

    # Loans
    def originate_loan(
        self,
        actor: ActorToken,
        borrower_id: str,
        principal: Any,
        daily_amount: Any,
        term_days: Any,
        granted_date: date | None = None,
        collection_start_date: date | None = None,
    ) -> Origination:
        """Disburse a loan repaid in ``term_days`` installments of ``daily_amount``."""
        require(actor, Capability.ORIGINATE_LOAN)
        origination = self.originator.originate(
            borrower_id, principal, daily_amount, term_days, granted_date, collection_start_date
        )
        self._emit(lambda: self._origination_events(origination.loan))
        return origination

    def originate_loan_at_rate(
        self,
        actor: ActorToken,
        borrower_id: str,
        principal: Any,
        interest_percent: Any = None,
        term_days: Any = None,
        granted_date: date | None = None,
        collection_start_date: date | None = None,
    ) -> Origination:
        """Disburse a loan priced by flat interest over the term."""
        require(actor, Capability.ORIGINATE_LOAN)
        origination = self.originator.originate_at_rate(
            borrower_id, principal, interest_percent, term_days, granted_date, collection_start_date
        )
        self._emit(lambda: self._origination_events(origination.loan))
        return origination

    def get_loan_statement(self, actor: ActorToken, loan_id: str) -> LoanStatement:
        require(actor, Capability.VIEW_LEDGER)
        with self.store.transaction() as uow:
            loan = uow.get_loan(loan_id)
            require_for_borrower(actor, Capability.VIEW_LEDGER, loan.borrower_id)
            lines = [
                InstallmentLine(inst, uow.get_installment_payments(inst.installment_id))
                for inst in uow.get_loan_installments(loan_id)
            ]
        return LoanStatement(loan=loan, lines=lines)

    # Payments
    def submit_payment(
        self,
        actor: ActorToken,
        installment_id: str,
        borrower_id: str,
        amount: Any,
        receipt_ref: str | None = None,
        comment: str | None = None,
    ) -> Payment:
        """Record a payment awaiting confirmation."""
        require_for_borrower(actor, Capability.SUBMIT_PAYMENT, borrower_id)
        outcome = self.payments.submit(installment_id, borrower_id, amount, receipt_ref, comment)
        self._emit(lambda: self._payment_events(LedgerEventType.PAYMENT_RECEIVED, outcome))
        return outcome.payment

    def confirm_payment(self, actor: ActorToken, payment_id: str, amount: Any = None) -> PaymentOutcome:
        require(actor, Capability.CONFIRM_PAYMENT)
        outcome = self.payments.confirm(payment_id, actor.actor_id, amount=amount)
        self._emit(lambda: self._payment_events(LedgerEventType.PAYMENT_CONFIRMED, outcome))
        return outcome

    def submit_and_confirm(
        self,
        actor: ActorToken,
        installment_id: str,
        borrower_id: str,
        amount: Any,
        receipt_ref: str | None = None,
        comment: str | None = None,
    ) -> PaymentOutcome:
        """Collector/admin fast path: record and confirm in one step."""
        require(actor, Capability.CONFIRM_PAYMENT)
        outcome = self.payments.submit_and_confirm(
            installment_id, borrower_id, amount, actor.actor_id, receipt_ref, comment
        )
        self._emit(lambda: self._payment_events(LedgerEventType.PAYMENT_CONFIRMED, outcome))
        return outcome

    def edit_payment(
        self,
        actor: ActorToken,
        payment_id: str,
        new_amount: Any = None,
        new_receipt_ref: str | None = None,
        new_comment: str | None = None,
    ) -> Payment:
        require(actor, Capability.MANAGE_PAYMENTS)
        outcome = self.payments.edit(payment_id, new_amount, new_receipt_ref, new_comment)
        self._emit(lambda: self._payment_events(LedgerEventType.PAYMENT_UPDATED, outcome))
        return outcome.payment

    def delete_payment(self, actor: ActorToken, payment_id: str) -> None:
        require(actor, Capability.MANAGE_PAYMENTS)
        outcome = self.payments.delete(payment_id)
        self._emit(lambda: self._payment_events(LedgerEventType.PAYMENT_DELETED, outcome))

    # Renewals
    def check_renewal_eligibility(self, actor: ActorToken, borrower_id: str) -> EligibilityReport:
        require_for_borrower(actor, Capability.VIEW_LEDGER, borrower_id)
        return self.renewals.check_eligibility(borrower_id)

    def create_renewal(
        self,
        actor: ActorToken,
        borrower_id: str,
        new_principal: Any,
        new_interest_percent: Any,
        new_term_days: Any,
        new_collection_start_date: date,
        loan_ids_to_close: list[str],
    ) -> RenewalResult:
        require(actor, Capability.RENEW_LOANS)
        result = self.renewals.create_renewal(
            borrower_id,
            new_principal,
            new_interest_percent,
            new_term_days,
            new_collection_start_date,
            loan_ids_to_close,
        )
        self._emit(lambda: self._renewal_events(result))
        return result

    # Notifications
    def _emit(self, build: Callable[[], list[Event]]) -> None:
        """Publish events for a committed operation; failures are only logged."""
        try:
            events = build()
        except Exception:
            logger.exception("Could not build notifications")
            return
        self.dispatcher.publish(events)

    def _recipient(self, borrower_id: str) -> Borrower:
        with self.store.transaction() as uow:
            return uow.get_borrower(borrower_id)

    def _origination_events(self, loan: Loan) -> list[Event]:
        event = self.dispatcher.build(
            LedgerEventType.LOAN_ORIGINATED,
            loan.loan_id,
            self._recipient(loan.borrower_id),
            _loan_data(loan),
        )
        return [event]

    def _payment_events(self, event_type: LedgerEventType, outcome: PaymentOutcome) -> list[Event]:
        payment, installment = outcome.payment, outcome.installment
        events: list[Event] = [
            self.dispatcher.build(
                event_type,
                payment.payment_id,
                outcome.borrower,
                {
                    "payment_id": payment.payment_id,
                    "amount": payment.amount,
                    "confirmed": payment.confirmed,
                    "confirmed_by": payment.confirmed_by,
                    "receipt_ref": payment.receipt_ref,
                    "installment_id": installment.installment_id,
                    "due_date": installment.due_date,
                    "installment_status": installment.status,
                    "paid_amount": installment.paid_amount,
                    "expected_amount": installment.expected_amount,
                    "paid_delta": outcome.paid_delta,
                    "fund_delta": outcome.fund_delta,
                    "fund_balance": outcome.borrower.fund_balance,
                },
            )
        ]
        if outcome.loan_settled:
            events.append(
                self.dispatcher.build(
                    LedgerEventType.LOAN_SETTLED,
                    outcome.loan.loan_id,
                    outcome.borrower,
                    {"loan_id": outcome.loan.loan_id, "reason": outcome.loan.settlement_reason},
                )
            )
        return events

    def _renewal_events(self, result: RenewalResult) -> list[Event]:
        recipient = self._recipient(result.loan.borrower_id)
        data = {
            **_loan_data(result.loan),
            "cash_disbursed": result.cash_disbursed,
            "debt_rolled_over": result.debt_rolled_over,
            "closed_loan_ids": result.closed_loan_ids,
        }
        events = [self.dispatcher.build(LedgerEventType.LOAN_RENEWED, result.loan.loan_id, recipient, data)]
        events.extend(
            self.dispatcher.build(
                LedgerEventType.LOAN_SETTLED,
                loan_id,
                recipient,
                {"loan_id": loan_id, "reason": SettlementReason.RENEWAL, "settled_by": result.loan.loan_id},
            )
            for loan_id in result.closed_loan_ids
        )
        return events


def _loan_data(loan: Loan) -> dict[str, Any]:
    return {
        "loan_id": loan.loan_id,
        "principal": loan.principal,
        "total_to_return": loan.total_to_return,
        "interest_percent": loan.interest_percent,
        "term_days": loan.term_days,
        "daily_amount": loan.daily_amount,
        "collection_start_date": loan.collection_start_date,
    }

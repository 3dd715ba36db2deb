"""Tests for renewal eligibility and consolidation."""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from loan_ledger.exceptions import (
    EntityNotFoundError,
    InsufficientRenewalAmountError,
    LoanSettledError,
    TransactionAbortedError,
    ValidationError,
)
from loan_ledger.ledger import ActorToken, LoanLedgerService, Origination
from loan_ledger.models.financial import (
    Borrower,
    InstallmentStatus,
    LoanStatus,
    SettlementReason,
)
from loan_ledger.store.memory import _InMemoryUnitOfWork

GRANTED = date(2025, 3, 1)


def _originate(
    service: LoanLedgerService, admin: ActorToken, borrower_id: str, principal: int, daily: int, term: int = 30
) -> Origination:
    return service.originate_loan(admin, borrower_id, principal, daily, term, granted_date=GRANTED)


def _pay(
    service: LoanLedgerService, collector: ActorToken, origination: Origination, total: int
) -> None:
    """Collect ``total`` by paying installments in order."""
    remaining = Decimal(total)
    for inst in origination.installments:
        if remaining <= 0:
            break
        amount = min(remaining, inst.expected_amount)
        service.submit_and_confirm(collector, inst.installment_id, inst.borrower_id, amount)
        remaining -= amount


class TestEligibility:
    """Eligibility thresholds on principal repaid and installments left."""

    def test_exactly_ninety_percent_is_eligible(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        collector: ActorToken,
        borrower: Borrower,
    ) -> None:
        loan = _originate(service, admin, borrower.borrower_id, 1_000_000, 40_000)
        _pay(service, collector, loan, 900_000)

        report = service.check_renewal_eligibility(collector, borrower.borrower_id)

        assert report.eligible is True
        standing = report.eligible_loans[0]
        assert standing.principal_ratio_paid == Decimal("0.9")
        assert standing.pending_debt == Decimal("300000")
        assert standing.remaining_installments == 8
        assert report.total_pending_debt == Decimal("300000")
        assert report.borrower_name == borrower.name

    def test_just_below_ninety_percent_is_not_eligible(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        collector: ActorToken,
        borrower: Borrower,
    ) -> None:
        loan = _originate(service, admin, borrower.borrower_id, 1_000_000, 40_000)
        _pay(service, collector, loan, 899_999)

        report = service.check_renewal_eligibility(collector, borrower.borrower_id)

        assert report.eligible is False
        assert report.eligible_loans == []
        assert report.total_pending_debt == Decimal("0")
        assert len(report.standings) == 1

    def test_one_remaining_installment_is_eligible(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        collector: ActorToken,
        borrower: Borrower,
    ) -> None:
        loan = _originate(service, admin, borrower.borrower_id, 100_000, 60_000, term=2)
        _pay(service, collector, loan, 60_000)

        report = service.check_renewal_eligibility(collector, borrower.borrower_id)

        assert report.eligible_loans[0].principal_ratio_paid == Decimal("0.6")
        assert report.eligible_loans[0].remaining_installments == 1
        assert report.eligible is True

    def test_no_active_loans(
        self, service: LoanLedgerService, collector: ActorToken, borrower: Borrower
    ) -> None:
        report = service.check_renewal_eligibility(collector, borrower.borrower_id)

        assert report.eligible is False
        assert report.standings == []


class TestCreateRenewal:
    """Consolidating loans into a new one."""

    @pytest.fixture
    def two_loans(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        collector: ActorToken,
        borrower: Borrower,
    ) -> tuple[Origination, Origination]:
        """Two active loans with 50 000 and 30 000 still owed."""
        first = _originate(service, admin, borrower.borrower_id, 100_000, 4_000)
        _pay(service, collector, first, 70_000)
        second = _originate(service, admin, borrower.borrower_id, 50_000, 2_000)
        _pay(service, collector, second, 30_000)
        return first, second

    def test_renewal_consolidates_debt(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        borrower: Borrower,
        two_loans: tuple[Origination, Origination],
    ) -> None:
        first, second = two_loans
        fund_before = service.get_borrower(admin, borrower.borrower_id).fund_balance
        ids = [first.loan.loan_id, second.loan.loan_id]

        result = service.create_renewal(
            admin, borrower.borrower_id, 200_000, 20, 30, date(2025, 4, 10), ids
        )

        assert result.cash_disbursed == Decimal("120000")
        assert result.debt_rolled_over == Decimal("80000")
        assert result.closed_loan_ids == ids
        assert result.loan.principal == Decimal("200000")
        assert result.loan.daily_amount == Decimal("8000")
        assert result.loan.total_to_return == Decimal("240000")
        assert result.loan.renewed_from == ids
        assert result.loan.collection_start_date == date(2025, 4, 10)
        assert len(result.installments) == 30
        assert sum(c.amount for c in result.rollover_credits) == Decimal("80000")

        for origination in two_loans:
            statement = service.get_loan_statement(admin, origination.loan.loan_id)
            assert statement.loan.status == LoanStatus.SETTLED
            assert statement.loan.settlement_reason == SettlementReason.RENEWAL
            assert statement.loan.settled_by == result.loan.loan_id
            assert all(line.installment.status == InstallmentStatus.PAID for line in statement.lines)

        assert service.get_borrower(admin, borrower.borrower_id).fund_balance == fund_before
        active = service.list_borrower_loans(admin, borrower.borrower_id, status=LoanStatus.ACTIVE)
        assert [loan.loan_id for loan in active] == [result.loan.loan_id]

    def test_paid_equals_payments_plus_credits(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        borrower: Borrower,
        two_loans: tuple[Origination, Origination],
    ) -> None:
        first, _ = two_loans
        service.create_renewal(
            admin, borrower.borrower_id, 200_000, 20, 30, date(2025, 4, 10), [first.loan.loan_id]
        )

        statement = service.get_loan_statement(admin, first.loan.loan_id)
        with service.store.transaction() as uow:
            credits = {c.installment_id: c.amount for c in uow.get_loan_rollover_credits(first.loan.loan_id)}
        for line in statement.lines:
            confirmed = sum((p.amount for p in line.payments if p.confirmed), Decimal("0"))
            credit = credits.get(line.installment.installment_id, Decimal("0"))
            assert confirmed + credit == line.installment.paid_amount

    def test_insufficient_amount_changes_nothing(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        borrower: Borrower,
        two_loans: tuple[Origination, Origination],
    ) -> None:
        first, second = two_loans
        before = service.store.summary()

        with pytest.raises(InsufficientRenewalAmountError):
            service.create_renewal(
                admin,
                borrower.borrower_id,
                80_000,
                20,
                30,
                date(2025, 4, 10),
                [first.loan.loan_id, second.loan.loan_id],
            )

        assert service.store.summary() == before
        for origination in two_loans:
            assert service.get_loan_statement(admin, origination.loan.loan_id).loan.is_active

    def test_duplicate_ids_collapse(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        borrower: Borrower,
        two_loans: tuple[Origination, Origination],
    ) -> None:
        first, _ = two_loans

        result = service.create_renewal(
            admin,
            borrower.borrower_id,
            100_000,
            20,
            30,
            date(2025, 4, 10),
            [first.loan.loan_id, first.loan.loan_id],
        )

        assert result.closed_loan_ids == [first.loan.loan_id]
        assert result.debt_rolled_over == Decimal("50000")

    def test_empty_list(
        self, service: LoanLedgerService, admin: ActorToken, borrower: Borrower
    ) -> None:
        with pytest.raises(ValidationError):
            service.create_renewal(admin, borrower.borrower_id, 100_000, 20, 30, date(2025, 4, 10), [])

    def test_unknown_loan(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        borrower: Borrower,
        two_loans: tuple[Origination, Origination],
    ) -> None:
        before = service.store.summary()

        with pytest.raises(EntityNotFoundError):
            service.create_renewal(
                admin,
                borrower.borrower_id,
                500_000,
                20,
                30,
                date(2025, 4, 10),
                [two_loans[0].loan.loan_id, "ghost"],
            )

        assert service.store.summary() == before

    def test_loan_of_another_borrower(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        two_loans: tuple[Origination, Origination],
    ) -> None:
        other = service.register_borrower(admin, "Otro Cliente")

        with pytest.raises(EntityNotFoundError):
            service.create_renewal(
                admin, other.borrower_id, 500_000, 20, 30, date(2025, 4, 10), [two_loans[0].loan.loan_id]
            )

    def test_settled_loan_cannot_be_renewed_again(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        collector: ActorToken,
        borrower: Borrower,
        two_loans: tuple[Origination, Origination],
    ) -> None:
        first, _ = two_loans
        args = (admin, borrower.borrower_id, 200_000, 20, 30, date(2025, 4, 10), [first.loan.loan_id])
        service.create_renewal(*args)

        with pytest.raises(LoanSettledError):
            service.create_renewal(*args)
        with pytest.raises(LoanSettledError):
            service.submit_payment(
                collector, first.installments[-1].installment_id, borrower.borrower_id, 100
            )

    def test_zero_interest_renewal(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        collector: ActorToken,
        borrower: Borrower,
    ) -> None:
        """A daily amount that would round below principal is rounded up."""
        old = _originate(service, admin, borrower.borrower_id, 30_000, 1_200)
        _pay(service, collector, old, 1_200 * 29)

        result = service.create_renewal(
            admin, borrower.borrower_id, 100_000, 0, 30, date(2025, 4, 10), [old.loan.loan_id]
        )

        assert result.cash_disbursed == Decimal("98800")
        assert result.loan.daily_amount == Decimal("3334")
        assert result.loan.total_to_return == Decimal("100020")
        assert result.loan.total_to_return >= result.loan.principal

    def test_total_follows_rounded_daily_amount(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        borrower: Borrower,
        two_loans: tuple[Origination, Origination],
    ) -> None:
        """240 000 over 7 days is not a whole daily amount; the total is 7 x 34 286."""
        first, _ = two_loans

        result = service.create_renewal(
            admin, borrower.borrower_id, 200_000, 20, 7, date(2025, 4, 10), [first.loan.loan_id]
        )

        assert result.loan.daily_amount == Decimal("34286")
        assert result.loan.total_to_return == Decimal("240002")
        assert all(i.expected_amount == Decimal("34286") for i in result.installments)

    def test_failure_after_close_out_rolls_back_everything(
        self,
        service: LoanLedgerService,
        admin: ActorToken,
        borrower: Borrower,
        two_loans: tuple[Origination, Origination],
    ) -> None:
        ids = [o.loan.loan_id for o in two_loans]
        before = service.store.summary()
        paid_before = {
            loan_id: [line.installment.paid_amount for line in service.get_loan_statement(admin, loan_id).lines]
            for loan_id in ids
        }

        with patch.object(_InMemoryUnitOfWork, "add_rollover_credits", side_effect=RuntimeError("disk full")):
            with pytest.raises(TransactionAbortedError) as excinfo:
                service.create_renewal(admin, borrower.borrower_id, 200_000, 20, 30, date(2025, 4, 10), ids)

        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert service.store.summary() == before
        for loan_id in ids:
            statement = service.get_loan_statement(admin, loan_id)
            assert statement.loan.is_active
            assert statement.loan.settled_by is None
            assert [line.installment.paid_amount for line in statement.lines] == paid_before[loan_id]
        active = service.list_borrower_loans(admin, borrower.borrower_id, status=LoanStatus.ACTIVE)
        assert sorted(loan.loan_id for loan in active) == sorted(ids)

"""Daily collection scenario driving the ledger service through a run of days."""

from __future__ import annotations

import logging
import random
from collections import Counter
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from loan_ledger.config import LedgerConfig
from loan_ledger.exceptions import ValidationError
from loan_ledger.generators.financial import BorrowerGenerator, LoanRequestGenerator
from loan_ledger.ledger import Identity, LoanLedgerService, authorize
from loan_ledger.models.financial import Installment, InstallmentStatus, LoanStatus, Role
from loan_ledger.money import ZERO, quantize
from loan_ledger.notifications import EventSink, NotificationDispatcher
from loan_ledger.store import InMemoryLedgerStore

logger = logging.getLogger(__name__)


class DailyCollectionScenario:
    """Simulate a collector's route over consecutive collection days.

    This scenario:
    - Registers borrowers and originates one loan each
    - Walks day by day, collecting the installment due:
        - Paid in full (on time)
        - Paid in part
        - Missed, with a chance of catching up later
    - Lets some borrowers report payments themselves for a collector to confirm
    - Renews eligible borrowers and re-lends to those who paid off

    Every change goes through :class:`LoanLedgerService`, so the resulting
    store satisfies the same invariants as production data.
    """

    # Headroom added above rolled-over debt so a renewal always disburses cash
    RENEWAL_CUSHION = Decimal("50000")

    def __init__(
        self,
        num_borrowers: int = 20,
        days: int = 45,
        on_time_rate: float = 0.85,
        partial_rate: float = 0.08,
        catch_up_rate: float = 0.5,
        self_report_rate: float = 0.3,
        renewal_rate: float = 0.6,
        reloan_rate: float = 0.5,
        start_date: date | None = None,
        seed: int | None = None,
        *,
        config: LedgerConfig | None = None,
        sinks: list[EventSink] | None = None,
    ) -> None:
        """Initialize daily collection scenario.

        Parameters
        ----------
        num_borrowers : int
            Number of borrowers on the route.
        days : int
            Number of collection days to simulate.
        on_time_rate : float
            Probability that the installment due on a day is paid in full.
        partial_rate : float
            Probability that it is paid in part. The remainder is missed.
        catch_up_rate : float
            Probability that a borrower also settles their oldest overdue
            installment on a day they pay.
        self_report_rate : float
            Share of payments submitted by the borrower and confirmed later
            by the collector, instead of recorded directly by the collector.
        renewal_rate : float
            Probability that an eligible borrower takes a renewal on a day.
        reloan_rate : float
            Probability that a borrower with no active loan borrows again.
        start_date : date | None
            Day the first loans are granted. Defaults to ``days`` before today.
        seed : int | None
            Random seed for reproducibility.
        config : LedgerConfig | None
            Ledger configuration passed to the service.
        sinks : list[EventSink] | None
            Sinks that receive notification events as the run progresses.
        """
        for name, rate in (
            ("on_time_rate", on_time_rate),
            ("partial_rate", partial_rate),
            ("catch_up_rate", catch_up_rate),
            ("self_report_rate", self_report_rate),
            ("renewal_rate", renewal_rate),
            ("reloan_rate", reloan_rate),
        ):
            if not 0.0 <= rate <= 1.0:
                raise ValidationError(f"{name} must be between 0 and 1, got {rate}")
        if on_time_rate + partial_rate > 1.0:
            raise ValidationError("on_time_rate + partial_rate cannot exceed 1")
        if num_borrowers < 0 or days < 0:
            raise ValidationError("num_borrowers and days cannot be negative")

        self.num_borrowers = num_borrowers
        self.days = days
        self.on_time_rate = on_time_rate
        self.partial_rate = partial_rate
        self.catch_up_rate = catch_up_rate
        self.self_report_rate = self_report_rate
        self.renewal_rate = renewal_rate
        self.reloan_rate = reloan_rate
        self.start_date = start_date or date.today() - timedelta(days=days)
        self.seed = seed
        self.config = config or LedgerConfig(seed=seed)

        self.store = InMemoryLedgerStore()
        self.dispatcher = NotificationDispatcher(sinks)
        self.service = LoanLedgerService(self.store, self.config, self.dispatcher)

        self._rng = random.Random(seed)
        self._borrower_gen = BorrowerGenerator(seed=seed)
        self._loan_gen = LoanRequestGenerator(seed=None if seed is None else seed + 1)
        self._admin = authorize(Identity("route-admin", Role.ADMIN))
        self._collector = authorize(Identity("route-collector", Role.COLLECTOR))

        self.borrower_ids: list[str] = []
        self.stats: Counter[str] = Counter()

    def generate(self) -> InMemoryLedgerStore:
        """Run the whole scenario.

        Returns
        -------
        InMemoryLedgerStore
            Store holding every borrower, loan, payment and credit created.
        """
        logger.info(
            "Starting daily collection scenario: %d borrowers over %d days from %s",
            self.num_borrowers,
            self.days,
            self.start_date,
        )

        for profile in self._borrower_gen.generate_batch(self.num_borrowers):
            borrower = self.service.register_borrower(
                self._admin, profile.name, profile.email, profile.phone
            )
            self.borrower_ids.append(borrower.borrower_id)
            self._originate(borrower.borrower_id, self.start_date)

        for offset in range(1, self.days + 1):
            today = self.start_date + timedelta(days=offset)
            for borrower_id in self.borrower_ids:
                self._collect(borrower_id, today)
                self._renew_or_reloan(borrower_id, today)
            logger.debug("Day %s collected", today)

        logger.info("Scenario finished: %s", self.store.summary())
        return self.store

    def _originate(self, borrower_id: str, granted: date) -> None:
        request = self._loan_gen.generate()
        self.service.originate_loan_at_rate(
            self._admin,
            borrower_id,
            request.principal,
            request.interest_percent,
            request.term_days,
            granted_date=granted,
        )
        self.stats["loans_originated"] += 1

    def _collect(self, borrower_id: str, today: date) -> None:
        """Visit a borrower and record whatever they pay today."""
        loans = self.service.list_borrower_loans(
            self._collector, borrower_id, status=LoanStatus.ACTIVE
        )
        for loan in loans:
            statement = self.service.get_loan_statement(self._collector, loan.loan_id)
            overdue = [
                line.installment
                for line in statement.lines
                if line.installment.due_date <= today
                and line.installment.status != InstallmentStatus.PAID
            ]
            due_today = [inst for inst in overdue if inst.due_date == today]
            backlog = [inst for inst in overdue if inst.due_date < today]

            if due_today:
                inst = due_today[0]
                roll = self._rng.random()
                if roll < self.on_time_rate:
                    self._pay(borrower_id, inst, inst.outstanding)
                elif roll < self.on_time_rate + self.partial_rate:
                    half = quantize(
                        inst.outstanding / 2,
                        self.config.money.currency_quantum,
                        self.config.money.rounding,
                    )
                    if half > ZERO:
                        self._pay(borrower_id, inst, half)
                else:
                    self.stats["installments_missed"] += 1
                    continue

            if backlog and self._rng.random() < self.catch_up_rate:
                oldest = backlog[0]
                self._pay(borrower_id, oldest, oldest.outstanding)
                self.stats["catch_up_payments"] += 1

    def _pay(self, borrower_id: str, inst: Installment, amount: Decimal) -> None:
        if self._rng.random() < self.self_report_rate:
            token = authorize(Identity(borrower_id, Role.BORROWER))
            payment = self.service.submit_payment(
                token,
                inst.installment_id,
                borrower_id,
                amount,
                receipt_ref=f"REC-{self._rng.randrange(10**8):08d}",
            )
            outcome = self.service.confirm_payment(self._collector, payment.payment_id)
            self.stats["self_reported_payments"] += 1
        else:
            outcome = self.service.submit_and_confirm(
                self._collector, inst.installment_id, borrower_id, amount
            )
        self.stats["payments_confirmed"] += 1
        if outcome.loan_settled:
            self.stats["loans_paid_off"] += 1

    def _renew_or_reloan(self, borrower_id: str, today: date) -> None:
        active = self.service.list_borrower_loans(
            self._collector, borrower_id, status=LoanStatus.ACTIVE
        )
        if not active:
            if self._rng.random() < self.reloan_rate:
                self._originate(borrower_id, today)
            return

        report = self.service.check_renewal_eligibility(self._collector, borrower_id)
        if not report.eligible or self._rng.random() >= self.renewal_rate:
            return

        request = self._loan_gen.generate()
        pending = sum((s.pending_debt for s in report.eligible_loans), ZERO)
        principal = max(request.principal, pending + self.RENEWAL_CUSHION)
        result = self.service.create_renewal(
            self._admin,
            borrower_id,
            principal,
            request.interest_percent,
            request.term_days,
            today + timedelta(days=1),
            [s.loan_id for s in report.eligible_loans],
        )
        self.stats["renewals"] += 1
        self.stats["loans_closed_by_renewal"] += len(result.closed_loan_ids)

    def export(self, sinks: list[Any]) -> dict[str, int]:
        """Write a snapshot of every entity to each sink.

        Parameters
        ----------
        sinks : list
            Objects exposing ``write_batch(entity_type, records)``.

        Returns
        -------
        dict[str, int]
            Records written per entity type.
        """
        snapshot = self.store.snapshot()
        for entity_type, records in snapshot.items():
            for sink in sinks:
                sink.write_batch(entity_type, records)
        return {entity_type: len(records) for entity_type, records in snapshot.items()}

    def get_summary(self) -> dict[str, Any]:
        """Get entity counts, simulation statistics and fund totals."""
        snapshot = self.store.snapshot()
        return {
            "entities": self.store.summary(),
            "activity": dict(self.stats),
            "notification_failures": self.dispatcher.failures,
            "total_fund_balance": sum((b.fund_balance for b in snapshot["borrowers"]), ZERO),
            "active_loans": sum(
                1 for loan in snapshot["loans"] if loan.status == LoanStatus.ACTIVE
            ),
        }

"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal

import pytest

from loan_ledger.ledger import ActorToken, Identity, LoanLedgerService, Origination, authorize
from loan_ledger.models.financial import Borrower, Role
from loan_ledger.notifications import NotificationDispatcher
from loan_ledger.sinks import MemorySink
from loan_ledger.store import InMemoryLedgerStore


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def store() -> InMemoryLedgerStore:
    """Empty in-memory ledger store."""
    return InMemoryLedgerStore()


@pytest.fixture
def memory_sink() -> MemorySink:
    """Sink collecting every notification."""
    return MemorySink()


@pytest.fixture
def service(store: InMemoryLedgerStore, memory_sink: MemorySink) -> LoanLedgerService:
    """Ledger service wired to the in-memory store and sink."""
    return LoanLedgerService(store, dispatcher=NotificationDispatcher([memory_sink]))


@pytest.fixture
def admin() -> ActorToken:
    return authorize(Identity("admin-001", Role.ADMIN))


@pytest.fixture
def collector() -> ActorToken:
    return authorize(Identity("collector-001", Role.COLLECTOR))


@pytest.fixture
def borrower(service: LoanLedgerService, admin: ActorToken) -> Borrower:
    """Registered borrower."""
    return service.register_borrower(admin, "María Benítez", "maria@example.com", "+595981000001")


@pytest.fixture
def borrower_token(borrower: Borrower) -> ActorToken:
    """Token of the registered borrower acting for themselves."""
    return authorize(Identity(borrower.borrower_id, Role.BORROWER))


@pytest.fixture
def loan(service: LoanLedgerService, admin: ActorToken, borrower: Borrower) -> Origination:
    """100 000 lent at 4 000 a day for 30 days (120 000 to return)."""
    return service.originate_loan(
        admin,
        borrower.borrower_id,
        Decimal("100000"),
        Decimal("4000"),
        30,
        granted_date=date(2025, 3, 1),
    )

"""Tests for custom exception hierarchy."""

from loan_ledger.exceptions import (
    AlreadyConfirmedError,
    ConfigurationError,
    ConflictError,
    EntityNotFoundError,
    ForbiddenError,
    InsufficientRenewalAmountError,
    InvalidLoanEconomicsError,
    InvalidScheduleParametersError,
    LedgerError,
    LoanSettledError,
    ReferentialIntegrityError,
    SinkError,
    TransactionAbortedError,
    ValidationError,
)


class TestExceptionHierarchy:
    """Test exception inheritance chain."""

    def test_ledger_error_is_exception(self) -> None:
        assert isinstance(LedgerError("test"), Exception)

    def test_schedule_parameters_is_validation_error(self) -> None:
        err = InvalidScheduleParametersError("test")
        assert isinstance(err, ValidationError)
        assert isinstance(err, LedgerError)

    def test_referential_integrity_is_entity_not_found(self) -> None:
        err = ReferentialIntegrityError("test")
        assert isinstance(err, EntityNotFoundError)
        assert isinstance(err, LedgerError)

    def test_conflicts(self) -> None:
        assert isinstance(AlreadyConfirmedError("test"), ConflictError)
        assert isinstance(LoanSettledError("test"), ConflictError)

    def test_remaining_errors_are_ledger_errors(self) -> None:
        for cls in (
            InsufficientRenewalAmountError,
            InvalidLoanEconomicsError,
            ForbiddenError,
            ConfigurationError,
            SinkError,
            TransactionAbortedError,
        ):
            assert isinstance(cls("test"), LedgerError)

    def test_exception_message(self) -> None:
        err = ReferentialIntegrityError("Borrower b-001 not found")
        assert str(err) == "Borrower b-001 not found"

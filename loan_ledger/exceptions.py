"""Custom exception hierarchy for loan-ledger."""


class LedgerError(Exception):
    """Base exception for all loan-ledger errors."""


class ValidationError(LedgerError):
    """Raised when a required numeric or date input is malformed or missing."""


class InvalidScheduleParametersError(ValidationError):
    """Raised when a repayment schedule cannot be built from the given terms."""


class EntityNotFoundError(LedgerError):
    """Raised when a referenced entity does not exist."""


class ReferentialIntegrityError(EntityNotFoundError):
    """Raised when a foreign key reference is violated."""


class ConflictError(LedgerError):
    """Raised when an entity is in an invalid state for the operation."""


class AlreadyConfirmedError(ConflictError):
    """Raised when confirming a payment that is already confirmed."""


class LoanSettledError(ConflictError):
    """Raised when an operation would change the ledger of a settled loan."""


class InsufficientRenewalAmountError(LedgerError):
    """Raised when a renewal principal does not exceed the debt it rolls over."""


class InvalidLoanEconomicsError(LedgerError):
    """Raised when a loan's total to return cannot apportion interest."""


class ForbiddenError(LedgerError):
    """Raised when an actor lacks the capability for an operation."""


class ConfigurationError(LedgerError):
    """Raised when configuration is invalid or missing."""


class SinkError(LedgerError):
    """Raised when a sink operation fails."""


class TransactionAbortedError(LedgerError):
    """Raised when a unit of work failed and was rolled back.

    The operation had no effect and is safe to retry.
    """

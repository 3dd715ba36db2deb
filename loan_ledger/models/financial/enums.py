"""Enumeration types for lending domain entities."""

from enum import Enum


class LoanStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SETTLED = "SETTLED"


class SettlementReason(str, Enum):
    PAYOFF = "PAYOFF"
    RENEWAL = "RENEWAL"


class InstallmentStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class Role(str, Enum):
    BORROWER = "BORROWER"
    COLLECTOR = "COLLECTOR"
    ADMIN = "ADMIN"


class Capability(str, Enum):
    SUBMIT_PAYMENT = "SUBMIT_PAYMENT"
    CONFIRM_PAYMENT = "CONFIRM_PAYMENT"
    MANAGE_PAYMENTS = "MANAGE_PAYMENTS"
    ORIGINATE_LOAN = "ORIGINATE_LOAN"
    RENEW_LOANS = "RENEW_LOANS"
    VIEW_LEDGER = "VIEW_LEDGER"
    MANAGE_BORROWERS = "MANAGE_BORROWERS"


class LedgerEventType(str, Enum):
    BORROWER_REGISTERED = "borrower.registered"
    LOAN_ORIGINATED = "loan.originated"
    LOAN_SETTLED = "loan.settled"
    LOAN_RENEWED = "loan.renewed"
    PAYMENT_RECEIVED = "payment.received"
    PAYMENT_CONFIRMED = "payment.confirmed"
    PAYMENT_UPDATED = "payment.updated"
    PAYMENT_DELETED = "payment.deleted"

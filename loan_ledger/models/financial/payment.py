"""Payment model for lending domain."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass
class Payment:
    """A borrower payment recorded against one installment.

    Only confirmed payments count toward the installment's paid amount and
    the borrower's fund.
    """

    payment_id: str
    installment_id: str
    borrower_id: str
    amount: Decimal
    receipt_ref: str | None  # Opaque reference from receipt storage
    comment: str | None
    created_at: datetime
    confirmed: bool = False
    confirmed_by: str | None = None
    confirmed_at: datetime | None = None
    updated_at: datetime | None = None

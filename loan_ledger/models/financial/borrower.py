"""Borrower model for lending domain."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass
class Borrower:
    """Borrower entity holding the accumulated interest fund."""

    borrower_id: str
    name: str
    email: str | None
    phone: str | None
    created_at: datetime
    fund_balance: Decimal = Decimal("0")  # Only changed by fund accrual
    updated_at: datetime | None = None

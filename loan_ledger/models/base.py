"""Base models shared across domains."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime


def new_id() -> str:
    """Return a fresh entity identifier (UUID4 hex)."""
    return uuid.uuid4().hex


@dataclass
class Event:
    """Standard event envelope for outbound notifications."""

    event_id: str
    event_type: str  # entity.action (e.g., payment.confirmed)
    event_time: datetime
    source: str  # Service/system that generated
    subject: str  # Entity ID affected
    data: dict
    metadata: dict = field(default_factory=dict)

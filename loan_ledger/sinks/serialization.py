"""JSON encoding of ledger entities and events.

Amounts are written as strings so no sink ever sees a float.
"""

import json
from collections.abc import Mapping
from dataclasses import fields, is_dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from loan_ledger.exceptions import SinkError


def to_record(obj: Any) -> dict[str, Any]:
    """Flatten a dataclass or mapping into JSON-ready values."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: json_value(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, Mapping):
        return {str(key): json_value(value) for key, value in obj.items()}
    raise SinkError(f"Cannot serialize {type(obj).__name__} as a record")


def json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):  # datetime included
        return value.isoformat()
    if isinstance(value, Mapping) or (is_dataclass(value) and not isinstance(value, type)):
        return to_record(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [json_value(item) for item in value]
    return value


def encode_json(obj: Any, pretty: bool = False) -> str:
    return json.dumps(to_record(obj), ensure_ascii=False, indent=2 if pretty else None)

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Sequence

from .models import BARCODE, CAMPUS, DUE_DATE, TITLE

KEY_FIELDS = (TITLE, CAMPUS, BARCODE, DUE_DATE)
KEY_SEPARATOR = "__"


def normalize_key_part(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def record_key(record: Sequence[Any]) -> str:
    """Composite identity of a loan: title, campus, barcode and due date.

    Two loans of the same title and barcode due on the same day collide; that
    is accepted rather than worked around.
    """
    parts = []
    for idx in KEY_FIELDS:
        parts.append(normalize_key_part(record[idx]) if idx < len(record) else "")
    return KEY_SEPARATOR.join(parts)

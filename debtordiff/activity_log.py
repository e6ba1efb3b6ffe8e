from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "America/Lima"
DEFAULT_FORMAT = "%d/%m/%Y, %H:%M"

RETURNED_BY_USER = "returned by user"
RETURNED_BY_ACTION = "item returned (action executed)"
MOVED_TO_TRACKING = "moved to tracking"


def format_timestamp(now: datetime, timezone: str = DEFAULT_TIMEZONE, fmt: str = DEFAULT_FORMAT) -> str:
    tz = ZoneInfo(timezone)
    if now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    return now.astimezone(tz).strftime(fmt)


def append_entry(
    current_log: Optional[Any],
    message: str,
    now: datetime,
    timezone: str = DEFAULT_TIMEZONE,
    fmt: str = DEFAULT_FORMAT,
) -> str:
    entry = f"{format_timestamp(now, timezone, fmt)}: {message}"
    existing = "" if current_log is None else str(current_log).rstrip("\n")
    return f"{existing}\n{entry}" if existing else entry

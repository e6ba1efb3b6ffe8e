from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Sequence, Set

from .activity_log import DEFAULT_FORMAT, DEFAULT_TIMEZONE, RETURNED_BY_USER, append_entry
from .keys import record_key
from .models import (
    ARCHIVE_LOG,
    ARCHIVE_WIDTH,
    COST,
    LOG,
    OBSERVATIONS,
    OUTCOME_DATE,
    PREFIX_WIDTH,
    RECHARGE_DATE,
    WITHDRAWAL_DATE,
    LoadedRow,
    ReconcileResult,
    ResolvedRecord,
    Row,
    StatusUpdate,
)

LOGGER = logging.getLogger(__name__)

STATUS_REGISTERED = "REGISTERED"
STATUS_NEW = "NEW"


def _cell(values: Row, idx: int):
    value = values[idx] if idx < len(values) else None
    return "" if value is None else value


def prefix(values: Row) -> Row:
    out = list(values[:PREFIX_WIDTH])
    return out + [""] * (PREFIX_WIDTH - len(out))


def archive_row(values: Row, outcome_date: datetime, log_text: str) -> Row:
    """Shared prefix, outcome date, log, payment fields, then blank status columns."""
    row = prefix(values) + [""] * (ARCHIVE_WIDTH - PREFIX_WIDTH)
    row[OUTCOME_DATE] = outcome_date
    row[ARCHIVE_LOG] = log_text
    for column in (RECHARGE_DATE, WITHDRAWAL_DATE, COST, OBSERVATIONS):
        row[column] = _cell(values, column)
    return row


def key_set(rows: Sequence[LoadedRow]) -> Set[str]:
    return {record_key(r.values) for r in rows}


def reconcile(
    snapshot_rows: Sequence[LoadedRow],
    active_rows: Sequence[LoadedRow],
    now: datetime,
    registered_label: str = STATUS_REGISTERED,
    new_label: str = STATUS_NEW,
    timezone: str = DEFAULT_TIMEZONE,
    log_format: str = DEFAULT_FORMAT,
) -> ReconcileResult:
    result = ReconcileResult()

    active_keys = key_set(active_rows)
    for row in snapshot_rows:
        registered = record_key(row.values) in active_keys
        result.status_updates.append(StatusUpdate(row.handle, registered_label if registered else new_label))
        if not registered:
            result.new_records.append(prefix(row.values))

    snapshot_keys = key_set(snapshot_rows)
    for row in active_rows:
        if record_key(row.values) in snapshot_keys:
            continue
        log_text = append_entry(_cell(row.values, LOG), RETURNED_BY_USER, now, timezone, log_format)
        result.resolved_records.append(ResolvedRecord(row.handle, archive_row(row.values, now, log_text)))

    LOGGER.info(
        "Reconciled %d snapshot rows against %d active rows: new=%d resolved=%d",
        len(snapshot_rows),
        len(active_rows),
        len(result.new_records),
        len(result.resolved_records),
    )
    return result

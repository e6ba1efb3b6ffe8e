from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from .activity_log import MOVED_TO_TRACKING, RETURNED_BY_ACTION, append_entry
from .batch import Cell, append_rows, delete_rows, ensure_current, require_table, write_cells
from .mail import NOTIFICATIONS, recipient, render_notification
from .models import ACTION, FULL_NAME, LOG, USER_ID, ActionKind, ClassifiedRow
from .reconcile import archive_row
from .tables import RunContext

LOGGER = logging.getLogger(__name__)


def _updated_logs(ctx: RunContext, items: Sequence[ClassifiedRow], message: str) -> List[str]:
    # logs are re-read: an earlier handler in the same pass may have written them
    source = ctx.table("active")
    tz, fmt = ctx.log_settings()
    now = ctx.now()
    ensure_current(source, (item.handle for item in items))
    return [append_entry(source.read_cell(item.handle.row, LOG), message, now, tz, fmt) for item in items]


def _move(ctx: RunContext, items: Sequence[ClassifiedRow], destination: str, message: str, delete_source: bool) -> bool:
    if not items:
        return True
    source = require_table(ctx, "active")
    target = require_table(ctx, destination)
    if source is None or target is None:
        return False

    try:
        logs = _updated_logs(ctx, items, message)
    except Exception as exc:
        LOGGER.exception("Reading logs for %s failed", destination)
        ctx.notify(f"Could not move rows to {target.name}: {exc}", "Error", "error")
        return False

    now = ctx.now()
    rows = [archive_row(item.values, now, log) for item, log in zip(items, logs)]
    if not append_rows(ctx, destination, rows):
        return False

    handles = [item.handle for item in items]
    if delete_source:
        return delete_rows(ctx, "active", handles)
    cells: List[Cell] = []
    for handle, log in zip(handles, logs):
        cells.append((handle, LOG, log))
        cells.append((handle, ACTION, None))
    return write_cells(ctx, "active", cells)


def move_to_returned(ctx: RunContext, items: Sequence[ClassifiedRow]) -> bool:
    """Archive rows into the returned table and delete them from the active one."""
    return _move(ctx, items, "returned", RETURNED_BY_ACTION, delete_source=True)


def move_to_tracking(ctx: RunContext, items: Sequence[ClassifiedRow]) -> bool:
    """Copy rows into the tracking table; the active rows stay, with their action cleared."""
    return _move(ctx, items, "tracking", MOVED_TO_TRACKING, delete_source=False)


@dataclass
class NotificationOutcome:
    sent: bool
    rows: int
    logged: bool


def send_notification(ctx: RunContext, kind: ActionKind, items: Sequence[ClassifiedRow]) -> NotificationOutcome:
    """Send one message covering ``items`` (all for the same user).

    Rows are logged and their action cleared only after a confirmed send.
    When sending fails, or the log cannot be written afterwards, the rows
    keep their action and the next run sends again.
    """
    if not items:
        return NotificationOutcome(False, 0, False)
    notification = NOTIFICATIONS[kind]
    rows = [item.values for item in items]
    name = rows[0][FULL_NAME] or rows[0][USER_ID]
    subject, body = render_notification(kind, rows, ctx.config)

    if not ctx.mailer.send(recipient(rows), subject, body):
        ctx.notify(f"Could not send {kind.value.lower()} to {name}", "Send failed", "warning")
        return NotificationOutcome(False, len(items), False)

    if require_table(ctx, "active") is None:
        return NotificationOutcome(True, len(items), False)
    logs = _updated_logs(ctx, items, notification.log_entry)
    cells: List[Cell] = []
    for item, log in zip(items, logs):
        cells.append((item.handle, LOG, log))
        cells.append((item.handle, ACTION, None))
    if not write_cells(ctx, "active", cells):
        LOGGER.error("%s sent to %s but the log was not updated", kind.name, name)
        ctx.notify(
            f"{kind.value} sent to {name} but the log was not updated; the action stays set and will be sent again",
            "Log not updated",
            "warning",
        )
        return NotificationOutcome(True, len(items), False)
    return NotificationOutcome(True, len(items), True)

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from openpyxl import Workbook

from .actions import move_to_returned, move_to_tracking, send_notification
from .batch import append_rows, clear_range, delete_rows, load_rows, write_status_column
from .classify import EXECUTION_ORDER, classify, group_by_user, label_map, pending_count
from .mail import Mailer
from .models import SNAPSHOT_STATUS, SNAPSHOT_WIDTH, ActionKind, Config, RunSummary
from .reconcile import STATUS_NEW, STATUS_REGISTERED, reconcile
from .tables import RunContext, resolve_tables

LOGGER = logging.getLogger(__name__)


def local_clock(timezone: str) -> Callable[[], datetime]:
    # naive wall-clock time in the configured zone; openpyxl rejects aware datetimes
    tz = ZoneInfo(timezone)
    return lambda: datetime.now(tz).replace(tzinfo=None)


def build_context(
    config: Config,
    workbook: Workbook,
    mailer: Optional[Mailer] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> RunContext:
    ctx = RunContext(config=config, tables=resolve_tables(workbook, config), mailer=mailer)
    ctx.clock = clock or local_clock(ctx.log_settings()[0])
    return ctx


def _finish(ctx: RunContext, summary: RunSummary, message: str, title: str) -> RunSummary:
    if summary.ok and not summary.failed:
        ctx.notify(message, title, "success")
    else:
        ctx.notify(message, f"{title} with errors", "warning")
    return summary


def start_process(ctx: RunContext) -> RunSummary:
    """Reconcile the imported snapshot against the active table and apply the diff."""
    summary = RunSummary(notices=ctx.notices)
    missing = ctx.missing(("snapshot", "active", "returned"))
    if missing:
        ctx.notify("Missing tables:\n- " + "\n- ".join(missing), "Configuration error", "error")
        return summary

    try:
        snapshot_rows = load_rows(ctx.table("snapshot"))
        if not snapshot_rows:
            ctx.notify("No data to process", "Information", "info")
            return summary
        active_rows = load_rows(ctx.table("active"))

        status = ctx.config.get("status") or {}
        timezone, log_format = ctx.log_settings()
        result = reconcile(
            snapshot_rows,
            active_rows,
            ctx.now(),
            registered_label=status.get("registered", STATUS_REGISTERED),
            new_label=status.get("new", STATUS_NEW),
            timezone=timezone,
            log_format=log_format,
        )

        if write_status_column(ctx, "snapshot", result.status_updates, SNAPSHOT_STATUS):
            summary.registered = len(result.status_updates) - len(result.new_records)
        if append_rows(ctx, "active", result.new_records):
            summary.added = len(result.new_records)

        resolved = result.resolved_records
        if resolved and append_rows(ctx, "returned", [r.archive_row for r in resolved]):
            if delete_rows(ctx, "active", [r.handle for r in resolved]):
                summary.returned = len(resolved)
            else:
                summary.failed += len(resolved)
        elif resolved:
            summary.failed += len(resolved)
    except Exception as exc:
        LOGGER.exception("start_process failed")
        ctx.notify(f"Unexpected error: {exc}", "Process failed", "error")
        return summary

    message = " // ".join(
        [
            f"Previously registered: {summary.registered}",
            f"New debtors: {summary.added}",
            f"Returned items: {summary.returned}",
        ]
    )
    return _finish(ctx, summary, message, "Process completed")


def _run_notifications(ctx: RunContext, kind: ActionKind, items, summary: RunSummary) -> None:
    for user_id, user_items in group_by_user(items).items():
        try:
            outcome = send_notification(ctx, kind, user_items)
        except Exception as exc:
            LOGGER.exception("%s for user %s failed", kind.name, user_id)
            ctx.notify(f"Error processing user {user_id}: {exc}", "Action error", "warning")
            summary.failed += len(user_items)
            continue
        if outcome.sent:
            summary.messages_sent += 1
        if outcome.logged:
            summary.notified_rows += outcome.rows
        else:
            summary.failed += len(user_items)


def execute_actions(ctx: RunContext) -> RunSummary:
    """Run every pending action of the active table.

    Order matters: notifications and tracking moves keep row positions
    intact, returned moves delete rows and run last.
    """
    summary = RunSummary(notices=ctx.notices)
    active = ctx.table("active")
    if active is None:
        ctx.notify(f"Table not found: {ctx.title('active')}", "Configuration error", "error")
        return summary

    try:
        rows = load_rows(active)
        labels = label_map((ctx.config.get("actions") or {}).get("labels"))
        groups = classify(rows, labels)
        if pending_count(groups) == 0:
            ctx.notify("No pending actions to execute", "Information", "info")
            return summary

        for kind in EXECUTION_ORDER:
            items = groups[kind]
            if not items:
                continue
            LOGGER.info("Running %s on %d rows", kind.name, len(items))
            if kind.is_notification:
                _run_notifications(ctx, kind, items, summary)
            elif kind is ActionKind.MOVE_TO_TRACKING:
                if move_to_tracking(ctx, items):
                    summary.tracked += len(items)
                else:
                    summary.failed += len(items)
            elif kind is ActionKind.MOVE_TO_RETURNED:
                if move_to_returned(ctx, items):
                    summary.returned += len(items)
                else:
                    summary.failed += len(items)
            else:
                raise ValueError(f"No handler for action {kind.name}")
    except Exception as exc:
        LOGGER.exception("execute_actions failed")
        ctx.notify(f"Error executing actions: {exc}", "Error", "error")
        return summary

    message = " // ".join(
        [
            f"Returned items: {summary.returned}",
            f"Items in tracking: {summary.tracked}",
            f"Emails sent: {summary.messages_sent} ({summary.notified_rows} items)",
        ]
    )
    return _finish(ctx, summary, message, "Actions executed")


def reset_data(ctx: RunContext) -> RunSummary:
    """Blank the snapshot table below its header, ready for the next import."""
    summary = RunSummary(notices=ctx.notices)
    snapshot = ctx.table("snapshot")
    if snapshot is None:
        ctx.notify(f"Table not found: {ctx.title('snapshot')}", "Configuration error", "error")
        return summary

    last = snapshot.last_row()
    if last < 2:
        ctx.notify("The table is already empty", "Information", "info")
        return summary
    if clear_range(ctx, "snapshot", 2, last, SNAPSHOT_WIDTH):
        ctx.notify(f"Cleared {last - 1} rows", "Reset completed", "success")
    return summary

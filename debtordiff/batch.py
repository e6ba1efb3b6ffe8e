from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .errors import StaleRowHandleError
from .models import PREFIX_WIDTH, LoadedRow, Row, RowHandle, StatusUpdate
from .tables import RunContext, Table

LOGGER = logging.getLogger(__name__)

Cell = Tuple[RowHandle, int, Any]


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def load_rows(table: Table) -> List[LoadedRow]:
    """Read every data row below the header in one call.

    This is the only place that hands out ``RowHandle`` objects. Rows whose
    shared prefix is entirely empty are skipped, but the numbering of the
    remaining rows still follows the sheet.
    """
    rows = table.read_all()
    loaded: List[LoadedRow] = []
    for row_num, values in enumerate(rows[1:], start=2):
        if all(_blank(v) for v in values[:PREFIX_WIDTH]):
            continue
        loaded.append(LoadedRow(RowHandle(table.name, row_num, table.generation), list(values)))
    LOGGER.debug("Loaded %s: %d rows", table.name, len(loaded))
    return loaded


def ensure_current(table: Table, handles: Iterable[RowHandle]) -> None:
    for handle in handles:
        if handle.table != table.name:
            raise ValueError(f"row handle for {handle.table} used on {table.name}")
        if handle.generation != table.generation:
            raise StaleRowHandleError(handle.table, handle.row, handle.generation, table.generation)


def require_table(ctx: RunContext, role: str) -> Optional[Table]:
    table = ctx.table(role)
    if table is None:
        ctx.notify(f"Table not found: {ctx.title(role)}", "Configuration error", "error")
    return table


def _fail(ctx: RunContext, step: str, table: Table, exc: Exception) -> bool:
    LOGGER.exception("%s failed on %s", step, table.name)
    ctx.notify(f"{step} failed on {table.name}: {exc}", "Error", "error")
    return False


def status_span(updates: Sequence[StatusUpdate], filler: Any = "") -> Tuple[int, List[List[Any]]]:
    ordered = sorted(updates, key=lambda u: u.handle.row)
    first = ordered[0].handle.row
    last = ordered[-1].handle.row
    values: List[List[Any]] = [[filler] for _ in range(last - first + 1)]
    for update in ordered:
        values[update.handle.row - first] = [update.value]
    return first, values


def write_status_column(ctx: RunContext, role: str, updates: Sequence[StatusUpdate], column: int) -> bool:
    """Write sparse per-row values with a single range write.

    The write covers the smallest span holding every update; rows inside the
    span without an update receive an empty string.
    """
    if not updates:
        return True
    table = require_table(ctx, role)
    if table is None:
        return False
    try:
        ensure_current(table, (u.handle for u in updates))
        first, values = status_span(updates)
        table.write_range(first, column, values)
    except Exception as exc:
        return _fail(ctx, "Status write", table, exc)
    LOGGER.info("Wrote %d status values to %s rows %d-%d", len(updates), table.name, first, first + len(values) - 1)
    return True


def append_rows(ctx: RunContext, role: str, rows: Sequence[Row]) -> bool:
    if not rows:
        return True
    table = require_table(ctx, role)
    if table is None:
        return False
    width = max(len(r) for r in rows)
    padded = [list(r) + [""] * (width - len(r)) for r in rows]
    try:
        start = table.append_rows(padded)
    except Exception as exc:
        return _fail(ctx, "Append", table, exc)
    LOGGER.info("Appended %d rows to %s at row %d", len(padded), table.name, start)
    return True


def delete_rows(ctx: RunContext, role: str, handles: Sequence[RowHandle]) -> bool:
    """Delete rows highest position first.

    Removing a row shifts every row below it up by one, so only a descending
    order keeps the remaining positions pointing at the intended rows. All
    handles are checked before the first deletion.
    """
    if not handles:
        return True
    table = require_table(ctx, role)
    if table is None:
        return False
    try:
        ensure_current(table, handles)
        positions = sorted({h.row for h in handles}, reverse=True)
        for position in positions:
            table.delete_row(position)
    except Exception as exc:
        return _fail(ctx, "Delete", table, exc)
    LOGGER.info("Deleted %d rows from %s", len(positions), table.name)
    return True


def write_cells(ctx: RunContext, role: str, cells: Sequence[Cell]) -> bool:
    # one write per cell: a span here would blank logs of untouched rows
    if not cells:
        return True
    table = require_table(ctx, role)
    if table is None:
        return False
    try:
        ensure_current(table, (handle for handle, _, _ in cells))
        for handle, column, value in cells:
            table.write_range(handle.row, column, [[value]])
    except Exception as exc:
        return _fail(ctx, "Cell write", table, exc)
    return True


def clear_range(ctx: RunContext, role: str, first_row: int, last_row: int, width: int) -> bool:
    if last_row < first_row:
        return True
    table = require_table(ctx, role)
    if table is None:
        return False
    blank = [[None] * width for _ in range(last_row - first_row + 1)]
    try:
        table.write_range(first_row, 0, blank)
    except Exception as exc:
        return _fail(ctx, "Clear", table, exc)
    return True

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from .activity_log import DEFAULT_FORMAT, DEFAULT_TIMEZONE
from .errors import ConfigurationError
from .models import Config, Notice, Row

LOGGER = logging.getLogger(__name__)

TABLE_ROLES = ("snapshot", "active", "tracking", "returned")

DEFAULT_TITLES = {
    "snapshot": "Debtors report",
    "active": "Overdue items",
    "tracking": "Loan tracking",
    "returned": "Returned items",
}


class Table(Protocol):
    name: str
    generation: int

    def read_all(self) -> List[Row]: ...

    def read_cell(self, row: int, col: int) -> Any: ...

    def write_range(self, row: int, col: int, values: Sequence[Sequence[Any]]) -> None: ...

    def append_rows(self, rows: Sequence[Sequence[Any]]) -> int: ...

    def delete_row(self, row: int) -> None: ...

    def last_row(self) -> int: ...


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class SheetTable:
    """An openpyxl worksheet seen as a headed table of fixed-width rows.

    Rows are 1-based like the sheet itself; columns are 0-based here and
    shifted to openpyxl's 1-based columns internally.
    """

    def __init__(self, ws: Worksheet) -> None:
        self.ws = ws
        self.name = ws.title
        self.generation = 0

    def last_row(self) -> int:
        last = 0
        for idx, values in enumerate(self.ws.iter_rows(values_only=True), start=1):
            if any(not _is_blank(v) for v in values):
                last = idx
        return last

    def read_all(self) -> List[Row]:
        last = self.last_row()
        if last == 0:
            return []
        width = self.ws.max_column
        rows: List[Row] = []
        for values in self.ws.iter_rows(min_row=1, max_row=last, max_col=width, values_only=True):
            rows.append(list(values))
        return rows

    def read_cell(self, row: int, col: int) -> Any:
        return self.ws.cell(row=row, column=col + 1).value

    def write_range(self, row: int, col: int, values: Sequence[Sequence[Any]]) -> None:
        for r_off, row_values in enumerate(values):
            for c_off, value in enumerate(row_values):
                self.ws.cell(row=row + r_off, column=col + c_off + 1).value = value

    def append_rows(self, rows: Sequence[Sequence[Any]]) -> int:
        start = self.last_row() + 1
        self.write_range(start, 0, rows)
        return start

    def delete_row(self, row: int) -> None:
        self.ws.delete_rows(row)
        self.generation += 1


@dataclass
class RunContext:
    """Everything one entry-point invocation works with.

    Built once per pass and handed to every component; nothing here is
    module-global.
    """

    config: Config
    tables: Dict[str, Optional[Table]]
    mailer: Any = None
    clock: Callable[[], datetime] = datetime.now
    notices: List[Notice] = field(default_factory=list)

    def table(self, role: str) -> Optional[Table]:
        return self.tables.get(role)

    def title(self, role: str) -> str:
        sheets = self.config.get("sheets") or {}
        return sheets.get(role) or DEFAULT_TITLES.get(role, role)

    def now(self) -> datetime:
        return self.clock()

    def log_settings(self) -> Tuple[str, str]:
        log_cfg = self.config.get("log") or {}
        return log_cfg.get("timezone", DEFAULT_TIMEZONE), log_cfg.get("format", DEFAULT_FORMAT)

    def notify(self, message: str, title: str, severity: str = "info") -> Notice:
        notice = Notice(message=message, title=title, severity=severity)
        self.notices.append(notice)
        level = {"error": logging.ERROR, "warning": logging.WARNING}.get(severity, logging.INFO)
        LOGGER.log(level, "%s: %s", title, message)
        return notice

    def missing(self, roles: Iterable[str]) -> List[str]:
        return [self.title(role) for role in roles if self.table(role) is None]


def resolve_tables(workbook: Workbook, config: Config) -> Dict[str, Optional[Table]]:
    sheets = config.get("sheets") or {}
    tables: Dict[str, Optional[Table]] = {}
    for role in TABLE_ROLES:
        title = sheets.get(role) or DEFAULT_TITLES[role]
        if title in workbook.sheetnames:
            tables[role] = SheetTable(workbook[title])
        else:
            LOGGER.debug("sheet %r for %s not present", title, role)
            tables[role] = None
    return tables


def open_workbook(path: str) -> Workbook:
    if not Path(path).exists():
        raise ConfigurationError(f"Workbook not found: {path}")
    try:
        return load_workbook(path)
    except Exception as exc:
        raise ConfigurationError(f"Cannot open workbook {path}: {exc}") from exc

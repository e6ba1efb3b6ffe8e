from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List

# Shared prefix, identical across every table.
CAMPUS = 0
USER_TYPE = 1
USER_ID = 2
FULL_NAME = 3
PHONE = 4
EMAIL = 5
TITLE = 6
CLASSIFICATION = 7
BARCODE = 8
LOAN_DATE = 9
DUE_DATE = 10
PREFIX_WIDTH = 11

# Snapshot
SNAPSHOT_STATUS = 11
SNAPSHOT_WIDTH = 12

# Active (overdue items)
ACTION = 11
LOG = 12
RECHARGE_DATE = 13
WITHDRAWAL_DATE = 14
COST = 15
OBSERVATIONS = 16

# Tracking / returned
OUTCOME_DATE = 11
ARCHIVE_LOG = 12
# 13-16 as in the active table; 17-19 (status, payment query, payment done) start blank
ARCHIVE_WIDTH = 20

Row = List[Any]
Config = Dict[str, Any]


class ActionKind(enum.Enum):
    FIRST_REMINDER = "First reminder"
    SECOND_REMINDER = "Second reminder"
    RECHARGE_NOTICE = "Recharge notice"
    RECHARGE_CONFIRMATION = "Recharge confirmation"
    MOVE_TO_RETURNED = "Item returned/found"
    MOVE_TO_TRACKING = "Move to tracking"

    @property
    def is_notification(self) -> bool:
        return self in NOTIFICATION_KINDS


NOTIFICATION_KINDS = (
    ActionKind.FIRST_REMINDER,
    ActionKind.SECOND_REMINDER,
    ActionKind.RECHARGE_NOTICE,
    ActionKind.RECHARGE_CONFIRMATION,
)


@dataclass(frozen=True)
class RowHandle:
    """Position of a row as observed by one load of its table.

    Only ``batch.load_rows`` creates these. A handle stops being valid as soon
    as any row of its table is deleted (the table's generation moves on).
    """

    table: str
    row: int
    generation: int


@dataclass
class LoadedRow:
    handle: RowHandle
    values: Row


@dataclass
class StatusUpdate:
    handle: RowHandle
    value: str


@dataclass
class ResolvedRecord:
    handle: RowHandle
    archive_row: Row


@dataclass
class ReconcileResult:
    status_updates: List[StatusUpdate] = field(default_factory=list)
    new_records: List[Row] = field(default_factory=list)
    resolved_records: List[ResolvedRecord] = field(default_factory=list)


@dataclass
class ClassifiedRow:
    handle: RowHandle
    values: Row


@dataclass
class Notice:
    message: str
    title: str
    severity: str = "info"


@dataclass
class RunSummary:
    registered: int = 0
    added: int = 0
    returned: int = 0
    notified_rows: int = 0
    messages_sent: int = 0
    tracked: int = 0
    failed: int = 0
    notices: List[Notice] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not any(n.severity == "error" for n in self.notices)

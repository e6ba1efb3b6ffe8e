from datetime import datetime

from openpyxl import Workbook

from debtordiff.cli import load_config
from debtordiff.process import build_context
from debtordiff.tables import DEFAULT_TITLES, SheetTable

NOW = datetime(2026, 10, 17, 9, 30)
STAMP = "17/10/2026, 09:30"

PREFIX_HEADERS = [
    "Campus", "User type", "User ID", "Full name", "Phone", "Email", "Title",
    "Classification", "Barcode", "Loan date", "Due date",
]
SNAPSHOT_HEADERS = PREFIX_HEADERS + ["Status"]
ACTIVE_HEADERS = PREFIX_HEADERS + [
    "Action", "Log", "Recharge date", "Withdrawal date", "Cost", "Observations",
]
ARCHIVE_HEADERS = PREFIX_HEADERS + [
    "Outcome date", "Log", "Recharge date", "Withdrawal date", "Cost", "Observations",
    "Status", "Payment query", "Payment done",
]


def loan(title, user_id="U1", name="Ana Perez", email="ana@example.edu", campus="HYO", due="2026-09-30"):
    return [campus, "Student", user_id, name, "999111222", email, title, "QA76", f"BC-{title}", "2026-09-01", due]


def active_row(title, action=None, log=None, **kwargs):
    return loan(title, **kwargs) + [action, log]


def make_workbook(snapshot=(), active=(), tracking=True, returned=True):
    wb = Workbook()
    ws = wb.active
    ws.title = DEFAULT_TITLES["snapshot"]
    ws.append(SNAPSHOT_HEADERS)
    for row in snapshot:
        ws.append(row)

    ws = wb.create_sheet(DEFAULT_TITLES["active"])
    ws.append(ACTIVE_HEADERS)
    for row in active:
        ws.append(row)

    if tracking:
        wb.create_sheet(DEFAULT_TITLES["tracking"]).append(ARCHIVE_HEADERS)
    if returned:
        wb.create_sheet(DEFAULT_TITLES["returned"]).append(ARCHIVE_HEADERS)
    return wb


def make_context(wb, mailer=None, config=None):
    return build_context(config or load_config(None), wb, mailer or RecordingMailer(), clock=lambda: NOW)


def data_rows(wb, role):
    return SheetTable(wb[DEFAULT_TITLES[role]]).read_all()[1:]


def titles(wb, role):
    return [row[6] for row in data_rows(wb, role)]


class RecordingMailer:
    def __init__(self, fail_for=(), raise_for=()):
        self.sent = []
        self.fail_for = set(fail_for)
        self.raise_for = set(raise_for)

    def send(self, to, subject, html_body):
        if to in self.raise_for:
            raise RuntimeError(f"relay refused {to}")
        if to in self.fail_for:
            return False
        self.sent.append((to, subject, html_body))
        return True

import unittest
from datetime import date, datetime, timezone

from debtordiff.activity_log import append_entry, format_timestamp
from debtordiff.keys import record_key
from workbook_fixtures import NOW, STAMP, loan


class RecordKeyTests(unittest.TestCase):
    def test_key_uses_title_campus_barcode_due_date(self):
        self.assertEqual(record_key(loan("Calculus")), "Calculus__HYO__BC-Calculus__2026-09-30")

    def test_key_ignores_user_and_trailing_fields(self):
        a = loan("Calculus", user_id="U1", name="Ana") + ["First reminder", "log"]
        b = loan("Calculus", user_id="U9", name="Someone else")
        self.assertEqual(record_key(a), record_key(b))

    def test_typed_and_text_dates_match(self):
        as_text = loan("Calculus", due="2026-09-30")
        as_datetime = loan("Calculus", due=datetime(2026, 9, 30))
        as_date = loan("Calculus", due=date(2026, 9, 30))
        self.assertEqual(record_key(as_text), record_key(as_datetime))
        self.assertEqual(record_key(as_text), record_key(as_date))

    def test_different_due_date_is_a_different_loan(self):
        self.assertNotEqual(record_key(loan("Calculus", due="2026-09-30")), record_key(loan("Calculus", due="2026-10-01")))

    def test_whitespace_and_none_are_normalized(self):
        row = loan("Calculus")
        row[6] = "  Calculus "
        row[0] = None
        self.assertEqual(record_key(row), "Calculus____BC-Calculus__2026-09-30")


class ActivityLogTests(unittest.TestCase):
    def test_first_entry(self):
        self.assertEqual(append_entry(None, "moved to tracking", NOW), f"{STAMP}: moved to tracking")

    def test_appends_on_new_line(self):
        log = append_entry("01/10/2026, 08:00: first reminder sent", "second reminder sent", NOW)
        self.assertEqual(log.splitlines(), ["01/10/2026, 08:00: first reminder sent", f"{STAMP}: second reminder sent"])

    def test_aware_datetimes_are_converted(self):
        utc = datetime(2026, 10, 17, 14, 30, tzinfo=timezone.utc)
        self.assertEqual(format_timestamp(utc, "America/Lima"), STAMP)


if __name__ == "__main__":
    unittest.main()

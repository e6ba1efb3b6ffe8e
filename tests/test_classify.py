import unittest

from debtordiff.classify import EXECUTION_ORDER, classify, group_by_user, label_map, parse_action, pending_count
from debtordiff.models import ActionKind, LoadedRow, RowHandle
from workbook_fixtures import active_row


def loaded(rows):
    return [LoadedRow(RowHandle("Overdue items", idx, 0), values) for idx, values in enumerate(rows, start=2)]


class ClassifyTests(unittest.TestCase):
    def test_groups_by_kind_in_row_order(self):
        rows = loaded(
            [
                active_row("A", action="First reminder"),
                active_row("B", action="Move to tracking"),
                active_row("C"),
                active_row("D", action="first  REMINDER "),
                active_row("E", action="Send a postcard"),
                active_row("F", action=""),
            ]
        )
        with self.assertLogs("debtordiff.classify", level="WARNING"):
            groups = classify(rows, label_map())

        self.assertEqual([i.values[6] for i in groups[ActionKind.FIRST_REMINDER]], ["A", "D"])
        self.assertEqual([i.handle.row for i in groups[ActionKind.FIRST_REMINDER]], [2, 5])
        self.assertEqual([i.values[6] for i in groups[ActionKind.MOVE_TO_TRACKING]], ["B"])
        self.assertEqual(pending_count(groups), 3)
        self.assertEqual(set(groups), set(ActionKind))

    def test_label_overrides(self):
        labels = label_map({"MOVE_TO_RETURNED": "Ítem devuelto/encontrado"})
        self.assertIs(parse_action("Ítem devuelto/encontrado", labels), ActionKind.MOVE_TO_RETURNED)
        self.assertIsNone(parse_action("Item returned/found", labels))
        self.assertIs(parse_action("Second reminder", labels), ActionKind.SECOND_REMINDER)

    def test_blank_selectors_are_ignored(self):
        labels = label_map()
        self.assertIsNone(parse_action(None, labels))
        self.assertIsNone(parse_action("   ", labels))

    def test_returned_runs_last(self):
        self.assertEqual(EXECUTION_ORDER[-1], ActionKind.MOVE_TO_RETURNED)
        self.assertEqual(EXECUTION_ORDER[-2], ActionKind.MOVE_TO_TRACKING)
        self.assertTrue(all(kind.is_notification for kind in EXECUTION_ORDER[:-2]))
        self.assertEqual(len(EXECUTION_ORDER), len(ActionKind))

    def test_group_by_user_keeps_first_seen_order(self):
        rows = loaded(
            [
                active_row("A", user_id="U2"),
                active_row("B", user_id="U1"),
                active_row("C", user_id="U2"),
            ]
        )
        items = classify(
            [LoadedRow(r.handle, r.values[:11] + ["First reminder"]) for r in rows], label_map()
        )[ActionKind.FIRST_REMINDER]
        grouped = group_by_user(items)
        self.assertEqual(list(grouped), ["id:U2", "id:U1"])
        self.assertEqual([i.values[6] for i in grouped["id:U2"]], ["A", "C"])

    def test_blank_user_ids_fall_back_to_email_then_row(self):
        rows = loaded(
            [
                active_row("A", user_id=None, email="ana@example.edu"),
                active_row("B", user_id="", email="beto@example.edu"),
                active_row("C", user_id="  ", email=" ANA@example.edu "),
                active_row("D", user_id=None, email=None),
                active_row("E", user_id="", email=""),
            ]
        )
        items = classify(
            [LoadedRow(r.handle, r.values[:11] + ["First reminder"]) for r in rows], label_map()
        )[ActionKind.FIRST_REMINDER]
        grouped = group_by_user(items)

        self.assertEqual(
            list(grouped), ["email:ana@example.edu", "email:beto@example.edu", "row:5", "row:6"]
        )
        self.assertEqual([i.values[6] for i in grouped["email:ana@example.edu"]], ["A", "C"])
        self.assertEqual([i.values[6] for i in grouped["row:5"]], ["D"])


if __name__ == "__main__":
    unittest.main()

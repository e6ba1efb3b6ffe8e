from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .models import ACTION, EMAIL, NOTIFICATION_KINDS, USER_ID, ActionKind, ClassifiedRow, LoadedRow

LOGGER = logging.getLogger(__name__)

# Notifications never move rows, tracking keeps rows in place, returned deletes
# rows and therefore has to come last.
EXECUTION_ORDER = NOTIFICATION_KINDS + (ActionKind.MOVE_TO_TRACKING, ActionKind.MOVE_TO_RETURNED)


def _normalize_label(value: Any) -> str:
    return " ".join(str(value).split()).casefold()


def label_map(overrides: Optional[Mapping[str, str]] = None) -> Dict[str, ActionKind]:
    overrides = overrides or {}
    labels: Dict[str, ActionKind] = {}
    for kind in ActionKind:
        label = overrides.get(kind.name) or kind.value
        labels[_normalize_label(label)] = kind
    return labels


def parse_action(value: Any, labels: Mapping[str, ActionKind]) -> Optional[ActionKind]:
    if value is None:
        return None
    text = _normalize_label(value)
    if not text:
        return None
    return labels.get(text)


def classify(rows: Sequence[LoadedRow], labels: Mapping[str, ActionKind]) -> Dict[ActionKind, List[ClassifiedRow]]:
    groups: Dict[ActionKind, List[ClassifiedRow]] = {kind: [] for kind in EXECUTION_ORDER}
    ignored = 0
    for row in rows:
        value = row.values[ACTION] if ACTION < len(row.values) else None
        kind = parse_action(value, labels)
        if kind is None:
            if value not in (None, ""):
                ignored += 1
            continue
        groups[kind].append(ClassifiedRow(row.handle, row.values))
    if ignored:
        LOGGER.warning("Ignored %d rows with an unrecognized action", ignored)
    LOGGER.debug("Classified actions: %s", {k.name: len(v) for k, v in groups.items() if v})
    return groups


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def user_identity(item: ClassifiedRow) -> str:
    """User ID, else the lower-cased email, else the row itself.

    Rows with no identity at all are never clustered with anyone.
    """
    user_id = _text(item.values[USER_ID])
    if user_id:
        return f"id:{user_id}"
    email = _text(item.values[EMAIL]).casefold()
    if email:
        return f"email:{email}"
    return f"row:{item.handle.row}"


def group_by_user(items: Sequence[ClassifiedRow]) -> Dict[str, List[ClassifiedRow]]:
    grouped: Dict[str, List[ClassifiedRow]] = {}
    for item in items:
        grouped.setdefault(user_identity(item), []).append(item)
    return grouped


def pending_count(groups: Mapping[ActionKind, Sequence[ClassifiedRow]]) -> int:
    return sum(len(items) for items in groups.values())

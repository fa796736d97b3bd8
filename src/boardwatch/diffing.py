from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import Enum

from .models import ChangeRecord, Diff, TrackedItem, Transition

logger = logging.getLogger(__name__)


class Classification(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"
    CLOSED = "closed"
    UNCHANGED = "unchanged"


def _difference(left: Iterable[str] | None, right: Iterable[str] | None) -> tuple[str, ...]:
    # keeps the order of ``left``; membership is order-insensitive
    exclude = set(right or ())
    return tuple(value for value in (left or ()) if value not in exclude)


def classify(prev: TrackedItem | None, next_item: TrackedItem | None) -> Classification:
    if prev is None and next_item is None:
        raise ValueError("cannot classify an id absent from both snapshots")
    if prev is None:
        return Classification.ADDED
    if next_item is None:
        return Classification.REMOVED
    if prev == next_item:
        return Classification.UNCHANGED
    if next_item.closed is True:
        return Classification.CLOSED
    return Classification.CHANGED


def build_change_record(prev: TrackedItem, next_item: TrackedItem) -> ChangeRecord:
    labels_added = _difference(next_item.labels, prev.labels)
    labels_removed = _difference(prev.labels, next_item.labels)
    assignees_added = _difference(next_item.assignees, prev.assignees)
    assignees_removed = _difference(prev.assignees, next_item.assignees)
    record = ChangeRecord(
        title=next_item.title,
        url=next_item.url,
        previous_title=prev.title if prev.title != next_item.title else None,
        status=Transition(prev.status, next_item.status) if prev.status != next_item.status else None,
        labels_added=labels_added or None,
        labels_removed=labels_removed or None,
        assignees_added=assignees_added or None,
        assignees_removed=assignees_removed or None,
        closed=Transition(prev.closed, next_item.closed) if prev.closed != next_item.closed else None,
        merged=Transition(prev.merged, next_item.merged) if prev.merged != next_item.merged else None,
    )
    if not record.has_delta:
        # e.g. labels reordered without any content change
        logger.debug("item %s differs structurally but carries no field delta", next_item.id)
    return record


def diff(prev: Mapping[str, TrackedItem], next_snapshot: Mapping[str, TrackedItem]) -> Diff:
    """Classify every tracked item between two snapshots.

    Output order follows the insertion order of ``prev`` for removed, changed
    and closed items and of ``next_snapshot`` for added items.
    """
    result = Diff()
    for item_id, prev_item in prev.items():
        next_item = next_snapshot.get(item_id)
        state = classify(prev_item, next_item)
        if state is Classification.REMOVED:
            result.removed.append(prev_item)
        elif state is Classification.CLOSED and next_item is not None:
            result.closed.append(next_item)
        elif state is Classification.CHANGED and next_item is not None:
            result.changed.append(build_change_record(prev_item, next_item))
    for item_id, next_item in next_snapshot.items():
        if item_id not in prev:
            result.added.append(next_item)
    logger.debug(
        "diff computed: %d added, %d removed, %d changed, %d closed",
        len(result.added),
        len(result.removed),
        len(result.changed),
        len(result.closed),
    )
    return result


__all__ = ["Classification", "classify", "build_change_record", "diff"]

"""Versioned snapshot envelope with transparent legacy migration.

Two persisted shapes exist:

* legacy (pre 2.0): a bare ``{id: item}`` mapping;
* current: ``{"metadata": {...}, "items": {id: item}}``.

``load`` accepts either and always returns items plus metadata; ``save``
always produces the current shape. Both are pure: the caller supplies the
clock reading.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .models import SNAPSHOT_VERSION, Envelope, Metadata, Snapshot, snapshot_from_dict

logger = logging.getLogger(__name__)

RUN_ID_FORMAT = "%Y%m%dT%H%M%S"


@dataclass(frozen=True)
class LoadedSnapshot:
    items: Snapshot
    metadata: Metadata
    migrated: bool = False


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    utc = _as_utc(moment)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(text))


def deterministic_run_id(moment: datetime) -> str:
    return _as_utc(moment).strftime(RUN_ID_FORMAT)


def is_enveloped(raw: Any) -> bool:
    return isinstance(raw, Mapping) and "metadata" in raw and "items" in raw


def load(raw: Any) -> LoadedSnapshot:
    if is_enveloped(raw):
        items_raw = raw.get("items")
        items = snapshot_from_dict(items_raw) if isinstance(items_raw, Mapping) else {}
        return LoadedSnapshot(items=items, metadata=Metadata.from_dict(raw.get("metadata")))
    if not isinstance(raw, Mapping):
        logger.warning("Snapshot payload is not a JSON object (%s); treating as empty", type(raw).__name__)
        raw = {}
    logger.debug("Migrating legacy snapshot with %d entries", len(raw))
    return LoadedSnapshot(items=snapshot_from_dict(raw), metadata=Metadata(), migrated=True)


def save(items: Snapshot, previous_metadata: Metadata | None, now: datetime) -> Envelope:
    metadata = Metadata(
        version=SNAPSHOT_VERSION,
        last_update=format_timestamp(now),
        run_id=deterministic_run_id(now),
        previous_update=previous_metadata.last_update if previous_metadata else None,
    )
    return Envelope(metadata=metadata, items=dict(items))


__all__ = [
    "LoadedSnapshot",
    "RUN_ID_FORMAT",
    "format_timestamp",
    "parse_timestamp",
    "deterministic_run_id",
    "is_enveloped",
    "load",
    "save",
]

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

SNAPSHOT_VERSION = "2.0"

T = TypeVar("T")

_ITEM_FIELDS = ("type", "title", "status", "labels", "url", "closed", "merged", "assignees")
_NAME_FIELDS = ("labels", "assignees")
_FLAG_FIELDS = ("closed", "merged")


def _coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _typed_field(name: str, value: Any) -> tuple[bool, Any]:
    """Return ``(ok, value)`` for a known field; ``ok`` is False on a type mismatch."""
    if value is None:
        return True, None
    if name in _NAME_FIELDS:
        if isinstance(value, (list, tuple)) and all(isinstance(entry, str) for entry in value):
            return True, tuple(value)
        return False, value
    if name in _FLAG_FIELDS:
        return isinstance(value, bool), value
    return isinstance(value, str), value


@dataclass(frozen=True)
class TrackedItem:
    """Observed state of one project board item.

    Fields missing from the source payload stay ``None`` so that a sparse
    legacy record serializes back to exactly what was read. A known field whose
    stored value has an unexpected type (``"labels": ""`` in old snapshots) is
    kept verbatim in ``extra`` and written back in its original position.
    ``labels`` and ``assignees`` keep their observed order; equality is
    structural and therefore order-sensitive.
    """

    id: str
    type: str | None = None
    title: str | None = None
    status: str | None = None
    labels: tuple[str, ...] | None = None
    url: str | None = None
    closed: bool | None = None
    merged: bool | None = None
    assignees: tuple[str, ...] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, item_id: str, payload: Mapping[str, Any]) -> TrackedItem:
        values: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, raw in payload.items():
            key = str(key)
            if key not in _ITEM_FIELDS:
                extra[key] = raw
                continue
            ok, value = _typed_field(key, raw)
            if ok:
                values[key] = value
            else:
                extra[key] = raw
        return cls(id=str(item_id), extra=extra, **values)

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the persisted key order, omitting absent fields."""
        out: dict[str, Any] = {}
        for name in _ITEM_FIELDS:
            value = getattr(self, name)
            if value is None:
                if name in self.extra:
                    out[name] = self.extra[name]
                continue
            out[name] = list(value) if isinstance(value, tuple) else value
        for key, value in self.extra.items():
            out.setdefault(key, value)
        return out


Snapshot = dict[str, TrackedItem]


@dataclass(frozen=True)
class Transition(Generic[T]):
    prev: T
    next: T

    def to_dict(self) -> dict[str, Any]:
        return {"prev": self.prev, "next": self.next}


@dataclass(frozen=True)
class ChangeRecord:
    """Field-level delta for an item classified as changed.

    Only the fields that actually moved are set; everything else is ``None``.
    """

    title: str | None
    url: str | None
    previous_title: str | None = None
    status: Transition[str | None] | None = None
    labels_added: tuple[str, ...] | None = None
    labels_removed: tuple[str, ...] | None = None
    assignees_added: tuple[str, ...] | None = None
    assignees_removed: tuple[str, ...] | None = None
    closed: Transition[bool | None] | None = None
    merged: Transition[bool | None] | None = None

    @property
    def has_delta(self) -> bool:
        return any(
            getattr(self, name) is not None
            for name in (
                "previous_title",
                "status",
                "labels_added",
                "labels_removed",
                "assignees_added",
                "assignees_removed",
                "closed",
                "merged",
            )
        )

    @property
    def next_status(self) -> str | None:
        return self.status.next if self.status is not None else None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"title": self.title, "url": self.url}
        if self.previous_title is not None:
            out["previous_title"] = self.previous_title
        if self.status is not None:
            out["status"] = self.status.to_dict()
        for name in ("labels_added", "labels_removed", "assignees_added", "assignees_removed"):
            value = getattr(self, name)
            if value is not None:
                out[name] = list(value)
        if self.closed is not None:
            out["closed"] = self.closed.to_dict()
        if self.merged is not None:
            out["merged"] = self.merged.to_dict()
        return out


@dataclass(frozen=True)
class Diff:
    added: list[TrackedItem] = field(default_factory=list)
    removed: list[TrackedItem] = field(default_factory=list)
    changed: list[ChangeRecord] = field(default_factory=list)
    closed: list[TrackedItem] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed or self.closed)

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "added": [item.to_dict() for item in self.added],
            "removed": [item.to_dict() for item in self.removed],
            "changed": [record.to_dict() for record in self.changed],
            "closed": [item.to_dict() for item in self.closed],
        }


_METADATA_KEYS = ("version", "lastUpdate", "runId", "previousUpdate")


@dataclass(frozen=True)
class Metadata:
    """Envelope metadata.

    A stored envelope without a ``version`` is read as the current version.
    Keys this release does not know about are kept in ``extra`` and written
    back unchanged.
    """

    version: str = SNAPSHOT_VERSION
    last_update: str | None = None
    run_id: str | None = None
    previous_update: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Any) -> Metadata:
        if not isinstance(payload, Mapping):
            return cls()
        return cls(
            version=str(payload.get("version") or SNAPSHOT_VERSION),
            last_update=_coerce_text(payload.get("lastUpdate")),
            run_id=_coerce_text(payload.get("runId")),
            previous_update=_coerce_text(payload.get("previousUpdate")),
            extra={str(k): v for k, v in payload.items() if k not in _METADATA_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "version": self.version,
            "lastUpdate": self.last_update,
            "runId": self.run_id,
            "previousUpdate": self.previous_update,
        }
        for key, value in self.extra.items():
            out.setdefault(key, value)
        return out


@dataclass(frozen=True)
class Envelope:
    metadata: Metadata
    items: Snapshot

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "items": {item_id: item.to_dict() for item_id, item in self.items.items()},
        }


def snapshot_from_dict(raw: Mapping[str, Any]) -> Snapshot:
    """Build a snapshot from an id-keyed mapping, keeping insertion order.

    Entries that are not JSON objects cannot describe an item and are skipped.
    """
    items: Snapshot = {}
    for item_id, payload in raw.items():
        if isinstance(payload, Mapping):
            items[str(item_id)] = TrackedItem.from_dict(str(item_id), payload)
    return items


def snapshot_to_dict(items: Mapping[str, TrackedItem]) -> dict[str, dict[str, Any]]:
    return {item_id: item.to_dict() for item_id, item in items.items()}


__all__ = [
    "SNAPSHOT_VERSION",
    "TrackedItem",
    "Snapshot",
    "Transition",
    "ChangeRecord",
    "Diff",
    "Metadata",
    "Envelope",
    "snapshot_from_dict",
    "snapshot_to_dict",
]

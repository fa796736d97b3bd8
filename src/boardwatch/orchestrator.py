"""Run pipeline: load -> fetch -> diff -> save -> render -> publish.

Each stage either completes or stops the run with a stage-specific
:class:`~boardwatch.errors.RunError`. A missing snapshot is the first-run
signal: the live items become the new baseline and no diff is computed.
Nothing is rendered or published for a run that failed before rendering.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from . import snapshot_store
from .diffing import diff as compute_diff
from .errors import ItemFetchError, PublishError, SnapshotLoadError, SnapshotSaveError
from .logging import get_logger
from .models import Diff, Envelope, Snapshot
from .outputs import write_action_outputs, write_step_summary
from .storage import StoredSnapshot
from .summary import RenderedSummary, SummaryRenderer


class SnapshotStorage(Protocol):
    def read(self) -> StoredSnapshot | None: ...

    def write(self, envelope: Envelope, sha: str | None) -> Any: ...


class ItemSource(Protocol):
    def fetch(self) -> Snapshot: ...


Publisher = Callable[[str], Any]


@dataclass
class RunResult:
    run_id: str
    first_run: bool
    items: Snapshot
    envelope: Envelope
    diff: Diff | None
    summary: RenderedSummary
    saved: bool = False
    published: bool = False

    def totals(self) -> dict[str, int]:
        if self.diff is None:
            return {"items": len(self.items)}
        return {
            "items": len(self.items),
            "added": len(self.diff.added),
            "removed": len(self.diff.removed),
            "changed": len(self.diff.changed),
            "closed": len(self.diff.closed),
        }


def _load_previous(storage: SnapshotStorage) -> tuple[snapshot_store.LoadedSnapshot | None, str | None]:
    try:
        stored = storage.read()
    except Exception as exc:
        raise SnapshotLoadError("Failed to load old items from storage", cause=exc) from exc
    if stored is None:
        return None, None
    return snapshot_store.load(stored.raw), stored.sha


def run_once(
    storage: SnapshotStorage,
    source: ItemSource,
    *,
    renderer: SummaryRenderer | None = None,
    now: datetime | None = None,
    dry_run: bool = False,
    publisher: Publisher | None = None,
    outputs_path: str | Path | None = None,
    summary_path: str | Path | None = None,
) -> RunResult:
    log = get_logger()
    renderer = renderer or SummaryRenderer()
    moment = now or datetime.now(timezone.utc)

    with log.timed_operation("load"):
        previous, sha = _load_previous(storage)
    first_run = previous is None
    if previous is not None:
        log.debug_payload("old metadata", previous.metadata.to_dict())
        if previous.migrated:
            log.info("Loaded legacy snapshot; it will be saved in the enveloped format")

    try:
        with log.timed_operation("fetch"):
            items = source.fetch()
    except Exception as exc:
        raise ItemFetchError("Failed to fetch new items from project", cause=exc) from exc

    changes = None if previous is None else compute_diff(previous.items, items)
    envelope = snapshot_store.save(items, previous.metadata if previous else None, moment)
    run_id = envelope.metadata.run_id or snapshot_store.deterministic_run_id(moment)

    saved = False
    if dry_run:
        log.info("Dry run: snapshot not saved", run_id=run_id)
    else:
        try:
            with log.timed_operation("save", run_id=run_id):
                storage.write(envelope, sha)
        except Exception as exc:
            raise SnapshotSaveError(
                "Diff computed but failed to save items; the baseline was not updated",
                cause=exc,
            ) from exc
        saved = True

    if changes is None:
        summary = renderer.output_first_run(items)
        log.log_operation("first_run", run_id=run_id, items=len(items))
    else:
        summary = renderer.output_diff(changes, envelope.metadata)
        log.log_diff_totals(
            run_id,
            added=len(changes.added),
            removed=len(changes.removed),
            changed=len(changes.changed),
            closed=len(changes.closed),
        )
        write_action_outputs(changes, summary.markdown, outputs_path)
    write_step_summary(summary.markdown, summary_path)

    result = RunResult(
        run_id=run_id,
        first_run=first_run,
        items=items,
        envelope=envelope,
        diff=changes,
        summary=summary,
        saved=saved,
    )

    if first_run or summary.is_empty() or publisher is None or dry_run:
        return result
    try:
        reply = publisher(summary.markdown)
    except Exception as exc:
        raise PublishError("Failed to publish the board summary", cause=exc) from exc
    # a publisher returns None when it skipped delivery (e.g. no Slack token)
    result.published = reply is not None
    return result


__all__ = ["SnapshotStorage", "ItemSource", "Publisher", "RunResult", "run_once"]

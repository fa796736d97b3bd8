"""boardwatch - track a project board between runs and report what changed.

High-level public API:

from boardwatch import diff, load, save, SummaryRenderer

previous = load(stored_json)            # legacy or enveloped snapshot
changes = diff(previous.items, current_items)
envelope = save(current_items, previous.metadata, now)
report = SummaryRenderer().output_diff(changes, envelope.metadata)

The CLI (``boardwatch run`` / ``boardwatch diff``) wires these to GitHub,
the Actions output files and Slack.
"""

from __future__ import annotations

from .config import BoardConfig, ConfigError, StatusBuckets, load_config
from .diffing import diff
from .models import ChangeRecord, Diff, Envelope, Metadata, Snapshot, TrackedItem, Transition
from .orchestrator import RunResult, run_once
from .snapshot_store import LoadedSnapshot, load, save
from .summary import RenderedSummary, SummaryRenderer, output_diff, output_first_run

# Keep in sync with pyproject.toml
__version__ = "0.3.0"

__all__ = [
    "BoardConfig",
    "ConfigError",
    "StatusBuckets",
    "load_config",
    "diff",
    "ChangeRecord",
    "Diff",
    "Envelope",
    "Metadata",
    "Snapshot",
    "TrackedItem",
    "Transition",
    "RunResult",
    "run_once",
    "LoadedSnapshot",
    "load",
    "save",
    "RenderedSummary",
    "SummaryRenderer",
    "output_diff",
    "output_first_run",
    "__version__",
]

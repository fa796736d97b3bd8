"""Render a board diff as a prioritized Markdown report.

The report is built once as Markdown; :func:`clean_message` then derives the
chat-flavoured variant (``<url|text>`` links, ``*heading*`` emphasis) from the
finished text.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from .config import StatusBucket, StatusBuckets
from .models import ChangeRecord, Diff, Metadata, TrackedItem
from .timing import time_context

MOVEMENT_THRESHOLD = 3
COMPLETION_THRESHOLD = 2
CLAUSE_SEPARATOR = " • "
PRIORITY_TOKENS = ("priority", "urgent")

STATUS_EMOJI: Mapping[StatusBucket, str] = {
    StatusBucket.DONE: "🎉",
    StatusBucket.STARTED: "🚀",
    StatusBucket.BLOCKED: "🚧",
    StatusBucket.REVIEW: "👀",
    StatusBucket.BACKLOG: "📋",
    StatusBucket.OTHER: "🔄",
}

STATUS_PHRASES: Mapping[StatusBucket, str] = {
    StatusBucket.DONE: "Completed",
    StatusBucket.STARTED: "Work started",
    StatusBucket.BLOCKED: "Blocked",
    StatusBucket.REVIEW: "Ready for review",
    StatusBucket.BACKLOG: "Moved to backlog",
}

SECTION_WORK_STARTED = "🚀 **Work Started**"
SECTION_COMPLETED = "✅ **Completed**"
SECTION_ADDED = "➕ **Added to Board**"
SECTION_OTHER = "🔄 **Other Updates**"
SECTION_REMOVED = "❌ **Removed from Board**"

FIRST_RUN_HEADING = "\n## :information_source: First Run Detected"
FIRST_RUN_BODY = "\n\nImporting {count} issues from the project but will not generate output for this run."

_LINK_PATTERN = re.compile(r"\[(.*?)\]\((.*?)\)")
_HEADING_PATTERN = re.compile(r"^## (.*)$", re.MULTILINE)


@dataclass(frozen=True)
class RenderedSummary:
    markdown: str
    cleaned: str

    @classmethod
    def from_markdown(cls, markdown: str) -> RenderedSummary:
        return cls(markdown=markdown, cleaned=clean_message(markdown))

    def is_empty(self) -> bool:
        return not self.markdown


EMPTY_SUMMARY = RenderedSummary(markdown="", cleaned="")


def clean_message(text: str) -> str:
    out = _LINK_PATTERN.sub(r"<\2|\1>", text)
    return _HEADING_PATTERN.sub(r"*\1*", out)


def _names(values: Iterable[str]) -> str:
    return ", ".join(values)


def _is_priority(label: str) -> bool:
    folded = label.casefold()
    return any(token in folded for token in PRIORITY_TOKENS)


def _link(title: str | None, url: str | None) -> str:
    text = title or "(untitled)"
    return f"[{text}]({url})" if url else text


def _status_clause(status: str | None, statuses: StatusBuckets) -> str:
    bucket = statuses.classify(status)
    emoji = STATUS_EMOJI[bucket]
    phrase = STATUS_PHRASES.get(bucket)
    if phrase is None:
        phrase = f"Moved to {status}" if status else "Status cleared"
    return f"{emoji} {phrase}"


def _label_clauses(record: ChangeRecord) -> list[str]:
    clauses: list[str] = []
    if record.labels_added:
        priority = [label for label in record.labels_added if _is_priority(label)]
        regular = [label for label in record.labels_added if not _is_priority(label)]
        if priority:
            clauses.append(f"🔥 Priority: {_names(priority)}")
        if regular:
            clauses.append(f"🏷️ Tagged: {_names(regular)}")
    if record.labels_removed:
        clauses.append(f"🗑️ Untagged: {_names(record.labels_removed)}")
    return clauses


def build_contextual_message(record: ChangeRecord, statuses: StatusBuckets) -> str:
    clauses: list[str] = []
    if record.previous_title is not None:
        clauses.append(f'✏️ Renamed from "{record.previous_title}"')
    if record.status is not None:
        clauses.append(_status_clause(record.status.next, statuses))
    clauses.extend(_label_clauses(record))
    if record.assignees_added:
        clauses.append(f"👨‍💻 {_names(record.assignees_added)} picked this up")
    if record.assignees_removed:
        clauses.append(f"👋 {_names(record.assignees_removed)} unassigned from this")
    if record.closed is not None:
        if record.closed.next is True:
            clauses.append("🔒 Closed")
        elif record.closed.prev is True:
            clauses.append("🔓 Reopened")
    if record.merged is not None:
        if record.merged.next is True:
            clauses.append("🟣 Merged")
        elif record.merged.prev is True:
            clauses.append("↩️ Merge reverted")
    return CLAUSE_SEPARATOR.join(clauses)


class SummaryRenderer:
    def __init__(self, statuses: StatusBuckets | None = None) -> None:
        self.statuses = statuses or StatusBuckets()

    # ---- entry points -------------------------------------------------
    def output_first_run(self, items: Mapping[str, TrackedItem]) -> RenderedSummary:
        markdown = FIRST_RUN_HEADING + FIRST_RUN_BODY.format(count=len(items))
        return RenderedSummary.from_markdown(markdown)

    def output_diff(self, diff: Diff, metadata: Metadata | None = None) -> RenderedSummary:
        if diff.is_empty():
            return EMPTY_SUMMARY

        started = [r for r in diff.changed if self.statuses.is_started(r.next_status)]
        done = [r for r in diff.changed if self.statuses.is_done(r.next_status)]
        grouped = {id(r) for r in started} | {id(r) for r in done}
        other = [r for r in diff.changed if id(r) not in grouped]

        parts: list[str] = []
        parts.extend(self._cadence_lines(diff, len(done), metadata))
        self._section(parts, SECTION_WORK_STARTED, [self._change_line(r) for r in started])
        completed_lines = [self._plain_line(item.title, item.url) for item in diff.closed]
        completed_lines.extend(self._plain_line(r.title, r.url) for r in done)
        self._section(parts, SECTION_COMPLETED, completed_lines)
        self._section(
            parts, SECTION_ADDED, [self._plain_line(item.title, item.url) for item in diff.added]
        )
        self._section(parts, SECTION_OTHER, [self._change_line(r) for r in other])
        self._section(
            parts,
            SECTION_REMOVED,
            [self._plain_line(item.title, item.url) for item in diff.removed],
        )
        return RenderedSummary.from_markdown("".join(parts))

    # ---- pieces -------------------------------------------------------
    def _cadence_lines(
        self, diff: Diff, done_changed: int, metadata: Metadata | None
    ) -> list[str]:
        lines: list[str] = []
        ago = time_context(metadata)
        suffix = f" ({ago})" if ago else ""
        movement = len(diff.added) + len(diff.changed) + len(diff.closed)
        if movement >= MOVEMENT_THRESHOLD:
            lines.append(f"📈 **{movement} items moved forward since last update{suffix}**\n\n")
        completed = len(diff.closed) + done_changed
        if completed >= COMPLETION_THRESHOLD:
            lines.append(f"🎯 **{completed} items completed since last update{suffix}**\n\n")
        return lines

    @staticmethod
    def _section(parts: list[str], heading: str, lines: Sequence[str]) -> None:
        if not lines:
            return
        parts.append(f"{heading}\n")
        parts.extend(lines)
        parts.append("\n")

    @staticmethod
    def _plain_line(title: str | None, url: str | None) -> str:
        return f"- {_link(title, url)}\n"

    def _change_line(self, record: ChangeRecord) -> str:
        context = build_contextual_message(record, self.statuses)
        if not context:
            return self._plain_line(record.title, record.url)
        return f"- {_link(record.title, record.url)} - {context}\n"


def output_first_run(
    items: Mapping[str, TrackedItem], statuses: StatusBuckets | None = None
) -> RenderedSummary:
    return SummaryRenderer(statuses).output_first_run(items)


def output_diff(
    diff: Diff, metadata: Metadata | None = None, statuses: StatusBuckets | None = None
) -> RenderedSummary:
    return SummaryRenderer(statuses).output_diff(diff, metadata)


__all__ = [
    "RenderedSummary",
    "EMPTY_SUMMARY",
    "SummaryRenderer",
    "STATUS_EMOJI",
    "STATUS_PHRASES",
    "build_contextual_message",
    "clean_message",
    "output_first_run",
    "output_diff",
]

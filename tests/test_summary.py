from __future__ import annotations

from typing import Any

from boardwatch.config import StatusBuckets
from boardwatch.diffing import diff as compute_diff
from boardwatch.models import ChangeRecord, Diff, Metadata, TrackedItem, Transition
from boardwatch.summary import (
    EMPTY_SUMMARY,
    SummaryRenderer,
    build_contextual_message,
    clean_message,
    output_diff,
    output_first_run,
)


def _item(item_id: str, **fields: Any) -> TrackedItem:
    payload: dict[str, Any] = {"title": f"Item {item_id}", "url": f"https://x/{item_id}"}
    payload.update(fields)
    return TrackedItem.from_dict(item_id, payload)


def _record(item_id: str, **fields: Any) -> ChangeRecord:
    return ChangeRecord(title=f"Item {item_id}", url=f"https://x/{item_id}", **fields)


def _snapshot(*items: TrackedItem) -> dict[str, TrackedItem]:
    return {item.id: item for item in items}


def test_empty_diff_renders_nothing() -> None:
    summary = output_diff(Diff())
    assert summary is EMPTY_SUMMARY
    assert summary.is_empty()


def test_work_started_section() -> None:
    diff = Diff(changed=[_record("1", status=Transition("Todo", "In Progress"))])

    summary = output_diff(diff)

    assert summary.markdown == (
        "🚀 **Work Started**\n- [Item 1](https://x/1) - 🚀 Work started\n\n"
    )


def test_completed_section_merges_closed_and_done_status() -> None:
    diff = Diff(
        closed=[_item("1", closed=True)],
        changed=[_record("2", status=Transition("In Review", "Done"))],
    )

    summary = output_diff(diff)

    assert summary.markdown == (
        "🎯 **2 items completed since last update**\n\n"
        "✅ **Completed**\n- [Item 1](https://x/1)\n- [Item 2](https://x/2)\n\n"
    )


def test_movement_line_needs_three_items() -> None:
    two = output_diff(Diff(added=[_item("1"), _item("2")]))
    three = output_diff(Diff(added=[_item("1"), _item("2"), _item("3")]))

    assert "📈" not in two.markdown
    assert three.markdown.startswith("📈 **3 items moved forward since last update**\n\n")


def test_fifty_new_items_with_time_context() -> None:
    metadata = Metadata(
        last_update="2024-03-05T12:30:00.000Z",
        previous_update="2024-03-05T10:00:00.000Z",
    )
    diff = Diff(added=[_item(str(n)) for n in range(50)])

    summary = output_diff(diff, metadata)

    assert summary.markdown.startswith(
        "📈 **50 items moved forward since last update (2.5 hours ago)**\n\n"
        "➕ **Added to Board**\n"
    )
    assert summary.markdown.count("\n- [Item ") == 50
    assert "🎯" not in summary.markdown


def test_time_context_in_minutes() -> None:
    metadata = Metadata(
        last_update="2024-03-05T10:15:00.000Z",
        previous_update="2024-03-05T10:00:00.000Z",
    )
    diff = Diff(closed=[_item("1", closed=True), _item("2", closed=True)])

    summary = output_diff(diff, metadata)

    assert summary.markdown.startswith(
        "🎯 **2 items completed since last update (15 minutes ago)**\n\n"
    )


def test_section_order() -> None:
    diff = Diff(
        added=[_item("a")],
        removed=[_item("r")],
        closed=[_item("c", closed=True)],
        changed=[
            _record("s", status=Transition("Todo", "Active")),
            _record("o", labels_added=("docs",)),
        ],
    )

    markdown = output_diff(diff).markdown
    headings = [
        "🚀 **Work Started**",
        "✅ **Completed**",
        "➕ **Added to Board**",
        "🔄 **Other Updates**",
        "❌ **Removed from Board**",
    ]

    positions = [markdown.index(heading) for heading in headings]
    assert positions == sorted(positions)


def test_other_updates_contextual_line() -> None:
    diff = Diff(
        changed=[
            _record(
                "1",
                status=Transition("Todo", "Blocked"),
                labels_added=("priority-high", "docs"),
                labels_removed=("triage",),
                assignees_added=("alice",),
            )
        ]
    )

    markdown = output_diff(diff).markdown

    assert markdown == (
        "🔄 **Other Updates**\n"
        "- [Item 1](https://x/1) - 🚧 Blocked • 🔥 Priority: priority-high • "
        "🏷️ Tagged: docs • 🗑️ Untagged: triage • 👨‍💻 alice picked this up\n\n"
    )


def test_change_without_delta_renders_plain_line() -> None:
    markdown = output_diff(Diff(changed=[_record("1")])).markdown
    assert markdown == "🔄 **Other Updates**\n- [Item 1](https://x/1)\n\n"


def test_contextual_message_clauses() -> None:
    statuses = StatusBuckets()
    record = _record(
        "1",
        previous_title="Old",
        status=Transition("Todo", "QA"),
        assignees_removed=("bob",),
        closed=Transition(True, False),
        merged=Transition(False, True),
    )

    message = build_contextual_message(record, statuses)

    assert message == (
        '✏️ Renamed from "Old" • 🔄 Moved to QA • 👋 bob unassigned from this'
        " • 🔓 Reopened • 🟣 Merged"
    )


def test_status_cleared_and_review_phrases() -> None:
    statuses = StatusBuckets()
    cleared = build_contextual_message(_record("1", status=Transition("Todo", None)), statuses)
    review = build_contextual_message(
        _record("1", status=Transition("Todo", "in review")), statuses
    )

    assert cleared == "🔄 Status cleared"
    assert review == "👀 Ready for review"


def test_custom_status_names() -> None:
    statuses = StatusBuckets.from_names(started=["Doing"], done=["Shipped"])
    diff = Diff(
        changed=[
            _record("1", status=Transition("Todo", "Doing")),
            _record("2", status=Transition("Doing", "Shipped")),
        ]
    )

    markdown = SummaryRenderer(statuses).output_diff(diff).markdown

    assert "🚀 **Work Started**\n- [Item 1](https://x/1) - 🚀 Work started\n" in markdown
    assert "✅ **Completed**\n- [Item 2](https://x/2)\n" in markdown


def test_untitled_item_without_url() -> None:
    item = TrackedItem(id="1")
    assert output_diff(Diff(removed=[item])).markdown == (
        "❌ **Removed from Board**\n- (untitled)\n\n"
    )


def test_first_run_message() -> None:
    items = {str(n): _item(str(n)) for n in range(3)}

    summary = output_first_run(items)

    assert summary.markdown == (
        "\n## :information_source: First Run Detected"
        "\n\nImporting 3 issues from the project but will not generate output for this run."
    )
    assert summary.cleaned.startswith("\n*:information_source: First Run Detected*")


def test_clean_message_rewrites_links_and_headings() -> None:
    text = "## Heading\n- [Fix login](https://x/1) and [Other](https://x/2)"

    assert clean_message(text) == "*Heading*\n- <https://x/1|Fix login> and <https://x/2|Other>"


def test_rendered_summary_carries_cleaned_variant() -> None:
    summary = output_diff(Diff(added=[_item("1")]))
    assert summary.cleaned == "➕ **Added to Board**\n- <https://x/1|Item 1>\n\n"


def test_blank_legacy_flags_do_not_read_as_reopened() -> None:
    stored = _item("1", closed="", merged="", status="Todo")
    live = _item("1", closed=False, merged=False, status="Todo")

    markdown = output_diff(compute_diff(_snapshot(stored), _snapshot(live))).markdown

    assert "Reopened" not in markdown
    assert "Merge reverted" not in markdown
    assert markdown == "🔄 **Other Updates**\n- [Item 1](https://x/1)\n\n"


def test_fifty_items_moving_to_in_progress() -> None:
    diff = Diff(
        changed=[_record(str(n), status=Transition("Todo", "In Progress")) for n in range(50)]
    )

    markdown = output_diff(diff).markdown

    assert markdown.startswith(
        "📈 **50 items moved forward since last update**\n\n🚀 **Work Started**\n"
    )
    assert markdown.count(" - 🚀 Work started\n") == 50
    assert "🔄 **Other Updates**" not in markdown
    assert "🎯" not in markdown

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .config import ConfigError
from .github_rest import GitHubRestClient
from .models import Snapshot, TrackedItem

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
MAX_PAGES = 100
FILTERABLE_FIELDS = frozenset(
    {"type", "title", "status", "labels", "assignees", "url", "closed", "merged"}
)

_ITEMS_QUERY = """
query($owner: String!, $number: Int!, $cursor: String, $statusField: String!) {{
  {root}(login: $owner) {{
    projectV2(number: $number) {{
      items(first: {page_size}, after: $cursor) {{
        pageInfo {{ hasNextPage endCursor }}
        nodes {{
          type
          status: fieldValueByName(name: $statusField) {{
            ... on ProjectV2ItemFieldSingleSelectValue {{ name }}
            ... on ProjectV2ItemFieldTextValue {{ text }}
          }}
          content {{
            ... on DraftIssue {{
              id
              title
              assignees(first: 20) {{ nodes {{ login }} }}
            }}
            ... on Issue {{
              id
              title
              url
              closed
              labels(first: 50) {{ nodes {{ name }} }}
              assignees(first: 20) {{ nodes {{ login }} }}
            }}
            ... on PullRequest {{
              id
              title
              url
              closed
              merged
              labels(first: 50) {{ nodes {{ name }} }}
              assignees(first: 20) {{ nodes {{ login }} }}
            }}
          }}
        }}
      }}
    }}
  }}
}}
"""


@dataclass(frozen=True)
class FilterRule:
    field: str
    value: str
    exclude: bool = False

    @classmethod
    def parse(cls, raw: str) -> FilterRule:
        text = raw.strip()
        exclude = text.startswith("-")
        if exclude:
            text = text[1:]
        field_name, sep, value = text.partition(":")
        field_name = field_name.strip().lower()
        if not sep or not field_name or not value.strip():
            raise ConfigError(f"Invalid filter '{raw}'; expected field:value or -field:value")
        if field_name not in FILTERABLE_FIELDS:
            raise ConfigError(
                f"Unknown filter field '{field_name}' (expected one of {sorted(FILTERABLE_FIELDS)})"
            )
        return cls(field=field_name, value=value.strip(), exclude=exclude)

    def hits(self, item: TrackedItem) -> bool:
        actual = getattr(item, self.field)
        wanted = self.value.casefold()
        if actual is None:
            return False
        if isinstance(actual, bool):
            return str(actual).casefold() == wanted
        if isinstance(actual, tuple):
            return any(entry.casefold() == wanted for entry in actual)
        return str(actual).casefold() == wanted


def parse_filters(raw: str | Iterable[str] | None) -> list[FilterRule]:
    if not raw:
        return []
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    return [FilterRule.parse(part) for part in parts if part and part.strip()]


def matches_filters(item: TrackedItem, rules: Iterable[FilterRule]) -> bool:
    """Exclusions always win; includes on one field are OR-ed, fields are AND-ed."""
    includes: dict[str, list[FilterRule]] = defaultdict(list)
    for rule in rules:
        if rule.exclude:
            if rule.hits(item):
                return False
        else:
            includes[rule.field].append(rule)
    return all(any(rule.hits(item) for rule in group) for group in includes.values())


def _node_names(payload: Any, key: str) -> tuple[str, ...] | None:
    if not isinstance(payload, Mapping):
        return None
    nodes = payload.get("nodes")
    if not isinstance(nodes, list):
        return None
    return tuple(
        str(node[key]) for node in nodes if isinstance(node, Mapping) and node.get(key) is not None
    )


def _status_value(payload: Any) -> str | None:
    if not isinstance(payload, Mapping):
        return None
    value = payload.get("name", payload.get("text"))
    return str(value) if value is not None else None


def item_from_node(node: Mapping[str, Any]) -> TrackedItem | None:
    """Normalize one ``ProjectV2Item`` node; ``None`` when it has no content id."""
    content = node.get("content")
    if not isinstance(content, Mapping) or not content.get("id"):
        return None
    closed = content.get("closed")
    merged = content.get("merged")
    return TrackedItem(
        id=str(content["id"]),
        type=str(node["type"]) if node.get("type") is not None else None,
        title=str(content["title"]) if content.get("title") is not None else None,
        status=_status_value(node.get("status")),
        labels=_node_names(content.get("labels"), "name"),
        url=str(content["url"]) if content.get("url") is not None else None,
        closed=closed if isinstance(closed, bool) else None,
        merged=merged if isinstance(merged, bool) else None,
        assignees=_node_names(content.get("assignees"), "login"),
    )


class ProjectItemFetcher:
    """Lists every item on a Projects (v2) board as a snapshot."""

    def __init__(
        self,
        client: GitHubRestClient,
        *,
        owner: str,
        project_number: int,
        owner_type: str = "organization",
        status_field: str = "Status",
        filters: Iterable[FilterRule] = (),
    ) -> None:
        if owner_type not in {"organization", "user"}:
            raise ConfigError("owner_type must be either 'organization' or 'user'")
        self.client = client
        self.owner = owner
        self.project_number = project_number
        self.owner_type = owner_type
        self.status_field = status_field
        self.filters = list(filters)

    def _query(self) -> str:
        return _ITEMS_QUERY.format(root=self.owner_type, page_size=PAGE_SIZE)

    def _page(self, cursor: str | None) -> Mapping[str, Any]:
        data = self.client.graphql(
            self._query(),
            {
                "owner": self.owner,
                "number": self.project_number,
                "cursor": cursor,
                "statusField": self.status_field,
            },
        )
        owner_payload = data.get(self.owner_type)
        if not isinstance(owner_payload, Mapping):
            raise LookupError(f"Project owner '{self.owner}' not found")
        project = owner_payload.get("projectV2")
        if not isinstance(project, Mapping):
            raise LookupError(
                f"Project {self.owner}/{self.project_number} not accessible with provided token"
            )
        items = project.get("items")
        return items if isinstance(items, Mapping) else {}

    def iter_nodes(self) -> Iterable[Mapping[str, Any]]:
        cursor: str | None = None
        for _ in range(MAX_PAGES):
            page = self._page(cursor)
            nodes = page.get("nodes")
            if isinstance(nodes, list):
                yield from (node for node in nodes if isinstance(node, Mapping))
            info = page.get("pageInfo")
            if not isinstance(info, Mapping) or not info.get("hasNextPage"):
                return
            cursor = info.get("endCursor")
        logger.warning("Stopped paging project items after %d pages", MAX_PAGES)

    def fetch(self) -> Snapshot:
        items: Snapshot = {}
        skipped = 0
        filtered = 0
        for node in self.iter_nodes():
            item = item_from_node(node)
            if item is None:
                skipped += 1
                continue
            if self.filters and not matches_filters(item, self.filters):
                filtered += 1
                continue
            if item.id in items:
                logger.debug("duplicate project item %s ignored", item.id)
                continue
            items[item.id] = item
        logger.info(
            "Fetched %d project items (%d without content id, %d filtered out)",
            len(items),
            skipped,
            filtered,
        )
        return items


__all__ = [
    "FilterRule",
    "parse_filters",
    "matches_filters",
    "item_from_node",
    "ProjectItemFetcher",
]

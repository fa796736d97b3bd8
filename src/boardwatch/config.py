from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, cast

import yaml

CONFIG_DEFAULT = "boardwatch.config.yaml"

DEFAULT_DONE_STATUSES = ("Done", "Completed")
DEFAULT_STARTED_STATUSES = ("In Progress", "Active")
DEFAULT_BLOCKED_STATUSES = ("Blocked",)
DEFAULT_REVIEW_STATUSES = ("In Review", "Review")
DEFAULT_BACKLOG_STATUSES = ("Backlog", "Todo")


class ConfigError(RuntimeError):
    pass


class StatusBucket(str, Enum):
    DONE = "done"
    STARTED = "started"
    BLOCKED = "blocked"
    REVIEW = "review"
    BACKLOG = "backlog"
    OTHER = "other"


def _fold(names: Iterable[str]) -> frozenset[str]:
    return frozenset(name.strip().casefold() for name in names if name and name.strip())


@dataclass(frozen=True)
class StatusBuckets:
    """Maps workflow status labels onto the closed set of status buckets."""

    done: frozenset[str] = _fold(DEFAULT_DONE_STATUSES)
    started: frozenset[str] = _fold(DEFAULT_STARTED_STATUSES)
    blocked: frozenset[str] = _fold(DEFAULT_BLOCKED_STATUSES)
    review: frozenset[str] = _fold(DEFAULT_REVIEW_STATUSES)
    backlog: frozenset[str] = _fold(DEFAULT_BACKLOG_STATUSES)

    @classmethod
    def from_names(
        cls,
        *,
        done: Iterable[str] = DEFAULT_DONE_STATUSES,
        started: Iterable[str] = DEFAULT_STARTED_STATUSES,
        blocked: Iterable[str] = DEFAULT_BLOCKED_STATUSES,
        review: Iterable[str] = DEFAULT_REVIEW_STATUSES,
        backlog: Iterable[str] = DEFAULT_BACKLOG_STATUSES,
    ) -> StatusBuckets:
        return cls(
            done=_fold(done),
            started=_fold(started),
            blocked=_fold(blocked),
            review=_fold(review),
            backlog=_fold(backlog),
        )

    def classify(self, status: str | None) -> StatusBucket:
        if not status:
            return StatusBucket.OTHER
        key = status.strip().casefold()
        # done wins over started when a name is configured in both
        if key in self.done:
            return StatusBucket.DONE
        if key in self.started:
            return StatusBucket.STARTED
        if key in self.blocked:
            return StatusBucket.BLOCKED
        if key in self.review:
            return StatusBucket.REVIEW
        if key in self.backlog:
            return StatusBucket.BACKLOG
        return StatusBucket.OTHER

    def is_done(self, status: str | None) -> bool:
        return self.classify(status) is StatusBucket.DONE

    def is_started(self, status: str | None) -> bool:
        return self.classify(status) is StatusBucket.STARTED


@dataclass
class BoardConfig:
    organization: str | None = None
    project_number: int | None = None
    owner_type: str = "organization"
    status_field: str = "Status"
    filters: list[str] = field(default_factory=list)
    storage_repository: str | None = None
    storage_path: str = "boardwatch/snapshot.json"
    storage_branch: str | None = None
    committer_name: str = "boardwatch"
    committer_email: str = "boardwatch@users.noreply.github.com"
    slack_enabled: bool = True
    slack_channel: str | None = None
    statuses: StatusBuckets = field(default_factory=StatusBuckets)
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    retry_attempts: int = 3
    retry_base_sleep: float = 0.5
    github_api_url: str = "https://api.github.com"
    source_file: Path | None = None

    def storage_owner_repo(self) -> tuple[str, str]:
        repo = self.storage_repository or ""
        owner, sep, name = repo.partition("/")
        if not sep or not owner or not name:
            raise ConfigError(f"storage.repository must look like owner/repo (got {repo!r})")
        return owner, name

    def validate_for_run(self) -> None:
        problems: list[str] = []
        if not self.organization:
            problems.append("project.organization is required")
        if self.project_number is None:
            problems.append("project.number is required")
        if not self.storage_repository:
            problems.append("storage.repository is required")
        if not self.storage_path:
            problems.append("storage.path is required")
        if problems:
            raise ConfigError("; ".join(problems))
        self.storage_owner_repo()


def _resolve_env_var(value: Any) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        return os.getenv(value[1:], value)
    return value


def _name_list(raw: Any, default: Iterable[str], section: str) -> list[str]:
    if raw is None:
        return list(default)
    if isinstance(raw, str):
        return [raw]
    if isinstance(raw, list) and all(isinstance(v, str) for v in raw):
        return list(raw)
    raise ConfigError(f"{section} must be a string or a list of strings")


def _filters(raw: Any) -> list[str]:
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        return [part.strip() for part in raw.split(",") if part.strip()]
    if isinstance(raw, list):
        return [str(part).strip() for part in raw if str(part).strip()]
    raise ConfigError("project.filters must be a comma separated string or a list")


def _optional_int(raw: Any, name: str) -> int | None:
    raw = _resolve_env_var(raw)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer (got {raw!r})") from exc


def default_config() -> BoardConfig:
    return BoardConfig()


def config_from_mapping(raw: dict[str, Any], source_file: Path | None = None) -> BoardConfig:
    project = cast(dict[str, Any], raw.get('project', {}) or {})
    storage = cast(dict[str, Any], raw.get('storage', {}) or {})
    slack = cast(dict[str, Any], raw.get('slack', {}) or {})
    statuses = cast(dict[str, Any], raw.get('statuses', {}) or {})
    logging_config = cast(dict[str, Any], raw.get('logging', {}) or {})
    retry_config = cast(dict[str, Any], raw.get('retry', {}) or {})
    github = cast(dict[str, Any], raw.get('github', {}) or {})

    owner_type = str(project.get('owner_type', 'organization')).lower()
    if owner_type not in {"organization", "user"}:
        raise ConfigError("project.owner_type must be either 'organization' or 'user'")

    try:
        retry_attempts = int(retry_config.get('attempts', 3))
        retry_base_sleep = float(retry_config.get('base_sleep', 0.5))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid retry configuration: {exc}") from exc

    return BoardConfig(
        organization=_resolve_env_var(project.get('organization')),
        project_number=_optional_int(project.get('number'), 'project.number'),
        owner_type=owner_type,
        status_field=str(project.get('status_field', 'Status')),
        filters=_filters(_resolve_env_var(project.get('filters'))),
        storage_repository=_resolve_env_var(storage.get('repository')),
        storage_path=str(_resolve_env_var(storage.get('path', 'boardwatch/snapshot.json'))),
        storage_branch=_resolve_env_var(storage.get('branch')) or None,
        committer_name=str(storage.get('committer_name', 'boardwatch')),
        committer_email=str(
            storage.get('committer_email', 'boardwatch@users.noreply.github.com')
        ),
        slack_enabled=bool(slack.get('enabled', True)),
        slack_channel=_resolve_env_var(slack.get('channel')),
        statuses=StatusBuckets.from_names(
            done=_name_list(statuses.get('done'), DEFAULT_DONE_STATUSES, 'statuses.done'),
            started=_name_list(
                statuses.get('started'), DEFAULT_STARTED_STATUSES, 'statuses.started'
            ),
            blocked=_name_list(
                statuses.get('blocked'), DEFAULT_BLOCKED_STATUSES, 'statuses.blocked'
            ),
            review=_name_list(statuses.get('review'), DEFAULT_REVIEW_STATUSES, 'statuses.review'),
            backlog=_name_list(
                statuses.get('backlog'), DEFAULT_BACKLOG_STATUSES, 'statuses.backlog'
            ),
        ),
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        logging_level=str(logging_config.get('level', 'INFO')),
        retry_attempts=retry_attempts,
        retry_base_sleep=retry_base_sleep,
        github_api_url=str(github.get('api_url', 'https://api.github.com')),
        source_file=source_file,
    )


def load_config(path: str | Path) -> BoardConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(raw, dict):
        raise ConfigError(f'Configuration root must be a mapping: {p}')
    return config_from_mapping(raw, source_file=p)


__all__ = [
    "CONFIG_DEFAULT",
    "ConfigError",
    "StatusBucket",
    "StatusBuckets",
    "BoardConfig",
    "default_config",
    "config_from_mapping",
    "load_config",
]

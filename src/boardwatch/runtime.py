"""Runtime helpers for boardwatch CLI orchestration."""

from __future__ import annotations

import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from .config import BoardConfig, ConfigError, default_config, load_config
from .env_auth import Credentials
from .errors import RunError, classify_error
from .github_rest import GitHubRestClient
from .logging import configure_logging, get_logger
from .project_items import ProjectItemFetcher, parse_filters
from .retry import RetryConfig
from .slack import SlackNotifier
from .storage import Committer, SnapshotRepository

EXIT_OK = 0
EXIT_RUN_FAILURE = 1
EXIT_CONFIG_ERROR = 2


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def prepare_config(
    args: Any, *, loader: Callable[[str], BoardConfig] = load_config
) -> BoardConfig:
    """Load the config for ``args`` and apply command line overrides.

    ``diff`` tolerates a missing config file (defaults apply); ``run`` does not.
    """
    if not hasattr(args, "config"):
        raise AttributeError("Command namespace is missing 'config' attribute")
    if getattr(args, "cmd", None) == "diff" and not Path(args.config).exists():
        cfg = default_config()
    else:
        cfg = loader(args.config)
    if getattr(args, "json_logs", False):
        cfg.logging_json_enabled = True
    log_level = getattr(args, "log_level", None)
    if log_level:
        cfg.logging_level = log_level
    if getattr(args, "no_slack", False):
        cfg.slack_enabled = False
    # diff prints its result on stdout; keep log lines off it
    stream = sys.stderr if getattr(args, "cmd", None) == "diff" else None
    configure_logging(json_logging=cfg.logging_json_enabled, level=cfg.logging_level, stream=stream)
    return cfg


def graphql_url_for(api_url: str) -> str:
    """GraphQL endpoint for a REST base URL (GitHub Enterprise serves it beside `/v3`)."""
    base = api_url.rstrip("/")
    if base.endswith("/v3"):
        return base[: -len("/v3")] + "/graphql"
    return base + "/graphql"


def build_repository(cfg: BoardConfig, credentials: Credentials) -> SnapshotRepository:
    if not credentials.storage_token:
        raise ConfigError(
            "No storage token found; set BOARDWATCH_STORAGE_TOKEN or GITHUB_TOKEN"
        )
    client = GitHubRestClient(
        token=credentials.storage_token,
        base_url=cfg.github_api_url,
        retry=RetryConfig(attempts=cfg.retry_attempts, base_sleep=cfg.retry_base_sleep),
    )
    return SnapshotRepository(
        client,
        repository=cfg.storage_repository or "",
        path=cfg.storage_path,
        branch=cfg.storage_branch,
        committer=Committer(cfg.committer_name, cfg.committer_email),
    )


def build_fetcher(cfg: BoardConfig, credentials: Credentials) -> ProjectItemFetcher:
    if not credentials.project_token:
        raise ConfigError(
            "No project token found; set BOARDWATCH_PROJECT_TOKEN or GITHUB_TOKEN"
        )
    client = GitHubRestClient(
        token=credentials.project_token,
        base_url=cfg.github_api_url,
        graphql_url=graphql_url_for(cfg.github_api_url),
        retry=RetryConfig(attempts=cfg.retry_attempts, base_sleep=cfg.retry_base_sleep),
    )
    return ProjectItemFetcher(
        client,
        owner=cfg.organization or "",
        project_number=cfg.project_number or 0,
        owner_type=cfg.owner_type,
        status_field=cfg.status_field,
        filters=parse_filters(cfg.filters),
    )


def build_notifier(cfg: BoardConfig, credentials: Credentials) -> SlackNotifier | None:
    if not cfg.slack_enabled:
        return None
    return SlackNotifier(credentials.slack_token, cfg.slack_channel)


def execute_command(handler: _HandlerCallable, command: str) -> int:
    """Run a command handler, mapping failures onto exit codes."""
    log = get_logger()
    start = time.monotonic()
    try:
        result = handler()
        exit_code = int(result) if result is not None else EXIT_OK
    except ConfigError as exc:
        log.log_error("configuration error", error=classify_error(exc).message, command=command)
        print(f"[config] {classify_error(exc).message}", file=sys.stderr)
        exit_code = EXIT_CONFIG_ERROR
    except RunError as exc:
        info = classify_error(exc)
        log.log_error(
            f"{command} failed during {exc.stage}: {exc.describe()}",
            error=info.category,
            command=command,
        )
        print(exc.describe(), file=sys.stderr)
        exit_code = EXIT_RUN_FAILURE
    duration = max(0.0, time.monotonic() - start)
    log.log_performance(command, duration * 1000, exit_code=exit_code)
    return exit_code


__all__ = [
    "EXIT_OK",
    "EXIT_RUN_FAILURE",
    "EXIT_CONFIG_ERROR",
    "prepare_config",
    "graphql_url_for",
    "build_repository",
    "build_fetcher",
    "build_notifier",
    "execute_command",
]

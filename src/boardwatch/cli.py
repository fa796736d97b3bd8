"""boardwatch CLI.

Subcommands:
  run   -> load the stored snapshot, fetch the board, diff, save and publish
  diff  -> offline diff of two snapshot files (JSON, Markdown or Slack text)

Exit codes: 0 success, 1 run failure, 2 configuration error.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from .config import CONFIG_DEFAULT, BoardConfig, ConfigError
from .diffing import diff as compute_diff
from .env_auth import load_credentials
from .errors import SnapshotLoadError
from .models import Metadata
from .orchestrator import run_once
from .runtime import (
    EXIT_CONFIG_ERROR,
    build_fetcher,
    build_notifier,
    build_repository,
    execute_command,
    prepare_config,
)
from .snapshot_store import LoadedSnapshot, load
from .summary import SummaryRenderer

_MAX_HELP_WIDTH = 100
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="boardwatch", description="Track a project board and report what changed"
    )
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    pr = sub.add_parser("run", help="Snapshot the board, diff against the last run and publish")
    pr.add_argument("--config", default=CONFIG_DEFAULT)
    pr.add_argument(
        "--dry-run", action="store_true", help="Do not save the snapshot or post to Slack"
    )
    pr.add_argument("--no-slack", action="store_true", help="Skip the Slack notification")
    pr.add_argument("--output-file", help="Action outputs file (default: $GITHUB_OUTPUT)")
    pr.add_argument(
        "--summary-file", help="Markdown summary file (default: $GITHUB_STEP_SUMMARY)"
    )
    pr.add_argument("--dotenv", help="Read credentials from this .env file")
    pr.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    pr.add_argument("--log-level", choices=LOG_LEVELS)

    pd = sub.add_parser("diff", help="Diff two snapshot files without touching GitHub")
    pd.add_argument("previous", help="Older snapshot JSON (legacy or enveloped)")
    pd.add_argument("current", help="Newer snapshot JSON (legacy or enveloped)")
    pd.add_argument("--config", default=CONFIG_DEFAULT, help="Status names come from here")
    fmt = pd.add_mutually_exclusive_group()
    fmt.add_argument("--markdown", action="store_true", help="Print the Markdown report")
    fmt.add_argument("--slack", action="store_true", help="Print the Slack-formatted report")
    pd.add_argument("--previous-update", help="ISO timestamp of the previous run")
    pd.add_argument("--last-update", help="ISO timestamp of the current run")
    pd.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    pd.add_argument("--log-level", choices=LOG_LEVELS, default="WARNING")
    return p


def _cmd_run(cfg: BoardConfig, args: argparse.Namespace) -> int:
    cfg.validate_for_run()
    credentials = load_credentials(args.dotenv)
    repository = build_repository(cfg, credentials)
    fetcher = build_fetcher(cfg, credentials)
    notifier = build_notifier(cfg, credentials)
    result = run_once(
        repository,
        fetcher,
        renderer=SummaryRenderer(cfg.statuses),
        dry_run=args.dry_run,
        publisher=notifier.send if notifier is not None else None,
        outputs_path=args.output_file,
        summary_path=args.summary_file,
    )
    print("[run] totals", json.dumps(result.totals()))
    return 0


def _read_snapshot(path: str) -> LoadedSnapshot:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise SnapshotLoadError(f"Failed to read snapshot {path}", cause=exc) from exc
    return load(raw)


def _cmd_diff(cfg: BoardConfig, args: argparse.Namespace) -> int:
    previous = _read_snapshot(args.previous)
    current = _read_snapshot(args.current)
    changes = compute_diff(previous.items, current.items)
    if not (args.markdown or args.slack):
        print(json.dumps(changes.to_dict(), indent=2, ensure_ascii=False))
        return 0
    metadata = Metadata(
        last_update=args.last_update or current.metadata.last_update,
        previous_update=args.previous_update
        or current.metadata.previous_update
        or previous.metadata.last_update,
    )
    summary = SummaryRenderer(cfg.statuses).output_diff(changes, metadata)
    print(summary.cleaned if args.slack else summary.markdown, end="")
    return 0


def _build_handlers(args: argparse.Namespace, cfg: BoardConfig) -> dict[str, Any]:
    return {
        "run": lambda: _cmd_run(cfg, args),
        "diff": lambda: _cmd_diff(cfg, args),
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        cfg = prepare_config(args)
    except ConfigError as exc:
        print(f"[config] {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    handlers = _build_handlers(args, cfg)
    handler = handlers.get(args.cmd)
    if handler is None:  # pragma: no cover - argparse enforces valid choices
        parser.print_help()
        return 1
    return execute_command(handler, args.cmd)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

"""Machine-readable diff outputs and the Markdown step summary.

Outputs follow the GitHub Actions file protocol: each value is appended to the
file named by ``GITHUB_OUTPUT`` as a ``name<<DELIMITER`` block, and the report
is appended to ``GITHUB_STEP_SUMMARY``. Without a target file the values are
only logged at debug level.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .logging import get_logger
from .models import Diff

OUTPUT_ENV = "GITHUB_OUTPUT"
STEP_SUMMARY_ENV = "GITHUB_STEP_SUMMARY"
DELIMITER = "BOARDWATCH_EOF"


def diff_to_payload(diff: Diff) -> dict[str, list[dict[str, Any]]]:
    return diff.to_dict()


def build_outputs(diff: Diff, summary: str) -> dict[str, str]:
    payload = diff_to_payload(diff)
    outputs = {name: json.dumps(values, ensure_ascii=False) for name, values in payload.items()}
    outputs["updates"] = summary
    return outputs


def _delimiter_for(value: str) -> str:
    delimiter = DELIMITER
    suffix = 0
    while delimiter in value:
        suffix += 1
        delimiter = f"{DELIMITER}_{suffix}"
    return delimiter


def format_output_block(name: str, value: str) -> str:
    delimiter = _delimiter_for(value)
    return f"{name}<<{delimiter}\n{value}\n{delimiter}\n"


def _resolve_target(path: str | Path | None, env_name: str) -> Path | None:
    if path:
        return Path(path)
    from_env = os.environ.get(env_name)
    return Path(from_env) if from_env else None


def write_outputs(values: Mapping[str, str], path: str | Path | None = None) -> Path | None:
    target = _resolve_target(path, OUTPUT_ENV)
    if target is None:
        get_logger().debug_payload("would set outputs", dict(values))
        return None
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("a", encoding="utf-8") as fh:
        for name, value in values.items():
            fh.write(format_output_block(name, value))
    return target


def write_action_outputs(diff: Diff, summary: str, path: str | Path | None = None) -> Path | None:
    return write_outputs(build_outputs(diff, summary), path)


def write_step_summary(markdown: str, path: str | Path | None = None) -> Path | None:
    if not markdown:
        return None
    target = _resolve_target(path, STEP_SUMMARY_ENV)
    if target is None:
        get_logger().debug_payload("would write summary", markdown)
        return None
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("a", encoding="utf-8") as fh:
        fh.write(markdown if markdown.endswith("\n") else markdown + "\n")
    return target


__all__ = [
    "OUTPUT_ENV",
    "STEP_SUMMARY_ENV",
    "diff_to_payload",
    "build_outputs",
    "format_output_block",
    "write_outputs",
    "write_action_outputs",
    "write_step_summary",
]

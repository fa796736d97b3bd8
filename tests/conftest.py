"""Pytest configuration for boardwatch tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`).
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    # keep CI-provided variables from leaking into output and credential tests
    for name in (
        "GITHUB_OUTPUT",
        "GITHUB_STEP_SUMMARY",
        "GITHUB_TOKEN",
        "GH_TOKEN",
        "BOARDWATCH_PROJECT_TOKEN",
        "BOARDWATCH_STORAGE_TOKEN",
        "SLACK_TOKEN",
        "BOARDWATCH_RETRY_ATTEMPTS",
        "BOARDWATCH_RETRY_BASE",
        "BOARDWATCH_RETRY_MAX_SLEEP",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _fresh_logger() -> None:
    # the process-wide logger binds sys.stdout when built; rebuild it per test
    from boardwatch.logging import configure_logging

    configure_logging()

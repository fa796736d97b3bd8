"""Error taxonomy & redaction.

Three groups live here:

- transport errors raised by the network collaborators (``GitHubAPIError``,
  ``SlackError``);
- run failures (``RunError`` and its per-stage subclasses) that stop a run and
  tell the caller which stage failed;
- ``classify_error`` / ``redact`` for safe logging and reporting.

The diff and migration code never raises these: both are total over their
inputs.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

HTTP_NOT_FOUND = 404
TRANSIENT_STATUSES = frozenset({429, 502, 503, 504})

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"gh[sou]_[A-Za-z0-9]{20,40}"),  # GitHub app / oauth tokens
    re.compile(r"xox[abpr]-[A-Za-z0-9-]{10,}"),  # Slack tokens
]

_REDACTION_PLACEHOLDER = "<redacted>"
_TRANSIENT_TOKENS = ("rate limit", "secondary rate", "abuse detection")


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub REST/GraphQL API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text

    @property
    def not_found(self) -> bool:
        return self.status == HTTP_NOT_FOUND

    @property
    def transient(self) -> bool:
        if self.status in TRANSIENT_STATUSES:
            return True
        text = f"{self} {self.response_text or ''}".lower()
        return any(token in text for token in _TRANSIENT_TOKENS)


class SlackError(RuntimeError):
    """Raised when Slack rejects or fails to deliver a message."""


class RunError(RuntimeError):
    """A fatal failure that stopped a run at ``stage``."""

    stage = "run"

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause

    def describe(self) -> str:
        detail = f": {redact(str(self.cause))}" if self.cause else ""
        return f"[{self.stage}] {redact(str(self))}{detail}"


class SnapshotLoadError(RunError):
    stage = "load"


class ItemFetchError(RunError):
    stage = "fetch"


class SnapshotSaveError(RunError):
    stage = "save"


class PublishError(RunError):
    stage = "publish"


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace token-looking substrings with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    - Run failures -> ``run.<stage>``
    - GitHub API errors -> ``github.not_found`` / ``github.rate_limit`` /
      ``github.unavailable`` / ``github.http``
    - Slack delivery errors -> ``slack``
    - Network-y keywords -> ``network`` (transient)
    - JSON decode problems -> ``parse``
    - Fallback -> ``generic``
    """
    msg = redact(str(exc) if exc else "")
    low = msg.lower()
    name = exc.__class__.__name__

    if isinstance(exc, RunError):
        details = {"cause": classify_error(exc.cause).category} if exc.cause else None
        return ErrorInfo(f"run.{exc.stage}", msg, name, details=details)
    if isinstance(exc, GitHubAPIError):
        details = {"status": exc.status}
        if exc.not_found:
            return ErrorInfo("github.not_found", msg, name, details=details)
        if "rate limit" in low or exc.status == 429:
            return ErrorInfo("github.rate_limit", msg, name, transient=True, details=details)
        if exc.transient:
            return ErrorInfo("github.unavailable", msg, name, transient=True, details=details)
        return ErrorInfo("github.http", msg, name, details=details)
    if isinstance(exc, SlackError):
        return ErrorInfo("slack", msg, name)
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", msg, name, transient=True)
    if isinstance(exc, json.JSONDecodeError):
        return ErrorInfo("parse", msg, name)
    return ErrorInfo("generic", msg, name)


__all__ = [
    "ErrorInfo",
    "GitHubAPIError",
    "SlackError",
    "RunError",
    "SnapshotLoadError",
    "ItemFetchError",
    "SnapshotSaveError",
    "PublishError",
    "classify_error",
    "redact",
]

"""Centralized retry / backoff helpers for the GitHub collaborators.

``run_with_retries`` retries a thunk when it raises a transient
``GitHubAPIError`` (rate limits, 429 and 50x gateway failures) using
exponential backoff with jitter. Every other error propagates immediately.
The diff and rendering code never retries.

Environment overrides:
  BOARDWATCH_RETRY_ATTEMPTS (default 3)
  BOARDWATCH_RETRY_BASE (seconds base, default 0.5)
  BOARDWATCH_RETRY_MAX_SLEEP (cap in seconds, unset by default)
"""

from __future__ import annotations

import logging
import os
import random
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from .errors import GitHubAPIError

T = TypeVar("T")

logger = logging.getLogger(__name__)

_RE_RETRY_AFTER = re.compile(r"retry[-\s]after:?\s*(\d+)", re.IGNORECASE)
_RE_SECONDS_HINT = re.compile(r"wait\s*(\d+)\s*seconds", re.IGNORECASE)
_JITTER = random.SystemRandom()


def _extract_explicit_backoff(text: str) -> float | None:
    """Extract an explicit backoff (seconds) from error output.

    Supports patterns like:
      Retry-After: 12
      retry after 12
      wait 30 seconds
    Returns None if no valid positive value found.
    """
    if not text:
        return None
    for pattern in (_RE_RETRY_AFTER, _RE_SECONDS_HINT):
        m = pattern.search(text)
        if m:
            val = float(m.group(1))
            return val if val > 0 else None
    return None


def _env_float(name: str, default: str) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return float(default)


@dataclass
class RetryConfig:
    attempts: int = field(
        default_factory=lambda: int(_env_float("BOARDWATCH_RETRY_ATTEMPTS", "3"))
    )
    base_sleep: float = field(default_factory=lambda: _env_float("BOARDWATCH_RETRY_BASE", "0.5"))


def _compute_sleep(attempt: int, cfg: RetryConfig, out: str) -> float:
    explicit = _extract_explicit_backoff(out)
    backoff = cfg.base_sleep * (2 ** (attempt - 1)) + _JITTER.uniform(0, 0.25)
    sleep_for: float = explicit if explicit is not None else backoff
    max_cap_env = os.environ.get("BOARDWATCH_RETRY_MAX_SLEEP")
    if max_cap_env:
        try:
            cap = float(max_cap_env)
        except ValueError:
            return sleep_for
        if cap >= 0:
            sleep_for = min(sleep_for, cap)
    return sleep_for


def _should_retry(exc: GitHubAPIError, attempt: int, attempts: int, cfg: RetryConfig) -> bool:
    if attempt >= attempts or not exc.transient:
        return False
    sleep_for = _compute_sleep(attempt, cfg, exc.response_text or str(exc))
    logger.warning(
        "transient GitHub error (status %s), attempt %d/%d, sleeping %.2fs",
        exc.status,
        attempt,
        attempts,
        sleep_for,
    )
    time.sleep(sleep_for)
    return True


def run_with_retries(fn: Callable[[], T], *, cfg: RetryConfig | None = None) -> T:
    cfg = cfg or RetryConfig()
    attempts = max(1, cfg.attempts)
    for attempt in range(1, attempts + 1):  # noqa: PLR2004
        try:
            return fn()
        except GitHubAPIError as exc:
            if not _should_retry(exc, attempt, attempts, cfg):
                raise
    raise RuntimeError("retry logic exited unexpectedly")  # pragma: no cover


__all__ = ["RetryConfig", "run_with_retries"]

from __future__ import annotations

import pytest

from boardwatch import retry
from boardwatch.errors import GitHubAPIError
from boardwatch.retry import RetryConfig, run_with_retries


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []
    monkeypatch.setattr(retry.time, "sleep", recorded.append)
    return recorded


def test_transient_errors_are_retried(sleeps: list[float]) -> None:
    calls = {"n": 0}

    def flaky() -> str:
        calls["n"] += 1
        if calls["n"] < 3:
            raise GitHubAPIError("busy", status=503)
        return "ok"

    assert run_with_retries(flaky, cfg=RetryConfig(attempts=3, base_sleep=0)) == "ok"
    assert calls["n"] == 3
    assert len(sleeps) == 2


def test_permanent_errors_propagate_immediately(sleeps: list[float]) -> None:
    calls = {"n": 0}

    def broken() -> None:
        calls["n"] += 1
        raise GitHubAPIError("unprocessable", status=422)

    with pytest.raises(GitHubAPIError):
        run_with_retries(broken, cfg=RetryConfig(attempts=5, base_sleep=0))
    assert calls["n"] == 1
    assert sleeps == []


def test_other_exceptions_are_not_retried(sleeps: list[float]) -> None:
    def broken() -> None:
        raise ValueError("nope")

    with pytest.raises(ValueError):
        run_with_retries(broken, cfg=RetryConfig(attempts=3, base_sleep=0))
    assert sleeps == []


def test_gives_up_after_attempts(sleeps: list[float]) -> None:
    def always_busy() -> None:
        raise GitHubAPIError("busy", status=502)

    with pytest.raises(GitHubAPIError):
        run_with_retries(always_busy, cfg=RetryConfig(attempts=2, base_sleep=0))
    assert len(sleeps) == 1


def test_retry_after_hint_is_honoured(sleeps: list[float]) -> None:
    calls = {"n": 0}

    def limited() -> str:
        calls["n"] += 1
        if calls["n"] == 1:
            raise GitHubAPIError("limited", status=429, response_text="Retry-After: 7\n{}")
        return "ok"

    run_with_retries(limited, cfg=RetryConfig(attempts=2, base_sleep=0))
    assert sleeps == [7.0]


def test_max_sleep_cap(sleeps: list[float], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BOARDWATCH_RETRY_MAX_SLEEP", "1")
    calls = {"n": 0}

    def limited() -> str:
        calls["n"] += 1
        if calls["n"] == 1:
            raise GitHubAPIError("limited", status=429, response_text="Retry-After: 60")
        return "ok"

    run_with_retries(limited, cfg=RetryConfig(attempts=2, base_sleep=0))
    assert sleeps == [1.0]


def test_env_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BOARDWATCH_RETRY_ATTEMPTS", "6")
    monkeypatch.setenv("BOARDWATCH_RETRY_BASE", "0.25")

    cfg = RetryConfig()

    assert cfg.attempts == 6
    assert cfg.base_sleep == pytest.approx(0.25)

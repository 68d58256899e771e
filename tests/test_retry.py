from __future__ import annotations

import pytest

from repomirror import retry
from repomirror.errors import MaxRetriesExceededError
from repomirror.models import RateLimitConfig

CFG = RateLimitConfig(max_retries=5, initial_backoff=1.0, max_backoff=120.0, backoff_multiplier=2.0)


class Transient(Exception):
    pass


class Fatal(Exception):
    pass


def _classify(exc: BaseException, attempt: int) -> float | None:
    return 0.5 * (attempt + 1) if isinstance(exc, Transient) else None


def test_backoff_never_exceeds_cap_plus_jitter():
    for attempt in range(15):
        for draw in (0.0, 0.25, 0.5, 0.75, 1.0):
            value = retry.calculate_backoff(attempt, CFG, rng=lambda d=draw: d)
            assert 0.0 <= value <= CFG.max_backoff * 1.1 + 1e-9


def test_backoff_grows_then_plateaus_without_jitter():
    mid = [retry.calculate_backoff(a, CFG, rng=lambda: 0.5) for a in range(10)]
    assert mid[:4] == [1.0, 2.0, 4.0, 8.0]
    assert mid == sorted(mid)
    assert mid[-1] == CFG.max_backoff


def test_backoff_jitter_is_ten_percent():
    assert retry.calculate_backoff(3, CFG, rng=lambda: 0.0) == pytest.approx(8.0 * 0.9)
    assert retry.calculate_backoff(3, CFG, rng=lambda: 1.0) == pytest.approx(8.0 * 1.1)


def test_network_backoff_schedule():
    assert [retry.network_backoff(a) for a in range(7)] == [1, 2, 4, 8, 16, 30, 30]


def test_is_network_error_tokens():
    assert retry.is_network_error("fatal: unable to access: Could not resolve host: github.com")
    assert retry.is_network_error("Connection reset by peer")
    assert retry.is_network_error("net/http: TLS handshake timeout")
    assert not retry.is_network_error("fatal: Not possible to fast-forward, aborting.")
    assert not retry.is_network_error("")


def test_is_network_error_ignores_echoed_names():
    not_found = "fatal: repository 'https://github.com/acme/socket-timeout-utils/' not found"
    assert not retry.is_network_error(not_found)
    assert not retry.is_network_error(
        "fatal: could not read from /srv/timeout-tools: permission denied", ignore=("/srv/timeout-tools",)
    )
    assert retry.is_network_error("fatal: unable to access 'https://github.com/acme/x/': Connection timed out")


def test_policy_transient_then_success():
    calls: list[int] = []
    sleeps: list[float] = []
    retried: list[int] = []

    def fn() -> str:
        calls.append(1)
        if len(calls) < 3:
            raise Transient("flaky")
        return "ok"

    policy = retry.RetryPolicy(
        max_attempts=4,
        classify=_classify,
        sleep=sleeps.append,
        on_retry=lambda attempt, exc, delay: retried.append(attempt),
    )
    assert policy.run(fn) == "ok"
    assert len(calls) == 3
    assert sleeps == [0.5, 1.0]
    assert retried == [0, 1]


def test_policy_non_retryable_propagates_immediately():
    calls: list[int] = []
    sleeps: list[float] = []

    def fn() -> None:
        calls.append(1)
        raise Fatal("nope")

    policy = retry.RetryPolicy(max_attempts=5, classify=_classify, sleep=sleeps.append)
    with pytest.raises(Fatal):
        policy.run(fn)
    assert len(calls) == 1
    assert sleeps == []


def test_policy_exhaustion_wraps_last_error():
    calls: list[int] = []
    sleeps: list[float] = []

    def fn() -> None:
        calls.append(1)
        raise Transient(f"attempt {len(calls)}")

    policy = retry.RetryPolicy(max_attempts=3, classify=_classify, sleep=sleeps.append)
    with pytest.raises(MaxRetriesExceededError) as excinfo:
        policy.run(fn)
    assert len(calls) == 3
    # no sleep after the final attempt
    assert len(sleeps) == 2
    assert excinfo.value.attempts == 3
    assert str(excinfo.value.last_error) == "attempt 3"
    assert excinfo.value.__cause__ is excinfo.value.last_error
    assert "max retries exceeded" in str(excinfo.value)


def test_policy_single_attempt_minimum():
    policy = retry.RetryPolicy(max_attempts=0, classify=_classify, sleep=lambda s: None)
    assert policy.run(lambda: 42) == 42

"""Centralized retry / backoff helpers.

``RetryPolicy`` is the single retry loop used by both the listing phase and
the per-repository git operations. Each caller parameterizes it with:

- a *classifier* ``(exc, attempt) -> delay | None`` deciding whether an
  error is retryable and how long to wait before the next attempt;
- a *sleeper* so waits can be cancelled (listing) or faked (tests).

Schedules:
  calculate_backoff  min(initial * multiplier**attempt, max_backoff) +/- 10% jitter
  network_backoff    1s, 2s, 4s, ... capped at 30s

Only raw git output is classified by substring (``is_network_error``); API
errors arrive already typed from ``github_rest``.
"""

from __future__ import annotations

import random
import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from .errors import MaxRetriesExceededError
from .models import RateLimitConfig

T = TypeVar("T")

Classifier = Callable[[BaseException, int], "float | None"]
RetryHook = Callable[[int, BaseException, float], None]

NETWORK_INDICATORS = (
    "connection refused",
    "connection reset",
    "connection timed out",
    "timeout",
    "timed out",
    "temporary failure",
    "network is unreachable",
    "could not resolve host",
    "no such host",
    "i/o timeout",
    "tls handshake timeout",
    "early eof",
    "the remote end hung up unexpectedly",
)

NETWORK_BACKOFF_CAP = 30.0
JITTER_RATIO = 0.1

_JITTER = random.SystemRandom()


def calculate_backoff(
    attempt: int, cfg: RateLimitConfig, rng: Callable[[], float] | None = None
) -> float:
    """Exponential backoff for attempt ``attempt`` (0-based) with +/-10% jitter.

    Never exceeds ``cfg.max_backoff * 1.1``.
    """
    backoff = cfg.initial_backoff * (cfg.backoff_multiplier ** attempt)
    backoff = min(backoff, cfg.max_backoff)
    draw = (rng or _JITTER.random)()
    jitter = backoff * JITTER_RATIO * (draw * 2 - 1)
    return max(0.0, backoff + jitter)


def network_backoff(attempt: int) -> float:
    return min(float(2 ** attempt), NETWORK_BACKOFF_CAP)


_QUOTED = re.compile(r"'[^'\n]*'")


def is_network_error(output: str, ignore: Sequence[str] = ()) -> bool:
    """True when git's own wording in ``output`` names a network failure.

    Quoted spans (git quotes the URLs and paths it echoes) and every string in
    ``ignore`` are removed first, so a repository called ``socket-timeout-utils``
    is not mistaken for a timeout.
    """
    out_lower = _QUOTED.sub(" ", (output or "").lower())
    for echoed in ignore:
        if echoed:
            out_lower = out_lower.replace(echoed.lower(), " ")
    return any(tok in out_lower for tok in NETWORK_INDICATORS)


@dataclass
class RetryPolicy:
    """Run a callable until it succeeds, a non-retryable error occurs, or
    ``max_attempts`` calls have failed.

    Exhaustion raises ``MaxRetriesExceededError`` chained to the last error.
    Non-retryable errors propagate unchanged.
    """

    max_attempts: int
    classify: Classifier
    sleep: Callable[[float], None] = time.sleep
    on_retry: RetryHook | None = None

    def run(self, fn: Callable[[], T]) -> T:
        attempts = max(1, self.max_attempts)
        last_error: BaseException | None = None
        for attempt in range(attempts):
            try:
                return fn()
            except Exception as exc:
                delay = self.classify(exc, attempt)
                if delay is None:
                    raise
                last_error = exc
                if attempt + 1 >= attempts:
                    break
                if self.on_retry is not None:
                    self.on_retry(attempt, exc, delay)
                self.sleep(delay)
        assert last_error is not None
        raise MaxRetriesExceededError(last_error, attempts) from last_error


__all__ = [
    "RetryPolicy",
    "calculate_backoff",
    "network_backoff",
    "is_network_error",
    "NETWORK_INDICATORS",
]

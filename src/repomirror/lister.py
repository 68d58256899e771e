"""Remote Lister: every repository of an organization or user.

Tries the organization endpoint first and falls back to the user endpoint
when the name is not an organization. Each page fetch runs under its own
``RetryPolicy``:

- primary rate limit   -> wait until reset + 1s
- secondary rate limit -> wait Retry-After seconds
- transient API error  -> exponential backoff with jitter
- anything else        -> raise immediately

All waits go through ``threading.Event.wait`` so a caller can cancel a
listing that is parked on a long rate-limit reset.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Protocol

from .errors import (
    ListingError,
    MirrorCancelledError,
    NotFoundError,
    RateLimitError,
    SecondaryRateLimitError,
    TransientAPIError,
)
from .github_rest import RepoPage, seconds_until
from .logging import StructuredLogger, get_logger
from .models import RateLimitConfig, RemoteRepo
from .retry import RetryPolicy, calculate_backoff

RATE_LIMIT_BUFFER = 1.0


class RepoListingClient(Protocol):
    def list_org_repos(self, org: str, *, page: int = 1) -> RepoPage: ...

    def list_user_repos(self, user: str, *, page: int = 1) -> RepoPage: ...


PageFetcher = Callable[..., RepoPage]


class RemoteLister:
    def __init__(
        self,
        client: RepoListingClient,
        rate_limit: RateLimitConfig | None = None,
        *,
        logger: StructuredLogger | None = None,
        cancel_event: threading.Event | None = None,
        rng: Callable[[], float] | None = None,
    ) -> None:
        self.client = client
        self.rate_limit = rate_limit or RateLimitConfig()
        self.logger = logger or get_logger()
        self.cancel_event = cancel_event or threading.Event()
        self._rng = rng

    def fetch_repos(self, name: str) -> tuple[list[RemoteRepo], bool]:
        """Return ``(repos, is_user)``."""
        try:
            return self._fetch_all(self.client.list_org_repos, name), False
        except NotFoundError:
            self.logger.info("not found as organization, trying as user", org=name)
        try:
            return self._fetch_all(self.client.list_user_repos, name), True
        except MirrorCancelledError:
            raise
        except Exception as exc:
            raise ListingError(f"failed to fetch repos (tried org and user): {exc}") from exc

    def _fetch_all(self, fetch: PageFetcher, name: str) -> list[RemoteRepo]:
        policy = RetryPolicy(
            max_attempts=self.rate_limit.max_retries + 1,
            classify=self._classify,
            sleep=self._sleep,
            on_retry=self._log_retry,
        )
        repos: list[RemoteRepo] = []
        page: int | None = 1
        while page is not None:
            if self.cancel_event.is_set():
                raise MirrorCancelledError("listing cancelled")
            current = page
            result = policy.run(lambda: fetch(name, page=current))
            repos.extend(result.items)
            self.logger.debug("fetched page", org=name, page=current, count=len(result.items))
            page = result.next_page
        return repos

    def _classify(self, exc: BaseException, attempt: int) -> float | None:
        if isinstance(exc, RateLimitError):
            return seconds_until(exc.reset_at) + RATE_LIMIT_BUFFER
        if isinstance(exc, SecondaryRateLimitError):
            return exc.retry_after
        if isinstance(exc, TransientAPIError):
            return calculate_backoff(attempt, self.rate_limit, self._rng)
        return None

    def _log_retry(self, attempt: int, exc: BaseException, delay: float) -> None:
        if isinstance(exc, RateLimitError):
            self.logger.warning(
                "rate limited by GitHub API",
                attempt=attempt + 1,
                wait_seconds=round(delay, 2),
                reset_at=exc.reset_at.isoformat(),
            )
        elif isinstance(exc, SecondaryRateLimitError):
            self.logger.warning(
                "abuse rate limit hit", attempt=attempt + 1, retry_after=round(delay, 2)
            )
        else:
            self.logger.warning(
                "transient error, retrying",
                attempt=attempt + 1,
                backoff=round(delay, 2),
                error=str(exc),
            )

    def _sleep(self, seconds: float) -> None:
        if self.cancel_event.wait(seconds):
            raise MirrorCancelledError("listing cancelled while waiting to retry")


__all__ = ["RemoteLister", "RepoListingClient", "RATE_LIMIT_BUFFER"]

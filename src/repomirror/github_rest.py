from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import parse_qs, urlparse

import requests
from requests.utils import parse_header_links

from .errors import (
    AuthenticationError,
    GitHubAPIError,
    NotFoundError,
    RateLimitError,
    SecondaryRateLimitError,
    TransientAPIError,
)
from .models import RemoteRepo

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "repomirror-rest/0.3.0"
API_VERSION = "2022-11-28"
HTTP_ERROR_STATUS = 400
PER_PAGE = 100
DEFAULT_SECONDARY_WAIT = 60.0
TRANSIENT_STATUSES = frozenset({502, 503, 504})
_SECONDARY_MARKERS = ("secondary rate limit", "abuse detection")


@dataclass
class RepoPage:
    items: list[RemoteRepo]
    next_page: int | None = None


def _next_page(link_header: str | None) -> int | None:
    if not link_header:
        return None
    for link in parse_header_links(link_header):
        if link.get("rel") != "next":
            continue
        values = parse_qs(urlparse(link.get("url", "")).query).get("page")
        if values and values[0].isdigit():
            return int(values[0])
    return None


def _error_for_response(method: str, url: str, response: Any) -> GitHubAPIError:
    """Turn an HTTP error response into a typed exception.

    Rate limits are recognised from GitHub's headers first and only fall
    back to the documented message text when no header is present.
    """
    status = int(response.status_code)
    headers = response.headers or {}
    text = response.text or ""
    message = f"GitHub API {method} {url} failed with {status}"
    kw: dict[str, Any] = {"status": status, "response_text": text}

    if status in (403, 429):
        if headers.get("X-RateLimit-Remaining") == "0" and headers.get("X-RateLimit-Reset"):
            reset_at = datetime.fromtimestamp(int(headers["X-RateLimit-Reset"]), tz=timezone.utc)
            return RateLimitError(message, reset_at=reset_at, **kw)
        retry_after = headers.get("Retry-After")
        if retry_after and str(retry_after).isdigit():
            return SecondaryRateLimitError(message, retry_after=float(retry_after), **kw)
        if status == 429 or any(m in text.lower() for m in _SECONDARY_MARKERS):
            return SecondaryRateLimitError(message, retry_after=DEFAULT_SECONDARY_WAIT, **kw)
        return AuthenticationError(message, **kw)
    if status == 401:
        return AuthenticationError(message, **kw)
    if status == 404:
        return NotFoundError(message, **kw)
    if status in TRANSIENT_STATUSES:
        return TransientAPIError(message, **kw)
    return GitHubAPIError(message, **kw)


@dataclass
class GitHubRestClient:
    """Minimal REST client for the repository listing endpoints.

    One call fetches one page; retries and pagination loops live in
    ``lister.RemoteLister``.
    """

    token: str
    base_url: str = DEFAULT_API_URL
    timeout: float = 30.0
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("X-GitHub-Api-Version", API_VERSION)
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    def _request(
        self, method: str, path: str, *, params: dict[str, Any] | None = None
    ) -> tuple[Any, Any]:
        url = f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                headers=self._session.headers,
                timeout=self.timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as exc:
            raise TransientAPIError(f"GitHub API {method} {url} failed: {exc}") from exc
        if response.status_code >= HTTP_ERROR_STATUS:
            raise _error_for_response(method, url, response)
        data = response.json() if response.text else None
        return data, response

    def _list_page(self, path: str, params: dict[str, Any]) -> RepoPage:
        data, response = self._request("GET", path, params=params)
        items: list[RemoteRepo] = []
        if isinstance(data, list):
            for entry in data:
                if isinstance(entry, dict):
                    items.append(RemoteRepo.from_api(entry))
        headers = response.headers or {}
        return RepoPage(items=items, next_page=_next_page(headers.get("Link")))

    def list_org_repos(self, org: str, *, page: int = 1) -> RepoPage:
        return self._list_page(
            f"/orgs/{org}/repos", {"per_page": PER_PAGE, "page": page, "type": "all"}
        )

    def list_user_repos(self, user: str, *, page: int = 1) -> RepoPage:
        # owner only: skips repositories the user merely collaborates on
        return self._list_page(
            f"/users/{user}/repos", {"per_page": PER_PAGE, "page": page, "type": "owner"}
        )


def seconds_until(reset_at: datetime, now: datetime | None = None) -> float:
    now = now or datetime.now(timezone.utc)
    return max(0.0, (reset_at - now) / timedelta(seconds=1))


__all__ = ["GitHubRestClient", "RepoPage", "seconds_until", "DEFAULT_API_URL"]

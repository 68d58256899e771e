import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import requests

from repomirror.errors import (
    AuthenticationError,
    GitHubAPIError,
    NotFoundError,
    RateLimitError,
    SecondaryRateLimitError,
    TransientAPIError,
)
from repomirror.github_rest import GitHubRestClient, _next_page, seconds_until


@dataclass
class _DummyResponse:
    status_code: int
    payload: Any
    headers: dict[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        return self.payload

    @property
    def text(self) -> str:
        payload = self.payload
        if isinstance(payload, (dict, list)):
            return json.dumps(payload)
        return str(payload)


class _DummySession:
    def __init__(self, responses: list[Any]):
        self._responses = responses
        self.request_log: list[tuple[str, str, dict[str, Any]]] = []
        self.headers: dict[str, str] = {}

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> _DummyResponse:
        self.request_log.append((method, url, {"headers": headers, "params": params}))
        if not self._responses:
            raise AssertionError("No response queued for request")
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _repo(name: str, **extra: Any) -> dict[str, Any]:
    payload = {"name": name, "clone_url": f"https://github.com/acme/{name}.git"}
    payload.update(extra)
    return payload


def test_lists_org_repos_and_follows_link_header():
    link = '<https://api.github.com/organizations/1/repos?per_page=100&page=2>; rel="next", <https://api.github.com/organizations/1/repos?per_page=100&page=5>; rel="last"'
    session = _DummySession([_DummyResponse(200, [_repo("a", archived=True, size=12), _repo("b")], {"Link": link})])
    client = GitHubRestClient(token="tkn", session=session)

    page = client.list_org_repos("acme")

    assert [r.name for r in page.items] == ["a", "b"]
    assert page.items[0].archived is True
    assert page.items[0].size == 12
    assert page.next_page == 2
    method, url, extra = session.request_log[0]
    assert method == "GET"
    assert url.endswith("/orgs/acme/repos")
    assert extra["params"] == {"per_page": 100, "page": 1, "type": "all"}
    assert session.headers["Authorization"] == "Bearer tkn"


def test_user_listing_uses_owner_type_and_stops_without_next():
    session = _DummySession([_DummyResponse(200, [_repo("solo")])])
    client = GitHubRestClient(token="tkn", base_url="https://ghe.example.com/api/v3/", session=session)

    page = client.list_user_repos("octocat", page=3)

    assert page.next_page is None
    _, url, extra = session.request_log[0]
    assert url == "https://ghe.example.com/api/v3/users/octocat/repos"
    assert extra["params"]["type"] == "owner"
    assert extra["params"]["page"] == 3


def test_404_is_not_found():
    session = _DummySession([_DummyResponse(404, {"message": "Not Found"})])
    client = GitHubRestClient(token="tkn", session=session)
    with pytest.raises(NotFoundError) as excinfo:
        client.list_org_repos("ghost")
    assert excinfo.value.status == 404


def test_primary_rate_limit_from_headers():
    reset = int((datetime.now(timezone.utc) + timedelta(seconds=30)).timestamp())
    headers = {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(reset)}
    session = _DummySession([_DummyResponse(403, {"message": "API rate limit exceeded"}, headers)])
    client = GitHubRestClient(token="tkn", session=session)
    with pytest.raises(RateLimitError) as excinfo:
        client.list_org_repos("acme")
    assert int(excinfo.value.reset_at.timestamp()) == reset


def test_secondary_rate_limit_retry_after_header():
    session = _DummySession([_DummyResponse(403, {"message": "slow down"}, {"Retry-After": "17"})])
    client = GitHubRestClient(token="tkn", session=session)
    with pytest.raises(SecondaryRateLimitError) as excinfo:
        client.list_org_repos("acme")
    assert excinfo.value.retry_after == 17.0


def test_secondary_rate_limit_from_message_defaults_to_sixty_seconds():
    body = {"message": "You have exceeded a secondary rate limit."}
    session = _DummySession([_DummyResponse(403, body)])
    client = GitHubRestClient(token="tkn", session=session)
    with pytest.raises(SecondaryRateLimitError) as excinfo:
        client.list_org_repos("acme")
    assert excinfo.value.retry_after == 60.0


def test_plain_403_and_401_are_authentication_errors():
    session = _DummySession(
        [_DummyResponse(403, {"message": "Resource not accessible"}), _DummyResponse(401, {"message": "Bad credentials"})]
    )
    client = GitHubRestClient(token="tkn", session=session)
    with pytest.raises(AuthenticationError):
        client.list_org_repos("acme")
    with pytest.raises(AuthenticationError):
        client.list_org_repos("acme")


@pytest.mark.parametrize("status", [502, 503, 504])
def test_gateway_errors_are_transient(status: int):
    session = _DummySession([_DummyResponse(status, "bad gateway")])
    client = GitHubRestClient(token="tkn", session=session)
    with pytest.raises(TransientAPIError):
        client.list_org_repos("acme")


def test_other_server_errors_are_generic():
    session = _DummySession([_DummyResponse(500, {"message": "boom"})])
    client = GitHubRestClient(token="tkn", session=session)
    with pytest.raises(GitHubAPIError) as excinfo:
        client.list_org_repos("acme")
    assert not isinstance(excinfo.value, TransientAPIError)
    assert excinfo.value.response_text and "boom" in excinfo.value.response_text


def test_connection_failures_become_transient():
    session = _DummySession([requests.ConnectionError("connection reset")])
    client = GitHubRestClient(token="tkn", session=session)
    with pytest.raises(TransientAPIError):
        client.list_org_repos("acme")


def test_next_page_parsing_edge_cases():
    assert _next_page(None) is None
    assert _next_page("") is None
    assert _next_page('<https://api.github.com/x?page=4>; rel="prev"') is None


def test_seconds_until_never_negative():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert seconds_until(now - timedelta(seconds=5), now=now) == 0.0
    assert seconds_until(now + timedelta(seconds=5), now=now) == 5.0

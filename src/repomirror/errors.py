"""Error taxonomy & redaction helpers.

Every failure the mirror engine can surface is a ``MirrorError`` subclass so
callers can tell listing-phase failures (fatal, abort ``prepare_mirror``)
from execution-phase failures (isolated to one repository).

HTTP failures are classified from status codes and rate-limit headers by
``github_rest``; only raw git output is matched by text (see
``retry.is_network_error``), because git offers no structured signal.

Public API:
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"gho_[A-Za-z0-9]{20,40}"),  # OAuth tokens (gh CLI)
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"x-access-token:[^@\s]+@"),
]

_REDACTION_PLACEHOLDER = "<redacted>"


class MirrorError(RuntimeError):
    """Base class for all repomirror failures."""


class ConfigError(MirrorError):
    pass


class InvalidOrgNameError(MirrorError, ValueError):
    pass


class GitHubAPIError(MirrorError):
    """Raised when the GitHub REST API returns an error."""

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


class NotFoundError(GitHubAPIError):
    pass


class AuthenticationError(GitHubAPIError):
    pass


class TransientAPIError(GitHubAPIError):
    """5xx gateway errors, timeouts and dropped connections."""


class RateLimitError(GitHubAPIError):
    """Primary rate limit; ``reset_at`` is when the quota refills."""

    def __init__(self, message: str, *, reset_at: datetime, **kw: Any):
        super().__init__(message, **kw)
        self.reset_at = reset_at


class SecondaryRateLimitError(GitHubAPIError):
    """Secondary / abuse rate limit; wait ``retry_after`` seconds."""

    def __init__(self, message: str, *, retry_after: float, **kw: Any):
        super().__init__(message, **kw)
        self.retry_after = retry_after


class MaxRetriesExceededError(MirrorError):
    def __init__(self, last_error: BaseException, attempts: int):
        super().__init__(f"max retries exceeded after {attempts} attempts: {last_error}")
        self.last_error = last_error
        self.attempts = attempts
        self.__cause__ = last_error


class ListingError(MirrorError):
    pass


class MirrorCancelledError(MirrorError):
    pass


class GitCommandError(MirrorError):
    def __init__(self, args: list[str], returncode: int, output: str):
        command = " ".join(args[:2]) if args else "git"
        super().__init__(f"{command} failed (exit {returncode}): {output.strip()}")
        self.args_list = args
        self.returncode = returncode
        self.output = output


class NetworkError(MirrorError):
    """A git network operation kept failing transiently."""

    def __init__(self, operation: str, error: BaseException, attempts: int):
        super().__init__(f"{operation} failed after {attempts} attempts: {error}")
        self.operation = operation
        self.error = error
        self.attempts = attempts
        self.__cause__ = error


class DirtyRepoError(MirrorError):
    def __init__(self, path: str):
        super().__init__(f"repository has uncommitted changes: {path}")
        self.path = path


class StoreError(MirrorError):
    pass


@dataclass(frozen=True)
class PathCollisionError:
    """Report value for a destination that holds a different repository.

    Collisions are plan-time skip decisions and are never raised.
    """

    path: str
    expected_url: str
    actual_url: str

    def __str__(self) -> str:
        return f"path collision: {self.path} contains {self.actual_url}, expected {self.expected_url}"


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace token-like substrings with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Map an exception onto a reporting category.

    Typed errors are classified by type; anything else falls into 'generic'.
    """
    msg = redact(str(exc))
    name = exc.__class__.__name__
    if isinstance(exc, RateLimitError):
        return ErrorInfo("github.rate_limit", msg, name, transient=True)
    if isinstance(exc, SecondaryRateLimitError):
        return ErrorInfo("github.abuse", msg, name, transient=True)
    if isinstance(exc, TransientAPIError):
        return ErrorInfo("network", msg, name, transient=True, details={"status": exc.status})
    if isinstance(exc, NetworkError):
        return ErrorInfo("network", msg, name, details={"attempts": exc.attempts})
    if isinstance(exc, DirtyRepoError):
        return ErrorInfo("git.dirty", msg, name, details={"path": exc.path})
    if isinstance(exc, GitCommandError):
        return ErrorInfo("git", msg, name, details={"returncode": exc.returncode})
    if isinstance(exc, (AuthenticationError, NotFoundError)):
        return ErrorInfo("github.api", msg, name, details={"status": exc.status})
    if isinstance(exc, MirrorCancelledError):
        return ErrorInfo("cancelled", msg, name)
    if isinstance(exc, ConfigError):
        return ErrorInfo("config", msg, name)
    return ErrorInfo("generic", msg, name)


__all__ = [
    "MirrorError",
    "ConfigError",
    "InvalidOrgNameError",
    "GitHubAPIError",
    "NotFoundError",
    "AuthenticationError",
    "TransientAPIError",
    "RateLimitError",
    "SecondaryRateLimitError",
    "MaxRetriesExceededError",
    "ListingError",
    "MirrorCancelledError",
    "GitCommandError",
    "NetworkError",
    "DirtyRepoError",
    "StoreError",
    "PathCollisionError",
    "ErrorInfo",
    "classify_error",
    "redact",
]

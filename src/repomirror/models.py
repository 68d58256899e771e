from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Action(str, Enum):
    CLONE = "clone"
    UPDATE = "update"
    SKIP = "skip"


class SkipReason(str, Enum):
    NONE = ""
    DIRTY = "dirty repository"
    PATH_COLLISION = "path collision"
    ARCHIVED = "archived"
    FILTERED = "filtered out"
    NOT_GIT_REPO = "not a git repository"


class DirtyStrategy(str, Enum):
    """How to treat a local working tree with uncommitted changes."""

    SKIP = "skip"
    STASH = "stash"
    RESET = "reset"  # destructive

    @classmethod
    def parse(cls, value: str | None) -> DirtyStrategy:
        """Unknown or empty values fall back to ``SKIP``."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.SKIP


@dataclass(frozen=True)
class RateLimitConfig:
    max_retries: int = 5
    initial_backoff: float = 1.0
    max_backoff: float = 120.0
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class RemoteRepo:
    """Repository as reported by the listing API."""

    name: str
    clone_url: str
    private: bool = False
    archived: bool = False
    fork: bool = False
    size: int = 0

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> RemoteRepo:
        return cls(
            name=str(payload.get("name") or ""),
            clone_url=str(payload.get("clone_url") or ""),
            private=bool(payload.get("private", False)),
            archived=bool(payload.get("archived", False)),
            fork=bool(payload.get("fork", False)),
            size=int(payload.get("size") or 0),
        )


@dataclass
class MirrorOptions:
    skip_archived: bool = True
    public_only: bool = False
    name_filter: re.Pattern[str] | None = None
    parallel: int = 3
    dirty_strategy: DirtyStrategy = DirtyStrategy.SKIP
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    network_retries: int = 3
    shallow: bool = False


@dataclass(frozen=True)
class MirrorRepo:
    """One planned unit of work. Read-only once the plan is built."""

    name: str
    url: str
    path: str
    action: Action
    reason: str = ""
    skip_reason: SkipReason = SkipReason.NONE
    is_archived: bool = False
    is_fork: bool = False
    size: int = 0

    def __post_init__(self) -> None:
        if (self.action is Action.SKIP) != (self.skip_reason is not SkipReason.NONE):
            raise ValueError(
                f"{self.name}: skip_reason must be set exactly when action is skip"
            )


@dataclass(frozen=True)
class MirrorPlan:
    org_name: str
    repos: tuple[MirrorRepo, ...]
    base_dir: str
    parallel: int = 3
    skip_archived: bool = True
    public_only: bool = False
    name_filter: re.Pattern[str] | None = None
    dirty_strategy: DirtyStrategy = DirtyStrategy.SKIP
    network_retries: int = 3
    shallow: bool = False
    is_user: bool = False

    def count(self, action: Action) -> int:
        return sum(1 for repo in self.repos if repo.action is action)


@dataclass
class MirrorResult:
    repo: MirrorRepo
    success: bool
    error: BaseException | None = None
    duration_ms: int = 0
    retry_count: int = 0


@dataclass
class MirrorBatchResult:
    results: list[MirrorResult] = field(default_factory=list)
    cloned: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    duration: float = 0.0  # seconds

    @property
    def total(self) -> int:
        return self.cloned + self.updated + self.skipped + self.failed

    def failures(self) -> list[MirrorResult]:
        return [r for r in self.results if not r.success]


__all__ = [
    "Action",
    "SkipReason",
    "DirtyStrategy",
    "RateLimitConfig",
    "RemoteRepo",
    "MirrorOptions",
    "MirrorRepo",
    "MirrorPlan",
    "MirrorResult",
    "MirrorBatchResult",
]

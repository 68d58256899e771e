from __future__ import annotations

import re
from collections.abc import Callable, Iterable

from .models import MirrorOptions, RemoteRepo

RepoPredicate = Callable[[RemoteRepo], bool]


def build_predicates(
    *,
    skip_archived: bool = False,
    public_only: bool = False,
    name_filter: re.Pattern[str] | None = None,
) -> list[RepoPredicate]:
    """Predicates a repository must all satisfy to stay in the candidate list."""
    predicates: list[RepoPredicate] = []
    if skip_archived:
        predicates.append(lambda repo: not repo.archived)
    if public_only:
        predicates.append(lambda repo: not repo.private)
    if name_filter is not None:
        pattern = name_filter
        predicates.append(lambda repo: pattern.search(repo.name) is not None)
    return predicates


def apply_filters(repos: Iterable[RemoteRepo], opts: MirrorOptions) -> list[RemoteRepo]:
    """Order-preserving filter over listed repositories."""
    predicates = build_predicates(
        skip_archived=opts.skip_archived,
        public_only=opts.public_only,
        name_filter=opts.name_filter,
    )
    return [repo for repo in repos if all(p(repo) for p in predicates)]


__all__ = ["apply_filters", "build_predicates"]

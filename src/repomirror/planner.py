"""Plan Builder: decide clone / update / skip for every listed repository.

Local state -> action:

    path absent                              clone
    path present, no .git directory          skip (not a git repository)
    remote URL unreadable                    skip (path collision)
    remote URL differs after normalization   skip (path collision)
    remote URL matches                       update

The plan is computed before anything is mutated and is never persisted.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Protocol

from .errors import (
    GitCommandError,
    InvalidOrgNameError,
    ListingError,
    MirrorCancelledError,
    PathCollisionError,
)
from .filters import apply_filters
from .git import GitClient, is_git_repo, urls_match
from .github_rest import DEFAULT_API_URL, GitHubRestClient
from .lister import RemoteLister, RepoListingClient
from .logging import StructuredLogger, get_logger
from .models import Action, MirrorOptions, MirrorPlan, MirrorRepo, RemoteRepo, SkipReason
from .store import StoreConfig


class ConfigSource(Protocol):
    def get_config(self) -> StoreConfig: ...


def validate_org_name(name: str) -> None:
    if not name:
        raise InvalidOrgNameError("organization name cannot be empty")
    if ".." in name or "/" in name or "\\" in name:
        raise InvalidOrgNameError("invalid organization name: contains illegal characters")


def determine_action(
    repo: RemoteRepo,
    path: str,
    *,
    git: GitClient,
    logger: StructuredLogger,
) -> tuple[Action, str, SkipReason]:
    """Return ``(action, reason, skip_reason)`` for one repository."""
    if not os.path.lexists(path):
        return Action.CLONE, "", SkipReason.NONE

    if not is_git_repo(path):
        return Action.SKIP, "path exists but is not a git repository", SkipReason.NOT_GIT_REPO

    try:
        existing_url = git.remote_url(path)
    except GitCommandError as exc:
        logger.warning("could not determine remote URL", path=path, error=str(exc))
        return Action.SKIP, "could not verify remote URL", SkipReason.PATH_COLLISION

    if not urls_match(existing_url, repo.clone_url):
        collision = PathCollisionError(path, repo.clone_url, existing_url)
        logger.warning(
            "path collision detected",
            path=collision.path,
            expected=collision.expected_url,
            actual=collision.actual_url,
        )
        return (
            Action.SKIP,
            f"path contains different repo: {existing_url}",
            SkipReason.PATH_COLLISION,
        )

    return Action.UPDATE, "", SkipReason.NONE


def build_plan(
    org_name: str,
    repos: list[RemoteRepo],
    base_dir: str,
    opts: MirrorOptions,
    *,
    git: GitClient | None = None,
    logger: StructuredLogger | None = None,
    is_user: bool = False,
) -> MirrorPlan:
    git = git or GitClient()
    logger = logger or get_logger()
    planned: list[MirrorRepo] = []
    seen_paths: set[str] = set()
    for repo in repos:
        path = os.path.join(base_dir, repo.name)
        # case-insensitive filesystems fold names that differ only by case
        path_key = os.path.normcase(os.path.abspath(path)).lower()
        if path_key in seen_paths:
            action, reason, skip_reason = (
                Action.SKIP,
                "another repository in this plan maps to the same path",
                SkipReason.PATH_COLLISION,
            )
        else:
            seen_paths.add(path_key)
            action, reason, skip_reason = determine_action(repo, path, git=git, logger=logger)
        planned.append(
            MirrorRepo(
                name=repo.name,
                url=repo.clone_url,
                path=path,
                action=action,
                reason=reason,
                skip_reason=skip_reason,
                is_archived=repo.archived,
                is_fork=repo.fork,
                size=repo.size,
            )
        )
    return MirrorPlan(
        org_name=org_name,
        repos=tuple(planned),
        base_dir=base_dir,
        parallel=opts.parallel,
        skip_archived=opts.skip_archived,
        public_only=opts.public_only,
        name_filter=opts.name_filter,
        dirty_strategy=opts.dirty_strategy,
        network_retries=opts.network_retries or 3,
        shallow=opts.shallow,
        is_user=is_user,
    )


def prepare_mirror(
    name: str,
    token: str,
    opts: MirrorOptions,
    *,
    store: ConfigSource,
    client: RepoListingClient | None = None,
    git: GitClient | None = None,
    logger: StructuredLogger | None = None,
    cancel_event: threading.Event | None = None,
    api_url: str = DEFAULT_API_URL,
) -> MirrorPlan:
    """List, filter and classify every repository of ``name``.

    Blocks for the whole listing. A fatal listing error aborts with
    ``ListingError``; no partial plan is produced.
    """
    validate_org_name(name)
    logger = logger or get_logger()
    logger.info(
        "preparing mirror operation",
        org=name,
        parallel=opts.parallel,
        dirty_strategy=opts.dirty_strategy.value,
    )
    lister = RemoteLister(
        client or GitHubRestClient(token=token, base_url=api_url),
        opts.rate_limit,
        logger=logger,
        cancel_event=cancel_event,
    )
    try:
        with logger.timed_operation("list_repositories", org=name):
            repos, is_user = lister.fetch_repos(name)
    except (ListingError, MirrorCancelledError):
        raise
    except Exception as exc:
        raise ListingError(f"failed to fetch repositories: {exc}") from exc

    logger.info(
        "fetched repositories",
        org=name,
        entity="user" if is_user else "org",
        count=len(repos),
    )
    filtered = apply_filters(repos, opts)
    logger.info("filtered repositories", before=len(repos), after=len(filtered))

    base_dir = str(Path(store.get_config().clone_dir).expanduser() / name)
    return build_plan(name, filtered, base_dir, opts, git=git, logger=logger, is_user=is_user)


__all__ = [
    "validate_org_name",
    "determine_action",
    "build_plan",
    "prepare_mirror",
]

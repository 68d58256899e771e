"""Dirty-State Resolver and the per-repository git operations.

A working tree counts as dirty when ``git status --porcelain`` prints
anything *or* fails to run; the resolver errs toward leaving local work
alone. Strategies:

skip   raise ``DirtyRepoError`` for this repository only (default)
stash  stash push, pull, stash pop; a failed pop is logged and the
       changes stay in the stash
reset  ``reset --hard HEAD`` + ``clean -fd`` before pulling (destroys local work)
"""

from __future__ import annotations

import shutil
from pathlib import Path

from .errors import DirtyRepoError, GitCommandError
from .git import STASH_MESSAGE, GitClient
from .logging import StructuredLogger, get_logger
from .models import DirtyStrategy


class DirtyStateResolver:
    def __init__(self, git: GitClient | None = None, logger: StructuredLogger | None = None):
        self.git = git or GitClient()
        self.logger = logger or get_logger()

    def is_dirty(self, path: str) -> bool:
        try:
            return bool(self.git.status_porcelain(path).strip())
        except GitCommandError as exc:
            self.logger.debug("git status failed; treating as dirty", path=path, error=str(exc))
            return True

    def stash(self, path: str) -> bool:
        """Return False when git had nothing it could stash."""
        self.logger.info("stashing changes before update", path=path)
        output = self.git.stash_push(path, STASH_MESSAGE)
        return "no local changes to save" not in output.lower()

    def unstash(self, path: str) -> None:
        try:
            self.git.stash_pop(path)
        except GitCommandError as exc:
            # TODO: surface a lost stash in the batch report instead of only logging it
            self.logger.error(
                "failed to unstash changes",
                path=path,
                error=str(exc),
                output=exc.output,
            )

    def reset(self, path: str) -> None:
        self.logger.warning("resetting repository to clean state", path=path)
        self.git.reset_hard(path)
        self.git.clean(path)


def mirror_clone_repo(
    url: str, path: str, *, shallow: bool = False, git: GitClient | None = None
) -> None:
    """Clone ``url`` into ``path``.

    A failed clone leaves nothing behind at ``path`` unless it was already
    there, so a retry starts clean and the next plan never mistakes a
    partial clone for an existing checkout.
    """
    git = git or GitClient()
    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)
    existed = dest.exists()
    try:
        git.clone(url, path, shallow=shallow)
    except BaseException:
        if not existed:
            shutil.rmtree(dest, ignore_errors=True)
        raise


def mirror_update_repo(
    url: str,
    path: str,
    strategy: DirtyStrategy = DirtyStrategy.SKIP,
    *,
    git: GitClient | None = None,
    logger: StructuredLogger | None = None,
) -> None:
    """Fast-forward ``path`` from its remote, honouring ``strategy`` when dirty."""
    resolver = DirtyStateResolver(git, logger)
    stashed = False
    if resolver.is_dirty(path):
        if strategy is DirtyStrategy.STASH:
            stashed = resolver.stash(path)
        elif strategy is DirtyStrategy.RESET:
            resolver.reset(path)
        else:
            resolver.logger.warning("skipping dirty repository", path=path, url=url)
            raise DirtyRepoError(path)
    try:
        resolver.git.pull_ff_only(path)
    finally:
        if stashed:
            resolver.unstash(path)


__all__ = ["DirtyStateResolver", "mirror_clone_repo", "mirror_update_repo"]

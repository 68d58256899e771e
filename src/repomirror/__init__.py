"""repomirror - bulk mirroring of every repository in a GitHub organization or user.

High-level public API:

from repomirror import RepoStore, prepare_mirror, execute_mirror_batch
from repomirror.models import MirrorOptions

store = RepoStore('~/.repomirror/repos.json', clone_dir='~/src')
plan = prepare_mirror('my-org', token, MirrorOptions(parallel=4), store=store)
result = execute_mirror_batch(plan, store=store)
print(result.cloned, result.updated, result.skipped, result.failed)

The CLI (``repomirror mirror <name>``) is a thin layer over these calls.
"""

from __future__ import annotations

from .config import MirrorConfig, load_config
from .executor import execute_mirror_batch
from .models import (
    Action,
    DirtyStrategy,
    MirrorBatchResult,
    MirrorOptions,
    MirrorPlan,
    MirrorRepo,
    MirrorResult,
    RateLimitConfig,
    SkipReason,
)
from .planner import prepare_mirror
from .store import RepoStore

__version__ = "0.3.0"

__all__ = [
    "Action",
    "DirtyStrategy",
    "MirrorBatchResult",
    "MirrorConfig",
    "MirrorOptions",
    "MirrorPlan",
    "MirrorRepo",
    "MirrorResult",
    "RateLimitConfig",
    "RepoStore",
    "SkipReason",
    "execute_mirror_batch",
    "load_config",
    "prepare_mirror",
    "__version__",
]

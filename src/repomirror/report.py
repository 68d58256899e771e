"""Result Reporter: dry-run plans, live progress and batch summaries."""

from __future__ import annotations

import sys
from typing import Any, TextIO

from .errors import classify_error, redact
from .executor import ProgressEvent
from .logging import StructuredLogger
from .models import Action, MirrorBatchResult, MirrorPlan
from .ux import print_header, print_summary_box, status_label

PROGRESS_DETAIL_LIMIT = 60
SUMMARY_ERROR_LIMIT = 70


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _error_text(error: BaseException | None) -> str:
    return redact(str(error)) if error is not None else "unknown error"


def render_dry_run_plan(plan: MirrorPlan, stream: TextIO | None = None) -> None:
    """Print what a mirror run would do. Reads the plan only."""
    out = stream or sys.stdout
    kind = "user" if plan.is_user else "organization"
    print(f"\nDry run: Mirroring {kind} '{plan.org_name}'", file=out)
    print(f"Base directory: {plan.base_dir}", file=out)
    print(f"Total repositories: {len(plan.repos)}\n", file=out)

    clones = [r for r in plan.repos if r.action is Action.CLONE]
    updates = [r for r in plan.repos if r.action is Action.UPDATE]
    skips = [r for r in plan.repos if r.action is Action.SKIP]

    print("Actions:", file=out)
    print(f"  Clone: {len(clones)} repositories", file=out)
    print(f"  Update: {len(updates)} repositories", file=out)
    print(f"  Skip: {len(skips)} repositories\n", file=out)

    if clones:
        print_header("Repositories to clone:", out)
        for repo in clones:
            markers = (" [archived]" if repo.is_archived else "") + (" [fork]" if repo.is_fork else "")
            print(f"  * {repo.name}{markers}", file=out)
        print(file=out)
    if updates:
        print_header("Repositories to update:", out)
        for repo in updates:
            print(f"  * {repo.name}", file=out)
        print(file=out)
    if skips:
        print_header("Repositories to skip:", out)
        for repo in skips:
            print(f"  * {repo.name} - {repo.reason}", file=out)
        print(file=out)


def log_dry_run_plan(plan: MirrorPlan, logger: StructuredLogger) -> None:
    logger.info(
        "dry run plan summary",
        org=plan.org_name,
        base_dir=plan.base_dir,
        total_repos=len(plan.repos),
        to_clone=plan.count(Action.CLONE),
        to_update=plan.count(Action.UPDATE),
        to_skip=plan.count(Action.SKIP),
    )
    for repo in plan.repos:
        logger.info(
            "planned action",
            repo=repo.name,
            action=repo.action.value,
            reason=repo.reason,
            archived=repo.is_archived,
            fork=repo.is_fork,
        )


class ConsoleProgress:
    """Progress observer printing one line per finished repository."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout

    def on_item_complete(self, event: ProgressEvent) -> None:
        result = event.result
        detail = ""
        if event.status == "FAIL" and result.error is not None:
            detail = truncate(f" - {_error_text(result.error)}", PROGRESS_DETAIL_LIMIT)
        retry_info = f" (retries: {result.retry_count})" if result.retry_count > 0 else ""
        label = status_label(event.status, self.stream)
        print(
            f"[{event.percent:3.0f}%] {label} {result.repo.name:<40}{detail}{retry_info}",
            file=self.stream,
            flush=True,
        )


def render_batch_summary(result: MirrorBatchResult, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    print_summary_box(
        "Mirror Complete",
        [
            ("Cloned:", result.cloned),
            ("Updated:", result.updated),
            ("Skipped:", result.skipped),
            ("Failed:", result.failed),
            ("Total:", f"{result.total} repositories in {result.duration:.3f}s"),
        ],
        out,
    )
    failures = result.failures()
    if failures:
        print("\nFailed repositories:", file=out)
        for item in failures:
            print(
                f"  - {item.repo.name}: {truncate(_error_text(item.error), SUMMARY_ERROR_LIMIT)}",
                file=out,
            )


def log_mirror_summary(result: MirrorBatchResult, logger: StructuredLogger) -> None:
    logger.info(
        "mirror operation complete",
        cloned=result.cloned,
        updated=result.updated,
        skipped=result.skipped,
        failed=result.failed,
        duration_ms=round(result.duration * 1000, 2),
    )
    for item in result.failures():
        logger.log_error(
            "repository failed",
            error=_error_text(item.error),
            category=classify_error(item.error).category if item.error else "generic",
            repo=item.repo.name,
            action=item.repo.action.value,
            retry_count=item.retry_count,
        )


def plan_to_dict(plan: MirrorPlan) -> dict[str, Any]:
    return {
        "org": plan.org_name,
        "entity": "user" if plan.is_user else "org",
        "base_dir": plan.base_dir,
        "parallel": plan.parallel,
        "dirty_strategy": plan.dirty_strategy.value,
        "network_retries": plan.network_retries,
        "shallow": plan.shallow,
        "totals": {
            "clone": plan.count(Action.CLONE),
            "update": plan.count(Action.UPDATE),
            "skip": plan.count(Action.SKIP),
        },
        "repos": [
            {
                "name": r.name,
                "url": r.url,
                "path": r.path,
                "action": r.action.value,
                "reason": r.reason,
                "skip_reason": r.skip_reason.name.lower() if r.skip_reason.value else None,
                "archived": r.is_archived,
                "fork": r.is_fork,
                "size": r.size,
            }
            for r in plan.repos
        ],
    }


def batch_result_to_dict(result: MirrorBatchResult) -> dict[str, Any]:
    return {
        "totals": {
            "cloned": result.cloned,
            "updated": result.updated,
            "skipped": result.skipped,
            "failed": result.failed,
        },
        "duration_ms": round(result.duration * 1000, 2),
        "results": [
            {
                "name": r.repo.name,
                "action": r.repo.action.value,
                "success": r.success,
                "error": _error_text(r.error) if r.error is not None else None,
                "error_category": classify_error(r.error).category if r.error is not None else None,
                "duration_ms": r.duration_ms,
                "retry_count": r.retry_count,
            }
            for r in result.results
        ],
    }


__all__ = [
    "render_dry_run_plan",
    "log_dry_run_plan",
    "ConsoleProgress",
    "render_batch_summary",
    "log_mirror_summary",
    "plan_to_dict",
    "batch_result_to_dict",
    "truncate",
]

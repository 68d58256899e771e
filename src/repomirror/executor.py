"""Batch Executor: carry out a ``MirrorPlan`` with ``plan.parallel`` workers.

Every plan entry is queued up front; workers pull from the queue until it
is empty. Items are independent, so a failure is recorded on that item and
never stops the batch. Completion is reported to a ``ProgressObserver``
under the same lock that guards the result list and counters, so observers
see events in completion order.

There is no graceful mid-batch cancellation; interrupting the process is
the only way to stop a running batch.
"""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .dirty import mirror_clone_repo, mirror_update_repo
from .errors import GitCommandError, MaxRetriesExceededError, NetworkError, StoreError
from .git import GitClient, normalize_url
from .logging import StructuredLogger, get_logger
from .models import Action, MirrorBatchResult, MirrorPlan, MirrorRepo, MirrorResult
from .retry import RetryPolicy, is_network_error, network_backoff

STATUS_OK = "OK"
STATUS_SKIP = "SKIP"
STATUS_FAIL = "FAIL"


class RepoSaver(Protocol):
    def save_mirrored_repo(self, url: str, path: str | Path) -> None: ...

    def update_repo_timestamp(self, url: str) -> None: ...


@dataclass(frozen=True)
class ProgressEvent:
    result: MirrorResult
    completed: int
    total: int
    status: str

    @property
    def percent(self) -> float:
        return self.completed / self.total * 100 if self.total else 100.0


class ProgressObserver(Protocol):
    def on_item_complete(self, event: ProgressEvent) -> None: ...


def _transient_git_failure(repo: MirrorRepo) -> Callable[[BaseException, int], float | None]:
    echoed = (repo.url, normalize_url(repo.url), repo.path)

    def classify(exc: BaseException, attempt: int) -> float | None:
        if isinstance(exc, GitCommandError) and is_network_error(exc.output, echoed):
            return network_backoff(attempt)
        return None

    return classify


class BatchExecutor:
    def __init__(
        self,
        plan: MirrorPlan,
        *,
        store: RepoSaver,
        git: GitClient | None = None,
        logger: StructuredLogger | None = None,
        observer: ProgressObserver | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.plan = plan
        self.store = store
        self.git = git or GitClient()
        self.logger = logger or get_logger()
        self.observer = observer
        self._sleep = sleep
        self._lock = threading.Lock()
        self._result = MirrorBatchResult()
        self._completed = 0

    def run(self) -> MirrorBatchResult:
        start = time.perf_counter()
        work: queue.Queue[MirrorRepo] = queue.Queue(maxsize=len(self.plan.repos) or 1)
        for repo in self.plan.repos:
            work.put_nowait(repo)

        workers = max(1, self.plan.parallel)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mirror") as pool:
            futures = [pool.submit(self._drain, work) for _ in range(workers)]
            for future in futures:
                future.result()

        self._result.duration = time.perf_counter() - start
        self.logger.log_performance(
            "mirror_batch",
            self._result.duration * 1000,
            org=self.plan.org_name,
            total=self._result.total,
            workers=workers,
        )
        return self._result

    def _drain(self, work: queue.Queue[MirrorRepo]) -> None:
        while True:
            try:
                repo = work.get_nowait()
            except queue.Empty:
                return
            self._record(self.process_repo(repo))

    def _record(self, result: MirrorResult) -> None:
        action = result.repo.action
        with self._lock:
            if action is Action.SKIP:
                status = STATUS_SKIP
                self._result.skipped += 1
            elif result.success:
                status = STATUS_OK
                if action is Action.CLONE:
                    self._result.cloned += 1
                else:
                    self._result.updated += 1
            else:
                status = STATUS_FAIL
                self._result.failed += 1
            self._result.results.append(result)
            self._completed += 1
            if self.observer is not None:
                event = ProgressEvent(
                    result=result,
                    completed=self._completed,
                    total=len(self.plan.repos),
                    status=status,
                )
                try:
                    self.observer.on_item_complete(event)
                except Exception as exc:
                    # results are already recorded; progress output is best effort
                    self.logger.warning(
                        "progress observer failed",
                        repo=result.repo.name,
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )

    def process_repo(self, repo: MirrorRepo) -> MirrorResult:
        if repo.action is Action.SKIP:
            return MirrorResult(repo=repo, success=True)

        start = time.perf_counter()
        retries = [0]
        error: BaseException | None = None
        try:
            if repo.action is Action.CLONE:
                self._with_network_retry(
                    "git clone",
                    repo,
                    lambda: mirror_clone_repo(
                        repo.url, repo.path, shallow=self.plan.shallow, git=self.git
                    ),
                    retries,
                )
            else:
                self._with_network_retry(
                    "git pull",
                    repo,
                    lambda: mirror_update_repo(
                        repo.url,
                        repo.path,
                        self.plan.dirty_strategy,
                        git=self.git,
                        logger=self.logger,
                    ),
                    retries,
                )
            self._remember(repo)
        except Exception as exc:
            error = exc
        duration_ms = int((time.perf_counter() - start) * 1000)
        if error is None:
            self.logger.log_repo_action(
                repo.action.value, repo.name, duration_ms=duration_ms, retry_count=retries[0]
            )
        return MirrorResult(
            repo=repo,
            success=error is None,
            error=error,
            duration_ms=duration_ms,
            retry_count=retries[0],
        )

    def _remember(self, repo: MirrorRepo) -> None:
        if repo.action is Action.CLONE:
            self.store.save_mirrored_repo(repo.url, repo.path)
            return
        try:
            self.store.update_repo_timestamp(repo.url)
        except StoreError:
            # checkout predates the store
            self.store.save_mirrored_repo(repo.url, repo.path)

    def _with_network_retry(
        self,
        operation: str,
        repo: MirrorRepo,
        op: Callable[[], None],
        retries: list[int],
    ) -> None:
        attempts = self.plan.network_retries or 3

        def _on_retry(attempt: int, exc: BaseException, delay: float) -> None:
            retries[0] += 1
            self.logger.warning(
                "network error, retrying",
                repo=repo.name,
                operation=operation,
                attempt=attempt + 1,
                backoff=delay,
                error=str(exc),
            )

        policy = RetryPolicy(
            max_attempts=attempts,
            classify=_transient_git_failure(repo),
            sleep=self._sleep,
            on_retry=_on_retry,
        )
        try:
            policy.run(op)
        except MaxRetriesExceededError as exc:
            raise NetworkError(operation, exc.last_error, exc.attempts) from exc.last_error


def execute_mirror_batch(
    plan: MirrorPlan,
    logger: StructuredLogger | None = None,
    *,
    store: RepoSaver,
    git: GitClient | None = None,
    observer: ProgressObserver | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> MirrorBatchResult:
    """Run ``plan`` to completion and return aggregated results.

    Blocks until every item has finished.
    """
    executor = BatchExecutor(
        plan, store=store, git=git, logger=logger, observer=observer, sleep=sleep
    )
    return executor.run()


__all__ = [
    "BatchExecutor",
    "ProgressEvent",
    "ProgressObserver",
    "RepoSaver",
    "execute_mirror_batch",
]

"""Thin wrapper around the ``git`` executable.

Every call uses ``git -C <path>`` (or an explicit destination for clone)
and raises ``GitCommandError`` carrying the combined output on failure.
"""

from __future__ import annotations

import os
import re
import subprocess  # nosec B404 - git is driven through its CLI
from collections.abc import Sequence
from pathlib import Path

from .errors import GitCommandError

STASH_MESSAGE = "repomirror-autostash"


class GitClient:
    def __init__(self, executable: str = "git", timeout: float | None = None) -> None:
        # None: no limit
        self.executable = executable
        self.timeout = timeout

    def _run(self, args: Sequence[str], cwd: str | None = None) -> str:
        cmd = [self.executable, *args]
        env = dict(os.environ)
        # never block on a credential prompt from a worker thread
        env.setdefault("GIT_TERMINAL_PROMPT", "0")
        try:
            proc = subprocess.run(  # nosec B603 - argument list, no shell
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise GitCommandError(list(args), -1, f"killed after {self.timeout}s") from exc
        except FileNotFoundError as exc:
            raise GitCommandError(list(args), -1, f"{self.executable} not found") from exc
        if proc.returncode != 0:
            output = (proc.stderr or "") + (proc.stdout or "")
            raise GitCommandError(list(args), proc.returncode, output)
        return proc.stdout

    def _in(self, path: str | Path, *args: str) -> str:
        return self._run(["-C", str(path), *args])

    def clone(self, url: str, path: str | Path, *, shallow: bool = False) -> None:
        args = ["clone"]
        if shallow:
            args += ["--depth", "1"]
        self._run([*args, url, str(path)])

    def pull_ff_only(self, path: str | Path) -> None:
        self._in(path, "pull", "--ff-only")

    def status_porcelain(self, path: str | Path) -> str:
        return self._in(path, "status", "--porcelain")

    def stash_push(self, path: str | Path, message: str = STASH_MESSAGE) -> str:
        return self._in(path, "stash", "push", "-m", message)

    def stash_pop(self, path: str | Path) -> None:
        self._in(path, "stash", "pop")

    def reset_hard(self, path: str | Path) -> None:
        self._in(path, "reset", "--hard", "HEAD")

    def clean(self, path: str | Path) -> None:
        self._in(path, "clean", "-fd")

    def remote_url(self, path: str | Path, remote: str = "origin") -> str:
        return self._in(path, "remote", "get-url", remote).strip()


def is_git_repo(path: str | Path) -> bool:
    return (Path(path) / ".git").is_dir()


_SCP_PREFIX = re.compile(r"^[\w.-]+@([^:/]+):(?!//)")
_SSH_PREFIX = re.compile(r"^ssh://[\w.-]+@([^/:]+)(?::\d+)?/")


def normalize_url(url: str) -> str:
    """Canonical comparison form of a clone URL.

    ``git@host:owner/repo.git``, ``ssh://git@host/owner/repo`` and
    ``https://HOST/owner/repo.git`` all normalize to ``https://host/owner/repo``.
    Idempotent.
    """
    u = url.strip()
    u = _SCP_PREFIX.sub(r"https://\1/", u, count=1)
    u = _SSH_PREFIX.sub(r"https://\1/", u, count=1)
    u = u.lower().rstrip("/")
    while u.endswith(".git"):
        u = u[: -len(".git")].rstrip("/")
    return u


def urls_match(a: str, b: str) -> bool:
    return normalize_url(a) == normalize_url(b)


__all__ = [
    "GitClient",
    "is_git_repo",
    "normalize_url",
    "urls_match",
    "STASH_MESSAGE",
]

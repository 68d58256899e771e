"""Pytest configuration for repomirror tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`). Git-backed tests
build throwaway repositories under `tmp_path` and are skipped when no `git`
executable is available.
"""

from __future__ import annotations

import io
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from repomirror.logging import StructuredLogger  # noqa: E402

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not found")

_GIT_IDENTITY = ["-c", "user.name=Mirror Test", "-c", "user.email=mirror@example.com"]


def run_git(*args: str, cwd: Path | None = None) -> str:
    proc = subprocess.run(
        ["git", *_GIT_IDENTITY, *args],
        cwd=str(cwd) if cwd else None,
        capture_output=True,
        text=True,
        check=True,
    )
    return proc.stdout


def commit_file(work: Path, name: str, content: str, message: str | None = None) -> None:
    (work / name).write_text(content, encoding="utf-8")
    run_git("add", name, cwd=work)
    run_git("commit", "-q", "-m", message or f"update {name}", cwd=work)


def make_remote(root: Path, name: str) -> tuple[Path, Path]:
    """Create a bare repository with one commit.

    Returns ``(bare_path, seed_worktree)``; push from the seed worktree to
    add commits to the remote later.
    """
    seed = root / "seeds" / name
    seed.mkdir(parents=True)
    run_git("init", "-q", cwd=seed)
    commit_file(seed, "README.md", f"# {name}\n", "initial commit")
    bare = root / "remotes" / f"{name}.git"
    bare.parent.mkdir(parents=True, exist_ok=True)
    run_git("clone", "-q", "--bare", str(seed), str(bare))
    run_git("remote", "add", "origin", str(bare), cwd=seed)
    run_git("push", "-q", "origin", "HEAD", cwd=seed)
    return bare, seed


def push_new_commit(seed: Path, name: str = "CHANGELOG.md", content: str = "new\n") -> str:
    commit_file(seed, name, content)
    run_git("push", "-q", "origin", "HEAD", cwd=seed)
    return run_git("rev-parse", "HEAD", cwd=seed).strip()


def head_of(path: Path) -> str:
    return run_git("rev-parse", "HEAD", cwd=path).strip()


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def quiet_logger(log_stream: io.StringIO) -> StructuredLogger:
    return StructuredLogger(name="repomirror.test", level="DEBUG", stream=log_stream)

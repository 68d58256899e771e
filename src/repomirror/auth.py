"""GitHub token resolution for the listing client.

Sources, in priority order:
  1. explicit ``--token`` flag
  2. ``GITHUB_TOKEN`` environment variable
  3. ``GH_TOKEN`` environment variable
  4. a ``.env`` file (read with python-dotenv, never overriding the environment)
  5. ``gh auth token`` from an authenticated GitHub CLI
"""

from __future__ import annotations

import os
import shutil
import subprocess  # nosec B404 - optional gh CLI lookup
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from dotenv import dotenv_values

from .errors import AuthenticationError
from .logging import get_logger

TOKEN_HELP = """GitHub token required

Provide a token via one of:
  * --token flag
  * GITHUB_TOKEN or GH_TOKEN environment variable
  * a .env file containing GITHUB_TOKEN=...
  * gh auth login             (auto-detected from gh CLI)

Create a token at: https://github.com/settings/tokens"""


class TokenSource(str, Enum):
    FLAG = "flag"
    ENV_GITHUB = "env:GITHUB_TOKEN"
    ENV_GH = "env:GH_TOKEN"
    DOTENV = "dotenv"
    GH_CLI = "gh-cli"


@dataclass
class TokenResolverConfig:
    env_vars: tuple[str, ...] = ("GITHUB_TOKEN", "GH_TOKEN")
    dotenv_paths: Sequence[str] = field(default_factory=lambda: (".env", ".env.local"))
    use_gh_cli: bool = True
    host: str = "github.com"


def _gh_cli_token(host: str) -> str | None:
    gh = shutil.which("gh")
    if not gh:
        return None
    try:
        proc = subprocess.run(  # nosec B603 - fixed argument list
            [gh, "auth", "token", "--hostname", host],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    token = proc.stdout.strip()
    return token if proc.returncode == 0 and token else None


def resolve_github_token(
    flag_token: str | None = None,
    config: TokenResolverConfig | None = None,
    *,
    gh_lookup: Callable[[str], str | None] = _gh_cli_token,
) -> tuple[str, TokenSource]:
    cfg = config or TokenResolverConfig()
    logger = get_logger()
    if flag_token:
        return flag_token, TokenSource.FLAG

    env_sources = {"GITHUB_TOKEN": TokenSource.ENV_GITHUB, "GH_TOKEN": TokenSource.ENV_GH}
    for var in cfg.env_vars:
        value = os.getenv(var)
        if value:
            return value, env_sources.get(var, TokenSource.ENV_GITHUB)

    for location in cfg.dotenv_paths:
        path = Path(location)
        if not path.is_file():
            continue
        values = dotenv_values(path)
        for var in cfg.env_vars:
            value = values.get(var)
            if value:
                logger.debug("token loaded from dotenv file", path=str(path))
                return value, TokenSource.DOTENV

    if cfg.use_gh_cli:
        token = gh_lookup(cfg.host)
        if token:
            return token, TokenSource.GH_CLI

    raise AuthenticationError(TOKEN_HELP)


__all__ = ["TokenSource", "TokenResolverConfig", "resolve_github_token"]

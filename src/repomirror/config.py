from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

from .errors import ConfigError
from .github_rest import DEFAULT_API_URL
from .models import DirtyStrategy, MirrorOptions, RateLimitConfig

CONFIG_DEFAULT = "repomirror.config.yaml"
DEFAULT_CLONE_DIR = "~/repomirror"
DEFAULT_STORE_FILE = "~/.repomirror/repos.json"

PARALLEL_RANGE = (1, 10)
MAX_RETRIES_RANGE = (1, 20)
NETWORK_RETRIES_RANGE = (1, 10)


@dataclass
class MirrorConfig:
    clone_dir: str = DEFAULT_CLONE_DIR
    store_file: str = DEFAULT_STORE_FILE
    api_url: str = DEFAULT_API_URL
    # defaults for the mirror command; CLI flags override
    parallel: int = 3
    skip_archived: bool = True
    public_only: bool = False
    dirty_strategy: str = DirtyStrategy.SKIP.value
    network_retries: int = 3
    shallow: bool = False
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    source_file: Path | None = None


def _resolve_env_var(value: Any) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith("$"):
        return os.getenv(value[1:], value)
    return value


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {}) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"section '{name}' must be a mapping")
    return cast(dict[str, Any], value)


def load_config(path: str | Path | None = None) -> MirrorConfig:
    """Load YAML configuration; a missing file yields defaults.

    ``REPOMIRROR_CLONE_DIR``, ``REPOMIRROR_STORE_FILE`` and
    ``REPOMIRROR_API_URL`` override the file.
    """
    raw: dict[str, Any] = {}
    p = Path(path) if path else None
    if p is not None and p.exists():
        try:
            loaded = yaml.safe_load(p.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid configuration file {p}: {exc}") from exc
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(f"Configuration file {p} must contain a mapping")
        raw = cast(dict[str, Any], loaded or {})

    storage = _section(raw, "storage")
    gh = _section(raw, "github")
    mirror = _section(raw, "mirror")
    rate = _section(raw, "rate_limit")
    logging_config = _section(raw, "logging")

    try:
        rate_limit = RateLimitConfig(
            max_retries=int(rate.get("max_retries", 5)),
            initial_backoff=float(rate.get("initial_backoff", 1.0)),
            max_backoff=float(rate.get("max_backoff", 120.0)),
            backoff_multiplier=float(rate.get("backoff_multiplier", 2.0)),
        )
        cfg = MirrorConfig(
            clone_dir=str(_resolve_env_var(storage.get("clone_dir", DEFAULT_CLONE_DIR))),
            store_file=str(_resolve_env_var(storage.get("store_file", DEFAULT_STORE_FILE))),
            api_url=str(_resolve_env_var(gh.get("api_url", DEFAULT_API_URL))),
            parallel=int(mirror.get("parallel", 3)),
            skip_archived=bool(mirror.get("skip_archived", True)),
            public_only=bool(mirror.get("public_only", False)),
            dirty_strategy=str(mirror.get("dirty_strategy", DirtyStrategy.SKIP.value)),
            network_retries=int(mirror.get("network_retries", 3)),
            shallow=bool(mirror.get("shallow", False)),
            rate_limit=rate_limit,
            logging_json_enabled=bool(logging_config.get("json_enabled", False)),
            logging_level=str(logging_config.get("level", "INFO")),
            source_file=p if p is not None and p.exists() else None,
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc

    cfg.clone_dir = os.environ.get("REPOMIRROR_CLONE_DIR", cfg.clone_dir)
    cfg.store_file = os.environ.get("REPOMIRROR_STORE_FILE", cfg.store_file)
    cfg.api_url = os.environ.get("REPOMIRROR_API_URL", cfg.api_url)
    return cfg


def _check_range(name: str, value: int, bounds: tuple[int, int]) -> None:
    low, high = bounds
    if not low <= value <= high:
        raise ConfigError(f"{name} must be between {low} and {high}")


def build_mirror_options(
    *,
    parallel: int,
    max_retries: int,
    network_retries: int,
    dirty_strategy: str,
    name_filter: str | None = None,
    skip_archived: bool = True,
    public_only: bool = False,
    shallow: bool = False,
    base_rate_limit: RateLimitConfig | None = None,
) -> MirrorOptions:
    """Validate command-layer values and assemble ``MirrorOptions``."""
    _check_range("parallel", parallel, PARALLEL_RANGE)
    _check_range("max-retries", max_retries, MAX_RETRIES_RANGE)
    _check_range("network-retries", network_retries, NETWORK_RETRIES_RANGE)
    strategy_value = (dirty_strategy or "").strip().lower()
    if strategy_value not in {s.value for s in DirtyStrategy}:
        raise ConfigError(f"dirty-strategy must be one of skip, stash, reset (got {dirty_strategy!r})")
    pattern = None
    if name_filter:
        try:
            pattern = re.compile(name_filter)
        except re.error as exc:
            raise ConfigError(f"invalid filter regex: {exc}") from exc
    base = base_rate_limit or RateLimitConfig()
    return MirrorOptions(
        skip_archived=skip_archived,
        public_only=public_only,
        name_filter=pattern,
        parallel=parallel,
        dirty_strategy=DirtyStrategy.parse(strategy_value),
        rate_limit=RateLimitConfig(
            max_retries=max_retries,
            initial_backoff=base.initial_backoff,
            max_backoff=base.max_backoff,
            backoff_multiplier=base.backoff_multiplier,
        ),
        network_retries=network_retries,
        shallow=shallow,
    )


__all__ = [
    "MirrorConfig",
    "load_config",
    "build_mirror_options",
    "CONFIG_DEFAULT",
]

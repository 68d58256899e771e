from pathlib import Path

import pytest

from repomirror.config import build_mirror_options, load_config
from repomirror.errors import ConfigError
from repomirror.github_rest import DEFAULT_API_URL
from repomirror.models import DirtyStrategy, RateLimitConfig

CONFIG = """
storage:
  clone_dir: $MIRROR_ROOT
  store_file: /var/lib/repomirror/repos.json
github:
  api_url: https://ghe.example.com/api/v3
mirror:
  parallel: 6
  dirty_strategy: stash
  network_retries: 5
  shallow: true
rate_limit:
  max_retries: 8
  initial_backoff: 0.5
logging:
  json_enabled: true
  level: DEBUG
"""


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("REPOMIRROR_CLONE_DIR", "REPOMIRROR_STORE_FILE", "REPOMIRROR_API_URL"):
        monkeypatch.delenv(var, raising=False)


def test_missing_file_gives_defaults(tmp_path: Path):
    cfg = load_config(tmp_path / "nope.yaml")
    assert cfg.clone_dir == "~/repomirror"
    assert cfg.api_url == DEFAULT_API_URL
    assert cfg.parallel == 3
    assert cfg.rate_limit == RateLimitConfig()
    assert cfg.source_file is None


def test_loads_every_section(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("MIRROR_ROOT", "/srv/mirror")
    path = tmp_path / "repomirror.config.yaml"
    path.write_text(CONFIG, encoding="utf-8")

    cfg = load_config(path)

    assert cfg.clone_dir == "/srv/mirror"
    assert cfg.store_file == "/var/lib/repomirror/repos.json"
    assert cfg.api_url == "https://ghe.example.com/api/v3"
    assert (cfg.parallel, cfg.dirty_strategy, cfg.network_retries, cfg.shallow) == (6, "stash", 5, True)
    assert cfg.rate_limit.max_retries == 8
    assert cfg.rate_limit.initial_backoff == 0.5
    assert cfg.rate_limit.max_backoff == 120.0
    assert cfg.logging_json_enabled is True
    assert cfg.logging_level == "DEBUG"
    assert cfg.source_file == path


def test_environment_overrides_file(tmp_path: Path, monkeypatch):
    path = tmp_path / "c.yaml"
    path.write_text("storage:\n  clone_dir: /from/file\n", encoding="utf-8")
    monkeypatch.setenv("REPOMIRROR_CLONE_DIR", "/from/env")
    assert load_config(path).clone_dir == "/from/env"


@pytest.mark.parametrize(
    "content",
    ["storage: [unclosed", "- just\n- a list\n", "mirror: 3\n", "mirror:\n  parallel: lots\n"],
)
def test_invalid_files_raise_config_error(tmp_path: Path, content: str):
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def _options(**overrides):
    kw = dict(parallel=3, max_retries=5, network_retries=3, dirty_strategy="skip")
    kw.update(overrides)
    return build_mirror_options(**kw)


def test_build_options_carries_values():
    base = RateLimitConfig(max_retries=5, initial_backoff=2.0, max_backoff=60.0, backoff_multiplier=3.0)
    opts = build_mirror_options(
        parallel=10,
        max_retries=20,
        network_retries=10,
        dirty_strategy="RESET",
        name_filter="^svc-",
        skip_archived=False,
        public_only=True,
        shallow=True,
        base_rate_limit=base,
    )
    assert opts.parallel == 10
    assert opts.dirty_strategy is DirtyStrategy.RESET
    assert opts.name_filter is not None and opts.name_filter.search("svc-auth")
    assert opts.rate_limit == RateLimitConfig(20, 2.0, 60.0, 3.0)
    assert (opts.skip_archived, opts.public_only, opts.shallow) == (False, True, True)


@pytest.mark.parametrize(
    "overrides",
    [
        {"parallel": 0},
        {"parallel": 11},
        {"max_retries": 0},
        {"max_retries": 21},
        {"network_retries": 0},
        {"network_retries": 11},
        {"dirty_strategy": "nuke"},
        {"name_filter": "("},
    ],
)
def test_build_options_rejects_out_of_range(overrides):
    with pytest.raises(ConfigError):
        _options(**overrides)

from pathlib import Path

import pytest

from repomirror.auth import TokenResolverConfig, TokenSource, resolve_github_token
from repomirror.errors import AuthenticationError


def _no_gh(host: str) -> None:
    return None


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path: Path):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GH_TOKEN", raising=False)
    monkeypatch.chdir(tmp_path)


def test_flag_wins_over_environment(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")
    assert resolve_github_token("flag-token", gh_lookup=_no_gh) == ("flag-token", TokenSource.FLAG)


def test_github_token_before_gh_token(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "primary")
    monkeypatch.setenv("GH_TOKEN", "secondary")
    assert resolve_github_token(gh_lookup=_no_gh) == ("primary", TokenSource.ENV_GITHUB)


def test_gh_token_env(monkeypatch):
    monkeypatch.setenv("GH_TOKEN", "secondary")
    assert resolve_github_token(gh_lookup=_no_gh) == ("secondary", TokenSource.ENV_GH)


def test_dotenv_file(tmp_path: Path):
    (tmp_path / ".env").write_text("GITHUB_TOKEN=from-dotenv\n", encoding="utf-8")
    assert resolve_github_token(gh_lookup=_no_gh) == ("from-dotenv", TokenSource.DOTENV)


def test_gh_cli_fallback():
    seen: list[str] = []

    def lookup(host: str) -> str:
        seen.append(host)
        return "from-gh"

    cfg = TokenResolverConfig(host="ghe.example.com")
    assert resolve_github_token(config=cfg, gh_lookup=lookup) == ("from-gh", TokenSource.GH_CLI)
    assert seen == ["ghe.example.com"]


def test_gh_cli_can_be_disabled():
    cfg = TokenResolverConfig(use_gh_cli=False)
    with pytest.raises(AuthenticationError):
        resolve_github_token(config=cfg, gh_lookup=lambda host: "never")


def test_missing_token_explains_sources():
    with pytest.raises(AuthenticationError) as excinfo:
        resolve_github_token(gh_lookup=_no_gh)
    assert "GITHUB_TOKEN" in str(excinfo.value)
    assert "--token" in str(excinfo.value)

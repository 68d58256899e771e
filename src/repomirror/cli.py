"""repomirror CLI.

Subcommands:
  mirror  -> clone or update every repository of an organization / user
  list    -> show the repositories a mirror run would consider (no disk access)
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from repomirror.auth import resolve_github_token
from repomirror.config import CONFIG_DEFAULT, MirrorConfig, build_mirror_options, load_config
from repomirror.errors import (
    AuthenticationError,
    ConfigError,
    InvalidOrgNameError,
    ListingError,
    MirrorCancelledError,
    MirrorError,
    redact,
)
from repomirror.executor import execute_mirror_batch
from repomirror.filters import apply_filters
from repomirror.github_rest import GitHubRestClient
from repomirror.lister import RemoteLister
from repomirror.logging import StructuredLogger, configure_logging
from repomirror.models import MirrorOptions
from repomirror.planner import prepare_mirror, validate_org_name
from repomirror.report import (
    ConsoleProgress,
    batch_result_to_dict,
    log_dry_run_plan,
    log_mirror_summary,
    plan_to_dict,
    render_batch_summary,
    render_dry_run_plan,
)
from repomirror.store import RepoStore
from repomirror.ux import print_error, print_info, print_warning

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("name", help="Organization or user name")
    p.add_argument("--config", default=CONFIG_DEFAULT)
    p.add_argument("--token", help="GitHub token (overrides GITHUB_TOKEN / GH_TOKEN)")
    archived = p.add_mutually_exclusive_group()
    archived.add_argument(
        "--skip-archived",
        dest="skip_archived",
        action="store_true",
        default=None,
        help="Skip archived repositories (default)",
    )
    archived.add_argument(
        "--include-archived", dest="skip_archived", action="store_false", help="Include archived repositories"
    )
    p.add_argument("--public-only", action="store_true", default=None)
    p.add_argument("--filter", dest="name_filter", help="Regex repository names must match")
    p.add_argument("--max-retries", type=int, help="Max GitHub API retry attempts (1-20)")
    p.add_argument("--log-level", choices=["debug", "info", "warn", "error"])
    p.add_argument("--json", action="store_true", help="Emit logs as JSON lines")


def _build_parser() -> argparse.ArgumentParser:
    """Construct top-level CLI parser with subcommands."""
    p = _FormatterArgumentParser(
        prog="repomirror", description="Mirror every repository of a GitHub organization or user"
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress informational logging (env: REPOMIRROR_QUIET=1)",
    )
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    pm = sub.add_parser("mirror", help="Clone missing repositories and update existing ones")
    _add_common(pm)
    pm.add_argument("--dry-run", action="store_true", help="Show the plan without changing anything")
    pm.add_argument("--shallow", action="store_true", default=None, help="Clone with --depth 1")
    pm.add_argument("--parallel", type=int, help="Concurrent operations (1-10)")
    pm.add_argument("--dirty-strategy", choices=["skip", "stash", "reset"])
    pm.add_argument("--network-retries", type=int, help="Max git network attempts (1-10)")
    pm.add_argument("--plan-json", type=Path, help="Write the computed plan to a JSON file")
    pm.add_argument("--summary-json", type=Path, help="Write the batch results to a JSON file")

    pl = sub.add_parser("list", help="List repositories that would be mirrored")
    _add_common(pl)
    return p


def _pick(value: Any, fallback: Any) -> Any:
    return fallback if value is None else value


def _configure_logger(args: argparse.Namespace, cfg: MirrorConfig) -> StructuredLogger:
    quiet = args.quiet or os.environ.get("REPOMIRROR_QUIET") == "1"
    level = "WARNING" if quiet else (args.log_level or cfg.logging_level)
    return configure_logging(json_logging=args.json or cfg.logging_json_enabled, level=level)


def _options(args: argparse.Namespace, cfg: MirrorConfig) -> MirrorOptions:
    return build_mirror_options(
        parallel=_pick(getattr(args, "parallel", None), cfg.parallel),
        max_retries=_pick(args.max_retries, cfg.rate_limit.max_retries),
        network_retries=_pick(getattr(args, "network_retries", None), cfg.network_retries),
        dirty_strategy=_pick(getattr(args, "dirty_strategy", None), cfg.dirty_strategy),
        name_filter=args.name_filter,
        skip_archived=_pick(args.skip_archived, cfg.skip_archived),
        public_only=_pick(args.public_only, cfg.public_only),
        shallow=_pick(getattr(args, "shallow", None), cfg.shallow),
        base_rate_limit=cfg.rate_limit,
    )


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def _cmd_mirror(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    logger = _configure_logger(args, cfg)
    validate_org_name(args.name)
    opts = _options(args, cfg)
    token, source = resolve_github_token(args.token)
    logger.debug("token resolved", source=source.value)

    store = RepoStore(cfg.store_file, cfg.clone_dir)
    print(f"Fetching repositories from '{args.name}'...")
    plan = prepare_mirror(args.name, token, opts, store=store, logger=logger, api_url=cfg.api_url)

    if not plan.repos:
        logger.warning("no repositories found to mirror", org=args.name)
        print("\nNo repositories found to mirror.")
        return EXIT_OK
    if args.plan_json:
        _write_json(args.plan_json, plan_to_dict(plan))
    if args.dry_run:
        render_dry_run_plan(plan)
        if logger.json_logging:
            log_dry_run_plan(plan, logger)
        return EXIT_OK

    print(f"\nMirroring {len(plan.repos)} repositories (parallel: {plan.parallel})...\n")
    result = execute_mirror_batch(plan, logger, store=store, observer=ConsoleProgress())
    render_batch_summary(result)
    if logger.json_logging:
        log_mirror_summary(result, logger)
    if args.summary_json:
        _write_json(args.summary_json, batch_result_to_dict(result))
    if result.failed:
        print_error(f"{result.failed} repositories failed to mirror")
        return EXIT_FAILED
    return EXIT_OK


def _cmd_list(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    logger = _configure_logger(args, cfg)
    validate_org_name(args.name)
    opts = _options(args, cfg)
    token, _ = resolve_github_token(args.token)
    lister = RemoteLister(
        GitHubRestClient(token=token, base_url=cfg.api_url), opts.rate_limit, logger=logger
    )
    try:
        repos, is_user = lister.fetch_repos(args.name)
    except (ListingError, MirrorCancelledError):
        raise
    except Exception as exc:
        raise ListingError(f"failed to fetch repositories: {exc}") from exc
    filtered = apply_filters(repos, opts)
    kind = "user" if is_user else "organization"
    print_info(f"{len(filtered)} of {len(repos)} repositories in {kind} '{args.name}'")
    for repo in filtered:
        markers = " ".join(
            m
            for m, on in (("[private]", repo.private), ("[archived]", repo.archived), ("[fork]", repo.fork))
            if on
        )
        print(f"  * {repo.name}" + (f" {markers}" if markers else ""))
    return EXIT_OK


_COMMANDS = {"mirror": _cmd_mirror, "list": _cmd_list}


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        return _COMMANDS[args.cmd](args)
    except (ConfigError, InvalidOrgNameError) as exc:
        print_error(str(exc))
        return EXIT_USAGE
    except MirrorCancelledError as exc:
        print_warning(str(exc), stream=sys.stderr)
        return EXIT_INTERRUPTED
    except (AuthenticationError, ListingError) as exc:
        print_error(f"failed to prepare mirror: {redact(str(exc))}")
        return EXIT_FAILED
    except MirrorError as exc:
        print_error(redact(str(exc)))
        return EXIT_FAILED
    except KeyboardInterrupt:
        print_warning("interrupted", stream=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

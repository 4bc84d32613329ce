"""
cli.py

Responsibility: CLI entrypoint for workflowbot.

High-level flow (per command):
1) Load settings (env + optional YAML config + CLI overrides) -> `Settings`
2) Load templates (update-workflows only) -> template set
3) Build the GitHub client and the job for the selected strategy
4) Walk the user's repositories -> `RunSummary`, printed at the end

This module should orchestrate behavior but keep concerns isolated:
- Settings: `config.py`
- Templates: `templates.py`
- GitHub API: `github_client.py`
- Per-repository work: `job.py`, driven by `driver.py`
"""

from __future__ import annotations

import argparse
import logging
from types import MappingProxyType

from workflowbot.config import ConfigError, Settings, load_settings
from workflowbot.driver import ListingError, QuotaExhaustedError, RunSummary, run
from workflowbot.github_client import GitHubClient, GitHubError
from workflowbot.job import STRATEGIES, BranchCleanupError, Job
from workflowbot.printer import ScopePrinter
from workflowbot.templates import TemplateError, load_templates

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {
        "user": args.user,
        "templates_dir": getattr(args, "templates_dir", None),
        "merge": True if getattr(args, "merge", False) else None,
        "page_size": args.page_size,
        "quota_floor": args.quota_floor,
        "quota_policy": args.quota_policy,
        "api_base": args.api_base,
    }
    return load_settings(args.config, overrides=overrides)


def _print_summary(printer: ScopePrinter, summary: RunSummary, command: str) -> None:
    printer.rule("Finished")
    if command == "prune-branches":
        if summary.deleted_branches:
            printer.ok("%d stale branches deleted", len(summary.deleted_branches))
        else:
            printer.info("No stale branches found")
    elif summary.pull_requests == 0:
        printer.info("No Pull Requests created in Go repositories by this job")
    else:
        printer.ok("%d Pull Requests created in Go repositories", summary.pull_requests)
        links = printer.add_prefix("--")
        for url in summary.pr_urls:
            links.info(url)

    if summary.failed:
        printer.error("%d repositories failed", len(summary.failed))
        failures = printer.add_prefix("--")
        for name, reason in summary.failed:
            failures.error("%s: %s", name, reason)

    if summary.stopped_on_quota is not None:
        printer.error("Listing stopped early with %d API calls left; remaining repositories were not processed", summary.stopped_on_quota)


def run_cmd(args: argparse.Namespace) -> int:
    printer = ScopePrinter()
    try:
        settings = _settings_from_args(args)
        strategy = STRATEGIES[args.command]
        if strategy.finalize:
            templates = load_templates(settings.templates_dir)
        else:
            templates = MappingProxyType({})

        client = GitHubClient(settings.github_token, api_base=settings.api_base)
        job = Job(
            client,
            settings.user,
            templates,
            strategy=strategy,
            branch_prefix=settings.branch_prefix,
            merge=settings.merge,
            printer=printer,
        )
        summary = run(
            client,
            job,
            page_size=settings.page_size,
            quota_floor=settings.quota_floor,
            quota_policy=settings.quota_policy,
            marker_file=settings.marker_file,
            printer=printer,
        )
    except (ConfigError, TemplateError, ListingError, QuotaExhaustedError, BranchCleanupError, GitHubError) as e:
        printer.rule("Finished")
        printer.error("Failure: %s", e)
        logger.debug("Run aborted", exc_info=True)
        return 1

    _print_summary(printer, summary, args.command)
    return 0


def _add_common_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--user", default=None, help="GitHub user whose repositories are processed (or set GITHUB_USER)")
    p.add_argument("--config", default=None, help="Optional YAML config file")
    p.add_argument("--page-size", type=int, default=None, help="Repositories per listing page (default: 30)")
    p.add_argument("--quota-floor", type=int, default=None, help="Minimum remaining API quota to keep listing (default: 300)")
    p.add_argument(
        "--quota-policy",
        choices=["stop", "fail"],
        default=None,
        help="What to do when the quota drops below the floor (default: stop)",
    )
    p.add_argument("--api-base", default=None, help="GitHub API base URL (default: https://api.github.com)")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.set_defaults(func=run_cmd)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="workflowbot", description="Keep GitHub Actions workflows in Go repositories in sync")
    sub = p.add_subparsers(dest="command", required=True)

    u = sub.add_parser("update-workflows", help="Reconcile .github/workflows with the templates and open PRs")
    u.add_argument("--templates-dir", default=None, help="Templates directory (default: templates)")
    u.add_argument("--merge", action="store_true", help="Merge each pull request right after creating it")
    _add_common_options(u)

    b = sub.add_parser("prune-branches", help="Delete working branches left behind by earlier runs")
    _add_common_options(b)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(bool(args.verbose))
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())

"""
driver.py

Responsibility: Walk the user's repositories and run the job on each one in scope.

Repositories are handled strictly one at a time. A `RepositoryError` is reported and
the run moves on; listing failures, quota exhaustion under the `fail` policy, and
branch cleanup failures abort the run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from workflowbot.github_client import GitHubClient, GitHubError
from workflowbot.job import Job, RepositoryError
from workflowbot.printer import ScopePrinter
from workflowbot.repo_filter import MARKER_FILE, check_repository

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 30
DEFAULT_QUOTA_FLOOR = 300


class ListingError(RuntimeError):
    pass


class QuotaExhaustedError(RuntimeError):
    pass


class QuotaPolicy(str, Enum):
    STOP = "stop"
    FAIL = "fail"


@dataclass
class RunSummary:
    processed: int = 0
    skipped: int = 0
    failed: list[tuple[str, str]] = field(default_factory=list)
    pr_urls: list[str] = field(default_factory=list)
    deleted_branches: list[str] = field(default_factory=list)
    # Remaining quota when listing stopped early, None if every page was read.
    stopped_on_quota: int | None = None

    @property
    def pull_requests(self) -> int:
        return len(self.pr_urls)


def run(
    client: GitHubClient,
    job: Job,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    quota_floor: int = DEFAULT_QUOTA_FLOOR,
    quota_policy: QuotaPolicy = QuotaPolicy.STOP,
    marker_file: str = MARKER_FILE,
    printer: ScopePrinter | None = None,
) -> RunSummary:
    printer = printer or job.printer
    summary = RunSummary()
    printer.info("Fetching all repositories for user '%s'", job.user)

    page: int | None = 1
    while page is not None:
        try:
            listing = client.list_repositories(job.user, page=page, per_page=page_size)
        except GitHubError as e:
            raise ListingError(f"error listing repositories: {e}") from e

        if listing.remaining is not None:
            if listing.remaining < quota_floor:
                if QuotaPolicy(quota_policy) is QuotaPolicy.FAIL:
                    raise QuotaExhaustedError(
                        f"remaining quota {listing.remaining} is below the floor of {quota_floor}"
                    )
                printer.error("Rate limit reached. Remaining Quota: %d. Listing stopped.", listing.remaining)
                summary.stopped_on_quota = listing.remaining
                break
            printer.info("Remaining Quota: %d", listing.remaining)

        for repo in listing.repos:
            printer.info("Processing repository '%s'", repo.name)
            job.next()
            loop_printer = printer.add_prefix("-")

            decision = check_repository(client, repo, job.user, marker_file)
            if not decision.accepted:
                if decision.error:
                    loop_printer.error(decision.reason)
                else:
                    loop_printer.skipped(decision.reason)
                summary.skipped += 1
                continue

            loop_printer.info("Go package/project detected")
            summary.processed += 1
            try:
                job.process(repo)
            except RepositoryError as e:
                loop_printer.error("Repository '%s' failed: %s", repo.name, e)
                logger.debug("Repository %s failed", repo.name, exc_info=True)
                summary.failed.append((repo.name, str(e)))

        page = listing.next_page

    summary.pr_urls = list(job.pr_urls)
    summary.deleted_branches = list(job.deleted_branches)
    return summary

"""
job.py

Responsibility: Per-repository reconciliation and pull request lifecycle.

A `Job` holds run-wide data (user, templates, working branch name, merge policy) and
a `Strategy` that does the per-repository work. The default strategy reconciles the
files under `.github/workflows` against the template set inside a lazily created
working branch; `Job.finalize` then opens (and optionally merges) a pull request, or
deletes the branch when nothing actually changed.

Per repository:

    Idle -> BranchPending -> BranchCreated -> Reconciled -> PR-Open | PR-Merged
                                                         -> Branch-Deleted-NoChange
    any failure -> branch deleted (if it exists) -> Failed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Mapping, NoReturn

from workflowbot.github_client import GitHubClient, GitHubError, NotFoundError, RemoteFile, RepoInfo
from workflowbot.outcome import Outcome, Result
from workflowbot.printer import ScopePrinter

logger = logging.getLogger(__name__)

WORKFLOWS_DIR = ".github/workflows"
BRANCH_PREFIX = "robot-works-"
BRANCH_SAFE_TIME_FORMAT = "%Y-%m-%dT%H%M%S%z"
PRIMARY_BASE_BRANCH = "main"
FALLBACK_BASE_BRANCH = "master"
PR_TITLE = "Update Workflow YAML files"
PR_BODY = "This PR updates workflow files."
MERGE_TITLE = "Merging PR"


class RepositoryError(RuntimeError):
    """Failure that aborts the current repository only."""


class BranchCleanupError(RuntimeError):
    """The working branch could not be removed; aborts the whole run."""

    def __init__(self, message: str, original: BaseException | None = None) -> None:
        if original is not None:
            message = f"{message}: {original}"
        super().__init__(message)
        self.original = original


class Action(Enum):
    UPDATE = "update"
    DELETE = "delete"
    CREATE = "create"

    @property
    def requires_content(self) -> bool:
        return self in (Action.UPDATE, Action.CREATE)

    @property
    def requires_sha(self) -> bool:
        return self in (Action.UPDATE, Action.DELETE)


def make_branch_name(prefix: str = BRANCH_PREFIX, now: datetime | None = None) -> str:
    now = now or datetime.now().astimezone()
    return prefix + now.strftime(BRANCH_SAFE_TIME_FORMAT)


@dataclass
class Session:
    branch: str
    base_branch: str = PRIMARY_BASE_BRANCH
    branch_created: bool = False

    def reset(self) -> None:
        self.branch_created = False
        self.base_branch = PRIMARY_BASE_BRANCH


@dataclass(frozen=True)
class Strategy:
    name: str
    apply: Callable[["Job", RepoInfo], Outcome]
    # Whether the outcome goes through the pull request finalizer.
    finalize: bool = True


class Job:
    def __init__(
        self,
        client: GitHubClient,
        user: str,
        templates: Mapping[str, bytes],
        *,
        strategy: Strategy | None = None,
        branch: str | None = None,
        branch_prefix: str = BRANCH_PREFIX,
        merge: bool = False,
        printer: ScopePrinter | None = None,
    ) -> None:
        self.client = client
        self.user = user
        self.templates = templates
        self.strategy = strategy or UPDATE_WORKFLOWS
        self.branch_prefix = branch_prefix
        self.session = Session(branch=branch or make_branch_name(branch_prefix))
        self.merge = merge
        self.printer = printer or ScopePrinter()

        self.counter = 0
        self.pr_urls: list[str] = []
        self.deleted_branches: list[str] = []

    def next(self) -> None:
        """Forget everything about the previous repository."""
        self.session.reset()

    def process(self, repo: RepoInfo) -> Outcome:
        """
        Run the strategy for one repository and, if the strategy asks for it, finalize.

        Raises `RepositoryError` when the repository fails and `BranchCleanupError`
        when a failed or empty run leaves a branch that cannot be deleted.
        """
        try:
            outcome = self.strategy.apply(self, repo)
        except (GitHubError, RepositoryError) as e:
            if self.strategy.finalize:
                # Cleans up the branch, then re-raises `e` as a RepositoryError.
                self.finalize(repo, Outcome(), e)
            _reraise(e)

        if self.strategy.finalize:
            self.finalize(repo, outcome)
        return outcome

    # -- per-file actions -------------------------------------------------

    def create_branch_and_do(self, repo: RepoInfo, file_path: str, content: bytes | None, action: Action) -> Outcome:
        """
        Apply one file action, creating the working branch first if this is the first
        real change in the repository.

        An update whose content already matches is reported as skipped and never
        creates the branch.
        """
        printer = self.printer.scope("-----")
        result = Outcome()

        if action.requires_content and not content:
            raise RepositoryError("content cannot be empty upon updating a file")

        file: RemoteFile | None = None
        if action.requires_sha:
            ref = self.session.branch if self.session.branch_created else None
            try:
                fetched = self.client.get_contents(self.user, repo.name, file_path, ref=ref)
            except GitHubError as e:
                raise RepositoryError(f"error retrieving file: {e}") from e
            if not isinstance(fetched, RemoteFile):
                raise RepositoryError(f"error retrieving file: '{file_path}' is a directory")
            file = fetched

        old_content = b""
        if action is Action.UPDATE:
            old_content = file.content or b""
            if content == old_content:
                printer.skipped("Content is the same.")
                result.add(Result.SKIPPED)
                return result

        if not self.session.branch_created:
            self.create_branch(repo)
            printer.ok("Branch '%s' created", self.session.branch)
            self.session.branch_created = True

        if action is Action.UPDATE:
            result.add(self._update_file(repo, file_path, content, file, old_content))
        elif action is Action.DELETE:
            self._delete_file(repo, file_path, file)
            result.add(Result.DELETED)
        else:
            self._create_file(repo, file_path, content)
            result.add(Result.CREATED)

        for label in result.labels():
            printer.ok(label)
        return result

    def create_branch(self, repo: RepoInfo) -> None:
        # A missing `main` falls back to `master` once; any other failure is final.
        try:
            sha = self.client.get_ref(self.user, repo.name, self.session.base_branch)
        except NotFoundError as e:
            if self.session.base_branch == FALLBACK_BASE_BRANCH:
                raise RepositoryError(f"error getting base branch ref: {e}") from e
            self.session.base_branch = FALLBACK_BASE_BRANCH
            try:
                sha = self.client.get_ref(self.user, repo.name, self.session.base_branch)
            except GitHubError as e2:
                raise RepositoryError(f"error getting base branch ref: {e2}") from e2
        except GitHubError as e:
            raise RepositoryError(f"error getting base branch ref: {e}") from e

        try:
            self.client.create_ref(self.user, repo.name, self.session.branch, sha)
        except GitHubError as e:
            raise RepositoryError(f"error creating new branch: {e}") from e
        logger.debug("Created %s on %s/%s from %s@%s", self.session.branch, self.user, repo.name, self.session.base_branch, sha)

    def _update_file(self, repo: RepoInfo, file_path: str, content: bytes, file: RemoteFile, old_content: bytes) -> Outcome:
        result = Outcome()
        try:
            self.client.update_file(
                self.user,
                repo.name,
                file_path,
                content,
                message=f"Update {file_path}",
                sha=file.sha,
                branch=self.session.branch,
            )
        except GitHubError as e:
            raise RepositoryError(f"error updating file: {e}") from e

        # Re-read from the working branch so a no-op write is not reported as an update.
        try:
            updated = self.client.get_contents(self.user, repo.name, file_path, ref=self.session.branch)
        except GitHubError as e:
            raise RepositoryError(f"error retrieving updated file: {e}") from e
        if not isinstance(updated, RemoteFile) or updated.content is None:
            raise RepositoryError(f"error decoding updated file content: '{file_path}'")

        if updated.content != old_content:
            result.add(Result.UPDATED)
        return result

    def _delete_file(self, repo: RepoInfo, file_path: str, file: RemoteFile) -> None:
        try:
            self.client.delete_file(
                self.user,
                repo.name,
                file_path,
                message=f"Delete {file_path}",
                sha=file.sha,
                branch=self.session.branch,
            )
        except GitHubError as e:
            raise RepositoryError(f"error deleting file: {e}") from e

    def _create_file(self, repo: RepoInfo, file_path: str, content: bytes) -> None:
        try:
            self.client.create_file(
                self.user,
                repo.name,
                file_path,
                content,
                message=f"Create {file_path}",
                branch=self.session.branch,
            )
        except GitHubError as e:
            raise RepositoryError(f"error creating file: {e}") from e

    # -- finalization -----------------------------------------------------

    def finalize(self, repo: RepoInfo, outcome: Outcome, error: BaseException | None = None) -> None:
        """
        Decide what happens to the working branch once the strategy is done.

        - failure, or a branch with no real change: delete the branch, re-raise the failure
        - real change: open a pull request, and merge it when `merge` is set
        """
        printer = self.printer.scope("-")

        if error is not None or (self.session.branch_created and not outcome.changed):
            if self.session.branch_created:
                self._delete_branch(repo, original=error)
                if error is None:
                    printer.info("No updates made. Branch '%s' deleted.", self.session.branch)
                else:
                    printer.info("Branch '%s' deleted after failure.", self.session.branch)
            if error is not None:
                _reraise(error)
            return

        if not outcome.changed:
            return

        try:
            pr = self.client.create_pull_request(
                self.user,
                repo.name,
                title=PR_TITLE,
                head=self.session.branch,
                base=self.session.base_branch,
                body=PR_BODY,
                maintainer_can_modify=True,
            )
        except GitHubError as e:
            failure = RepositoryError(f"error creating pull request: {e}")
            self._delete_branch(repo, original=failure)
            raise failure from e

        printer.info("Pull request created: %s", pr.html_url)
        self.pr_urls.append(pr.html_url)
        self.counter += 1

        if not self.merge:
            return

        try:
            self.client.merge_pull_request(self.user, repo.name, pr.number, commit_title=MERGE_TITLE)
        except GitHubError as e:
            raise RepositoryError(f"error merging pull request: {e}") from e

        try:
            self.client.delete_ref(self.user, repo.name, self.session.branch)
        except GitHubError as e:
            raise RepositoryError(f"error deleting branch after pr was merged '{self.session.branch}': {e}") from e
        self.session.branch_created = False
        printer.ok("Pull request merged, branch '%s' deleted", self.session.branch)

    def _delete_branch(self, repo: RepoInfo, original: BaseException | None = None) -> None:
        try:
            self.client.delete_ref(self.user, repo.name, self.session.branch)
        except GitHubError as e:
            raise BranchCleanupError(
                f"error deleting branch '{self.session.branch}' in '{repo.name}': {e}",
                original=original,
            ) from e
        self.session.branch_created = False
        logger.debug("Deleted %s on %s/%s", self.session.branch, self.user, repo.name)


def _reraise(error: BaseException) -> NoReturn:
    if isinstance(error, RepositoryError):
        raise error
    raise RepositoryError(str(error)) from error


def _apply(job: Job, repo: RepoInfo, name: str, path: str, content: bytes | None, action: Action) -> Outcome:
    try:
        return job.create_branch_and_do(repo, path, content, action)
    except (GitHubError, RepositoryError) as e:
        raise RepositoryError(f"unable to {action.value} '{name}': {e}") from e


def update_workflows(job: Job, repo: RepoInfo) -> Outcome:
    """
    Reconcile `.github/workflows` with the template set.

    Existing files named like a template are updated, other existing files are
    deleted, and templates with no existing counterpart are created.
    """
    printer = job.printer.scope("---")
    outcome = Outcome()

    try:
        listing = job.client.get_contents(job.user, repo.name, WORKFLOWS_DIR)
    except NotFoundError:
        printer.info("No %s directory found.", WORKFLOWS_DIR)
        listing = []
    except GitHubError as e:
        raise RepositoryError(f"error getting contents: {e}") from e

    if isinstance(listing, RemoteFile):
        raise RepositoryError(f"error getting contents: '{WORKFLOWS_DIR}' is not a directory")

    entries = [entry for entry in listing if entry.type == "file"]
    printer.info("Found %d files in %s", len(entries), WORKFLOWS_DIR)

    files_to_create = set(job.templates)
    for entry in entries:
        printer.info("Processing file '%s'", entry.name)
        if entry.name in job.templates:
            files_to_create.discard(entry.name)
            outcome |= _apply(job, repo, entry.name, entry.path, job.templates[entry.name], Action.UPDATE)
        else:
            outcome |= _apply(job, repo, entry.name, entry.path, None, Action.DELETE)

    for name in sorted(files_to_create):
        printer.info("Creating file '%s'", name)
        outcome |= _apply(job, repo, name, f"{WORKFLOWS_DIR}/{name}", job.templates[name], Action.CREATE)

    return outcome


def prune_branches(job: Job, repo: RepoInfo) -> Outcome:
    """
    Delete branches left behind by earlier runs (names starting with the branch prefix).
    """
    printer = job.printer.scope("---")
    outcome = Outcome()

    try:
        branches = job.client.list_branches(job.user, repo.name)
    except GitHubError as e:
        raise RepositoryError(f"error listing branches: {e}") from e

    for branch in branches:
        if not branch.startswith(job.branch_prefix):
            continue
        try:
            job.client.delete_ref(job.user, repo.name, branch)
        except GitHubError as e:
            raise RepositoryError(f"unable to delete branch '{branch}': {e}") from e
        printer.ok("Branch '%s' deleted", branch)
        job.deleted_branches.append(f"{repo.name}:{branch}")
        outcome.add(Result.DELETED)

    if not outcome.changed:
        printer.skipped("No stale branches")
    return outcome


UPDATE_WORKFLOWS = Strategy("update-workflows", update_workflows)
PRUNE_BRANCHES = Strategy("prune-branches", prune_branches, finalize=False)

STRATEGIES: dict[str, Strategy] = {s.name: s for s in (UPDATE_WORKFLOWS, PRUNE_BRANCHES)}

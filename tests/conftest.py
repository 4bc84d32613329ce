from __future__ import annotations

import hashlib
import io
from types import MappingProxyType
from typing import Any, Callable

import pytest
from rich.console import Console

from workflowbot.github_client import GitHubError, NotFoundError, PullRequestInfo, RemoteFile, RepoInfo, RepoPage
from workflowbot.printer import ScopePrinter


def _sha(content: bytes) -> str:
    return hashlib.sha1(content).hexdigest()


class FakeGitHub:
    """
    In-memory stand-in for `GitHubClient`.

    Each repository has branches; each branch holds a flat mapping of path -> bytes.
    Every call is recorded in `calls` as (method, repo, detail).
    """

    def __init__(self) -> None:
        self.repos: list[RepoInfo] = []
        self.branches: dict[str, dict[str, dict[str, bytes]]] = {}
        self.default_branch: dict[str, str] = {}
        self.pulls: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, str, Any]] = []
        self.remaining: list[int | None] = []
        self.swallow_updates = False
        self._failures: dict[str, tuple[Exception, Callable[..., bool]]] = {}

    # -- setup helpers ------------------------------------------------------

    def add_repo(
        self,
        name: str,
        *,
        owner: str = "alice",
        fork: bool = False,
        archived: bool = False,
        owner_type: str = "User",
        files: dict[str, bytes] | None = None,
        branches: tuple[str, ...] = ("main",),
    ) -> RepoInfo:
        repo = RepoInfo(
            owner=owner,
            name=name,
            fork=fork,
            archived=archived,
            owner_type=owner_type,
        )
        self.repos.append(repo)
        self.branches[name] = {b: dict(files or {}) for b in branches}
        self.default_branch[name] = branches[0] if branches else "main"
        self.pulls[name] = []
        return repo

    def fail(self, method: str, error: Exception, when: Callable[..., bool] | None = None) -> None:
        self._failures[method] = (error, when or (lambda *a, **kw: True))

    def calls_of(self, method: str, repo: str | None = None) -> list[tuple[str, str, Any]]:
        return [c for c in self.calls if c[0] == method and (repo is None or c[1] == repo)]

    def file(self, repo: str, branch: str, path: str) -> bytes | None:
        return self.branches[repo].get(branch, {}).get(path)

    def _record(self, method: str, repo: str, detail: Any = None, *args: Any, **kwargs: Any) -> None:
        self.calls.append((method, repo, detail))
        failure = self._failures.get(method)
        if failure is not None:
            error, when = failure
            if when(repo, detail, *args, **kwargs):
                raise error

    def _tree(self, repo: str, branch: str) -> dict[str, bytes]:
        tree = self.branches.get(repo, {}).get(branch)
        if tree is None:
            raise NotFoundError(f"GitHub API error 404: branch {branch} not found", status_code=404)
        return tree

    # -- client surface -----------------------------------------------------

    def list_repositories(self, user: str, *, page: int = 1, per_page: int = 30, sort: str = "updated") -> RepoPage:
        self._record("list_repositories", "", page)
        start = (page - 1) * per_page
        chunk = self.repos[start : start + per_page]
        remaining = self.remaining[page - 1] if page - 1 < len(self.remaining) else None
        next_page = page + 1 if start + per_page < len(self.repos) else None
        return RepoPage(repos=chunk, remaining=remaining, next_page=next_page)

    def get_contents(self, owner: str, repo: str, path: str, ref: str | None = None) -> RemoteFile | list[RemoteFile]:
        self._record("get_contents", repo, (path, ref))
        tree = self._tree(repo, ref or self.default_branch.get(repo, "main"))
        if path in tree:
            content = tree[path]
            return RemoteFile(name=path.rsplit("/", 1)[-1], path=path, sha=_sha(content), content=content)
        prefix = path.rstrip("/") + "/"
        children = sorted(p for p in tree if p.startswith(prefix) and "/" not in p[len(prefix) :])
        if not children:
            raise NotFoundError(f"GitHub API error 404 GET {path}: Not Found", status_code=404)
        return [RemoteFile(name=p[len(prefix) :], path=p, sha=_sha(tree[p])) for p in children]

    def create_file(self, owner: str, repo: str, path: str, content: bytes, *, message: str, branch: str) -> None:
        self._record("create_file", repo, path, branch=branch)
        tree = self._tree(repo, branch)
        if path in tree:
            raise GitHubError(f"GitHub API error 422 PUT {path}: sha wasn't supplied", status_code=422)
        tree[path] = content

    def update_file(self, owner: str, repo: str, path: str, content: bytes, *, message: str, sha: str, branch: str) -> None:
        self._record("update_file", repo, path, branch=branch)
        tree = self._tree(repo, branch)
        if path not in tree or _sha(tree[path]) != sha:
            raise GitHubError(f"GitHub API error 409 PUT {path}: sha does not match", status_code=409)
        if not self.swallow_updates:
            tree[path] = content

    def delete_file(self, owner: str, repo: str, path: str, *, message: str, sha: str, branch: str) -> None:
        self._record("delete_file", repo, path, branch=branch)
        tree = self._tree(repo, branch)
        if path not in tree or _sha(tree[path]) != sha:
            raise GitHubError(f"GitHub API error 409 DELETE {path}: sha does not match", status_code=409)
        del tree[path]

    def get_ref(self, owner: str, repo: str, branch: str) -> str:
        self._record("get_ref", repo, branch)
        self._tree(repo, branch)
        return f"{repo}@{branch}"

    def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        self._record("create_ref", repo, branch)
        if branch in self.branches[repo]:
            raise GitHubError("GitHub API error 422 POST refs: Reference already exists", status_code=422)
        source = sha.split("@", 1)[1]
        self.branches[repo][branch] = dict(self._tree(repo, source))

    def delete_ref(self, owner: str, repo: str, branch: str) -> None:
        self._record("delete_ref", repo, branch)
        if branch not in self.branches[repo]:
            raise GitHubError("GitHub API error 422 DELETE refs: Reference does not exist", status_code=422)
        del self.branches[repo][branch]

    def list_branches(self, owner: str, repo: str, *, per_page: int = 100) -> list[str]:
        self._record("list_branches", repo)
        return sorted(self.branches[repo])

    def create_pull_request(
        self,
        owner: str,
        repo: str,
        *,
        title: str,
        head: str,
        base: str,
        body: str = "",
        maintainer_can_modify: bool = True,
    ) -> PullRequestInfo:
        self._record("create_pull_request", repo, (head, base))
        number = len(self.pulls[repo]) + 1
        self.pulls[repo].append({"number": number, "title": title, "head": head, "base": base, "merged": False})
        return PullRequestInfo(number=number, html_url=f"https://github.com/{owner}/{repo}/pull/{number}")

    def merge_pull_request(self, owner: str, repo: str, number: int, *, commit_title: str = "") -> None:
        self._record("merge_pull_request", repo, number)
        pr = self.pulls[repo][number - 1]
        self.branches[repo][pr["base"]] = dict(self._tree(repo, pr["head"]))
        pr["merged"] = True


@pytest.fixture
def fake() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def printer(output: io.StringIO) -> ScopePrinter:
    return ScopePrinter(console=Console(file=output, width=200, color_system=None))


@pytest.fixture
def templates() -> MappingProxyType:
    return MappingProxyType({"a.yml": b"name: A\n", "b.yml": b"name: B\n"})

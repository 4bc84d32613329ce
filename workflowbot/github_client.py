"""
github_client.py

Responsibility: Isolate all direct GitHub REST API interaction.

This module must be the only place that:
- Constructs GitHub REST endpoints
- Sends HTTP requests to api.github.com
- Interprets GitHub API responses / error payloads (including rate-limit headers)

Everything else (filtering, reconciliation, PR lifecycle, CLI behavior) should use this client.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, quote, urlparse

import requests

logger = logging.getLogger(__name__)


class GitHubError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(GitHubError):
    pass


@dataclass(frozen=True)
class RepoInfo:
    owner: str
    name: str
    fork: bool = False
    archived: bool = False
    owner_type: str = "User"


@dataclass(frozen=True)
class RepoPage:
    repos: list[RepoInfo]
    remaining: int | None = None
    next_page: int | None = None


@dataclass(frozen=True)
class RemoteFile:
    """A file or directory entry; `sha` is the token required to update or delete it."""

    name: str
    path: str
    sha: str
    type: str = "file"
    content: bytes | None = None


@dataclass(frozen=True)
class PullRequestInfo:
    number: int
    html_url: str


def _next_page(response: requests.Response) -> int | None:
    url = response.links.get("next", {}).get("url")
    if not url:
        return None
    values = parse_qs(urlparse(url).query).get("page")
    if not values:
        return None
    return int(values[0])


def _remaining(response: requests.Response) -> int | None:
    raw = response.headers.get("X-RateLimit-Remaining")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _repo_info(data: dict[str, Any]) -> RepoInfo:
    owner = data.get("owner") or {}
    return RepoInfo(
        owner=str(owner.get("login") or ""),
        name=data["name"],
        fork=bool(data.get("fork")),
        archived=bool(data.get("archived")),
        owner_type=str(owner.get("type") or ""),
    )


def _remote_file(data: dict[str, Any]) -> RemoteFile:
    content: bytes | None = None
    if data.get("content") is not None and data.get("encoding", "base64") == "base64":
        # GitHub wraps base64 payloads at 60 columns.
        content = base64.b64decode(data["content"])
    return RemoteFile(
        name=data["name"],
        path=data["path"],
        sha=data["sha"],
        type=data.get("type") or "file",
        content=content,
    )


def _b64(content: bytes) -> str:
    return base64.b64encode(content).decode("ascii")


def _json(response: requests.Response, method: str, path: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise GitHubError(f"GitHub API returned invalid JSON {method} {path}: {e}", status_code=response.status_code) from e


class GitHubClient:
    def __init__(self, token: str, api_base: str = "https://api.github.com") -> None:
        if not token.strip():
            raise GitHubError("GitHub token is required.")
        self._token = token
        self._api_base = api_base.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "workflowbot",
        }

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> requests.Response:
        url = f"{self._api_base}{path}"
        logger.debug("%s %s params=%s", method, path, params)
        try:
            r = requests.request(method, url, headers=self._headers(), params=params, json=json_body, timeout=30)
        except requests.RequestException as e:
            raise GitHubError(f"GitHub API request failed {method} {path}: {e}") from e
        if r.status_code >= 400:
            try:
                payload = r.json()
            except ValueError:
                payload = {"message": r.text}
            message = payload.get("message", payload) if isinstance(payload, dict) else payload
            error_cls = NotFoundError if r.status_code == 404 else GitHubError
            raise error_cls(f"GitHub API error {r.status_code} {method} {path}: {message}", status_code=r.status_code)
        return r

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        r = self._send(method, path, params=params, json_body=json_body)
        if r.status_code == 204 or not r.content:
            return None
        return _json(r, method, path)

    def list_repositories(self, user: str, *, page: int = 1, per_page: int = 30, sort: str = "updated") -> RepoPage:
        """
        Return one page of repositories owned by `user`, most recently updated first.
        """
        r = self._send(
            "GET",
            f"/users/{user}/repos",
            params={"type": "owner", "sort": sort, "per_page": per_page, "page": page},
        )
        return RepoPage(
            repos=[_repo_info(item) for item in _json(r, "GET", f"/users/{user}/repos")],
            remaining=_remaining(r),
            next_page=_next_page(r),
        )

    def get_contents(self, owner: str, repo: str, path: str, ref: str | None = None) -> RemoteFile | list[RemoteFile]:
        """
        Return a `RemoteFile` for a file path, or a list of entries for a directory.

        Raises `NotFoundError` when the path does not exist at `ref`.
        """
        params = {"ref": ref} if ref else None
        data = self._request("GET", f"/repos/{owner}/{repo}/contents/{quote(path)}", params=params)
        if isinstance(data, list):
            return [_remote_file(item) for item in data]
        return _remote_file(data)

    def create_file(self, owner: str, repo: str, path: str, content: bytes, *, message: str, branch: str) -> None:
        body = {"message": message, "content": _b64(content), "branch": branch}
        self._request("PUT", f"/repos/{owner}/{repo}/contents/{quote(path)}", json_body=body)

    def update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: bytes,
        *,
        message: str,
        sha: str,
        branch: str,
    ) -> None:
        body = {"message": message, "content": _b64(content), "sha": sha, "branch": branch}
        self._request("PUT", f"/repos/{owner}/{repo}/contents/{quote(path)}", json_body=body)

    def delete_file(self, owner: str, repo: str, path: str, *, message: str, sha: str, branch: str) -> None:
        body = {"message": message, "sha": sha, "branch": branch}
        self._request("DELETE", f"/repos/{owner}/{repo}/contents/{quote(path)}", json_body=body)

    def get_ref(self, owner: str, repo: str, branch: str) -> str:
        """
        Return the commit SHA that `refs/heads/<branch>` points at.
        """
        data = self._request("GET", f"/repos/{owner}/{repo}/git/ref/heads/{quote(branch)}")
        return str(data["object"]["sha"])

    def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        body = {"ref": f"refs/heads/{branch}", "sha": sha}
        self._request("POST", f"/repos/{owner}/{repo}/git/refs", json_body=body)

    def delete_ref(self, owner: str, repo: str, branch: str) -> None:
        self._request("DELETE", f"/repos/{owner}/{repo}/git/refs/heads/{quote(branch)}")

    def list_branches(self, owner: str, repo: str, *, per_page: int = 100) -> list[str]:
        names: list[str] = []
        page: int | None = 1
        while page is not None:
            r = self._send("GET", f"/repos/{owner}/{repo}/branches", params={"per_page": per_page, "page": page})
            names.extend(str(item["name"]) for item in _json(r, "GET", f"/repos/{owner}/{repo}/branches"))
            page = _next_page(r)
        return names

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
        payload = {
            "title": title,
            "head": head,
            "base": base,
            "body": body,
            "maintainer_can_modify": maintainer_can_modify,
        }
        data = self._request("POST", f"/repos/{owner}/{repo}/pulls", json_body=payload)
        return PullRequestInfo(number=int(data["number"]), html_url=data["html_url"])

    def merge_pull_request(self, owner: str, repo: str, number: int, *, commit_title: str = "") -> None:
        body = {"commit_title": commit_title} if commit_title else {}
        self._request("PUT", f"/repos/{owner}/{repo}/pulls/{number}/merge", json_body=body)

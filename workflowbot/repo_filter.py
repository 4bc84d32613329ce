"""
repo_filter.py

Responsibility: Decide whether a repository is in scope for the bot.

A repository is in scope when it is an active, non-forked repository owned by the
target user account and carries the project marker file (`go.mod`) at its root.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from workflowbot.github_client import GitHubClient, GitHubError, NotFoundError, RepoInfo

logger = logging.getLogger(__name__)

MARKER_FILE = "go.mod"


@dataclass(frozen=True)
class FilterDecision:
    accepted: bool
    reason: str = ""
    # True when the rejection came from an unexpected API failure rather than a routine skip.
    error: bool = False


def check_repository(
    client: GitHubClient,
    repo: RepoInfo,
    user: str,
    marker_file: str = MARKER_FILE,
) -> FilterDecision:
    if repo.fork:
        return FilterDecision(False, "Fork")

    if repo.archived:
        return FilterDecision(False, "Archived")

    if repo.owner_type != "User":
        return FilterDecision(False, f"Not a user repository: {repo.owner_type}")

    if repo.owner.lower() != user.lower():
        return FilterDecision(False, f"Not owned by '{user}': {repo.owner}")

    try:
        client.get_contents(user, repo.name, marker_file)
    except NotFoundError:
        return FilterDecision(False, f"{marker_file} is not in the root directory")
    except GitHubError as e:
        logger.warning("Marker probe failed for %s/%s (status %s): %s", user, repo.name, e.status_code, e)
        return FilterDecision(False, f"Error getting contents: {e}", error=True)

    return FilterDecision(True, f"{marker_file} found")

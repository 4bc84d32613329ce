"""
workflowbot package

This package keeps the GitHub Actions workflows of a user's Go repositories in sync
with a canonical template set, one pull request per repository.

Key responsibilities are split across modules:
- `templates.py`: load the canonical workflow files from disk
- `github_client.py`: isolated GitHub REST API interactions
- `repo_filter.py`: decide which repositories are in scope
- `job.py`: per-repository reconciliation and pull request lifecycle
- `driver.py`: page through repositories and collect the run summary
- `cli.py`: CLI entrypoint and orchestration (settings -> templates -> run -> summary)
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"

"""Git remotes, the gh CLI and the GitHub issues endpoint.

Issues for coverage gaps are filed through ``gh`` when it is installed and
logged in. Otherwise :class:`GitHubAPI` posts them with a token.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from typing import TYPE_CHECKING, Any

import requests

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
_TOKEN_ENV = "GITHUB_TOKEN"
_REQUEST_TIMEOUT = 30

# https (optionally with credentials) and scp-like or ssh:// remotes
_REMOTE_PATTERNS = (
    re.compile(r"^https://(?:[^@/]+@)?github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$"),
    re.compile(r"^(?:ssh://)?git@github\.com[:/]([^/]+)/([^/]+?)(?:\.git)?/?$"),
)
_OWNER_REPO_RE = re.compile(r"^[\w.-]+/[\w.-]+$")


class GitHubAPIError(Exception):
    """The GitHub REST API could not be used or rejected a request."""


class GitOperationError(Exception):
    """A git command failed."""


def _git_executable() -> str:
    return shutil.which("git") or "git"


def gh_executable() -> str:
    """Path to ``gh``, or the bare name when it is not on PATH."""
    return shutil.which("gh") or "gh"


class GitHubAPI:
    """Token-authenticated client for the one endpoint covagent needs."""

    def __init__(self, token: str | None = None) -> None:
        """Create a client.

        Args:
            token: Personal access token. Falls back to ``$GITHUB_TOKEN``.

        Raises:
            GitHubAPIError: If neither is set.
        """
        token = token or os.environ.get(_TOKEN_ENV)
        if not token:
            raise GitHubAPIError(
                f"GitHub token required to create issues through the API. Set {_TOKEN_ENV} "
                "or install and authenticate the gh CLI."
            )
        self._session_headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def create_issue(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        labels: list[str] | None = None,
    ) -> dict[str, Any]:
        """``POST /repos/{owner}/{repo}/issues`` and return the created issue."""
        payload: dict[str, Any] = {"title": title, "body": body}
        if labels:
            payload["labels"] = labels

        logger.info("Opening issue in %s/%s: %s", owner, repo, title)
        url = f"{GITHUB_API_BASE}/repos/{owner}/{repo}/issues"
        issue: dict[str, Any] = self._post(url, payload)
        return issue

    def _post(self, url: str, payload: dict[str, Any]) -> Any:
        try:
            response = requests.post(
                url, json=payload, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            raise GitHubAPIError(f"POST request failed: {exc}") from exc


def is_gh_cli_available() -> bool:
    """True when ``gh`` runs and ``gh auth status`` reports a login."""
    for args in (["--version"], ["auth", "status"]):
        try:
            completed = subprocess.run(
                [gh_executable(), *args], capture_output=True, text=True, check=False
            )
        except FileNotFoundError:
            return False
        if completed.returncode != 0:
            logger.debug("gh %s exited with %d", " ".join(args), completed.returncode)
            return False
    return True


def get_remote_url(repo_path: Path) -> str:
    """URL of the ``origin`` remote of the repository at *repo_path*.

    Raises:
        GitOperationError: No origin remote, or git is unavailable.
    """
    try:
        completed = subprocess.run(
            [_git_executable(), "config", "--get", "remote.origin.url"],
            cwd=repo_path,
            capture_output=True,
            text=True,
            check=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError) as exc:
        raise GitOperationError(f"Failed to get remote URL: {exc}") from exc
    return completed.stdout.strip()


def parse_github_remote(url: str) -> tuple[str, str] | None:
    """``(owner, repo)`` from a GitHub remote URL, or None for other hosts."""
    url = url.strip()
    for pattern in _REMOTE_PATTERNS:
        if match := pattern.match(url):
            return match.group(1), match.group(2)
    return None


def is_owner_repo(value: str) -> bool:
    return _OWNER_REPO_RE.match(value) is not None

"""GitHub issue reporter for uncovered functions.

This reporter:
1. Creates one GitHub Issue per uncovered item
2. Formats the body with location, coverage and suggested next steps
3. Adds priority labels derived from the item severity
4. Supports both gh CLI (preferred) and the GitHub REST API
"""

from __future__ import annotations

import contextlib
import logging
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING

from covagent.utils.git import (
    GitHubAPI,
    GitHubAPIError,
    GitOperationError,
    get_remote_url,
    gh_executable,
    is_gh_cli_available,
    parse_github_remote,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from covagent.adapters.coverage import UncoveredItem

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 256
DEFAULT_LABELS = ("testing", "coverage")

_PRIORITY_LABELS = {
    "error": "priority-high",
    "warning": "priority-medium",
    "info": "priority-low",
}

# Minimum number of URL parts required to extract "issues" segment
_MIN_URL_PARTS_FOR_ISSUE = 2


def _run_subprocess(cmd: list[str], *, cwd: Path) -> subprocess.CompletedProcess[str]:
    """Run a gh command, raising CalledProcessError on failure."""
    return subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, check=True)


def validate_issue_title(title: str) -> None:
    """Validate an issue title.

    Raises:
        ValueError: If the title is empty or longer than 256 characters.
    """
    if not title.strip():
        raise ValueError("Issue title cannot be empty")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValueError(f"Issue title too long (max {MAX_TITLE_LENGTH} characters)")


def issue_number_from_url(url: str) -> int | None:
    """Extract the issue number from ``https://github.com/o/r/issues/123``."""
    parts = url.rstrip("/").split("/")
    if len(parts) >= _MIN_URL_PARTS_FOR_ISSUE and parts[-2] == "issues":
        with contextlib.suppress(ValueError):
            return int(parts[-1])
    return None


@dataclass
class IssueCreationResult:
    """Result of issue creation operation."""

    success: bool
    """Whether the issue was created (or would be, in a dry run)."""

    title: str = ""
    """Title of the issue."""

    issue_url: str | None = None
    """URL of the created issue."""

    issue_number: int | None = None
    """Issue number."""

    error: str | None = None
    """Error message if creation failed."""

    dry_run: bool = False
    """True when nothing was sent to GitHub."""


class GitHubIssueReporter:
    """Reporter that creates GitHub Issues for uncovered functions.

    Supports two modes:
    1. gh CLI mode (preferred): Uses ``gh issue create``
    2. GitHub API mode: Uses the REST API with ``GITHUB_TOKEN``

    The mode is auto-detected from gh CLI availability unless forced.
    """

    def __init__(
        self,
        repo_path: Path,
        *,
        repo: str = "",
        labels: Sequence[str] = DEFAULT_LABELS,
        use_gh_cli: bool | None = None,
    ) -> None:
        """Initialize the GitHub issue reporter.

        Args:
            repo_path: Path to the git repository.
            repo: ``owner/name`` target. Empty means parse the origin remote.
            labels: Labels added to every issue.
            use_gh_cli: Force gh CLI usage. If None, auto-detect.

        Raises:
            GitHubAPIError: If API mode is needed but no token is available.
        """
        self._repo_path = repo_path.resolve()
        self._labels = list(labels)
        self._use_gh_cli = is_gh_cli_available() if use_gh_cli is None else use_gh_cli

        if self._use_gh_cli:
            logger.info("Using gh CLI for issue creation")
            self._api = None
        else:
            logger.info("Using GitHub API for issue creation")
            self._api = GitHubAPI()

        self._explicit_repo = bool(repo)
        self._owner, self._repo = self._resolve_repository(repo)
        if self._owner:
            logger.info("Configured for repository: %s/%s", self._owner, self._repo)

    @property
    def uses_gh_cli(self) -> bool:
        return self._use_gh_cli

    def create_issues(
        self,
        items: Sequence[UncoveredItem],
        *,
        dry_run: bool = False,
    ) -> list[IssueCreationResult]:
        """Create one issue per item; failures are returned, not raised."""
        return [self.create_coverage_issue(item, dry_run=dry_run) for item in items]

    def create_coverage_issue(
        self,
        item: UncoveredItem,
        *,
        dry_run: bool = False,
    ) -> IssueCreationResult:
        """Create a GitHub issue for an uncovered item."""
        title = item.title
        try:
            validate_issue_title(title)
        except ValueError as exc:
            return IssueCreationResult(success=False, title=title, error=str(exc))

        if dry_run:
            logger.info("Dry run: would create issue %s", title)
            return IssueCreationResult(success=True, title=title, dry_run=True)

        body = build_issue_body(item)
        labels = self.labels_for(item)

        try:
            if self._use_gh_cli:
                result = self._create_issue_with_gh_cli(title, body, labels)
            else:
                result = self._create_issue_with_api(title, body, labels)
        except GitHubAPIError as exc:
            logger.error("Failed to create issue: %s", exc)
            return IssueCreationResult(success=False, title=title, error=str(exc))
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            logger.error("gh issue create failed: %s", stderr or exc)
            return IssueCreationResult(success=False, title=title, error=stderr or str(exc))
        except FileNotFoundError:
            return IssueCreationResult(
                success=False,
                title=title,
                error="gh CLI not found. Is gh installed and authenticated?",
            )

        logger.info("Created issue #%s: %s", result.issue_number, result.issue_url)
        return result

    def labels_for(self, item: UncoveredItem) -> list[str]:
        """Return configured labels plus the priority label for *item*."""
        labels = list(self._labels)
        priority = _PRIORITY_LABELS[item.severity]
        if priority not in labels:
            labels.append(priority)
        return labels

    def _resolve_repository(self, repo: str) -> tuple[str | None, str | None]:
        if repo:
            owner, _, name = repo.partition("/")
            return owner, name

        try:
            remote_url = get_remote_url(self._repo_path)
        except GitOperationError as exc:
            logger.warning("Could not read origin remote: %s", exc)
            return None, None

        parsed = parse_github_remote(remote_url)
        if parsed is None:
            logger.warning("Could not parse GitHub owner/repo from remote URL: %s", remote_url)
            return None, None
        return parsed

    def _create_issue_with_gh_cli(
        self, title: str, body: str, labels: list[str]
    ) -> IssueCreationResult:
        """Create issue using gh CLI.

        Raises:
            subprocess.CalledProcessError: If gh CLI command fails.
        """
        cmd = [gh_executable(), "issue", "create", "--title", title, "--body", body]
        if self._explicit_repo and self._owner:
            cmd.extend(["--repo", f"{self._owner}/{self._repo}"])
        for label in labels:
            cmd.extend(["--label", label])

        result = _run_subprocess(cmd, cwd=self._repo_path)

        # gh CLI prints the issue URL
        issue_url = result.stdout.strip()
        return IssueCreationResult(
            success=True,
            title=title,
            issue_url=issue_url,
            issue_number=issue_number_from_url(issue_url) if issue_url else None,
        )

    def _create_issue_with_api(
        self, title: str, body: str, labels: list[str]
    ) -> IssueCreationResult:
        """Create issue using GitHub API.

        Raises:
            GitHubAPIError: If API request fails.
        """
        if not self._api:
            raise GitHubAPIError("GitHub API not initialized")

        if not self._owner or not self._repo:
            raise GitHubAPIError("Repository owner/name not available")

        response = self._api.create_issue(
            owner=self._owner,
            repo=self._repo,
            title=title,
            body=body,
            labels=labels,
        )

        return IssueCreationResult(
            success=True,
            title=title,
            issue_url=response.get("html_url", ""),
            issue_number=response.get("number"),
        )


def build_issue_body(item: UncoveredItem) -> str:
    """Build the Markdown body for an uncovered-item issue."""
    kind = item.item_type.value.replace("_", " ")
    sections = [
        "## 🧪 Missing test coverage",
        "",
        f"The {kind} `{item.function}` in `{item.file}` is below the coverage threshold.",
        "",
        "### Details",
        "",
        f"- **File:** `{item.file}`",
        f"- **Line:** {item.line}",
        f"- **Function:** `{item.function}`",
        f"- **Coverage:** {item.coverage_percentage:.1f}%",
        f"- **Type:** {kind.title()}",
        f"- **Severity:** {item.severity.upper()}",
        "",
        "### Suggested actions",
        "",
        f"- Add unit tests that call `{item.function}` directly",
        "- Cover error paths and edge cases, not only the happy path",
        "- Re-run coverage to confirm the function is now exercised",
        "",
        "---",
        "*Created by covagent*",
    ]
    return "\n".join(sections)

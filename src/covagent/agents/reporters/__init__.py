"""Reporters for coverage gap results."""

from __future__ import annotations

from covagent.agents.reporters.csv_reporter import CSVReporter
from covagent.agents.reporters.github_issue import GitHubIssueReporter, IssueCreationResult
from covagent.agents.reporters.json_reporter import JSONReporter
from covagent.agents.reporters.markdown_reporter import MarkdownReporter
from covagent.agents.reporters.render import OUTPUT_FORMATS, render_report, render_text
from covagent.agents.reporters.terminal import CLIReporter, reporter

__all__ = [
    "OUTPUT_FORMATS",
    "CLIReporter",
    "CSVReporter",
    "GitHubIssueReporter",
    "IssueCreationResult",
    "JSONReporter",
    "MarkdownReporter",
    "render_report",
    "render_text",
    "reporter",
]

"""Dispatch a coverage gap report to the requested output format."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import click

from covagent.agents.reporters.csv_reporter import CSVReporter
from covagent.agents.reporters.json_reporter import JSONReporter
from covagent.agents.reporters.markdown_reporter import MarkdownReporter
from covagent.agents.reporters.terminal import reporter

if TYPE_CHECKING:
    from covagent.adapters.coverage import CoverageReport, UncoveredItem
    from covagent.agents.reporters.terminal import CLIReporter

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("console", "json", "markdown", "csv")

_TEXT_REPORTERS = {
    "json": JSONReporter(),
    "markdown": MarkdownReporter(),
    "csv": CSVReporter(),
}


def render_text(
    fmt: str,
    report: CoverageReport,
    items: list[UncoveredItem],
    threshold: float,
) -> str | None:
    """Return the report rendered as *fmt*, or None for console output."""
    text_reporter = _TEXT_REPORTERS.get(fmt)
    if text_reporter is None:
        return None
    return text_reporter.generate_string(report, items, threshold)


def render_report(
    fmt: str,
    report: CoverageReport,
    items: list[UncoveredItem],
    threshold: float,
    *,
    cli_reporter: CLIReporter = reporter,
) -> str | None:
    """Render the report in *fmt*.

    Text formats are written verbatim to stdout and returned. ``console``
    and any unknown format print the rich summary through *cli_reporter*
    and return None.
    """
    if fmt not in OUTPUT_FORMATS:
        logger.warning("Unknown output format %r, using console", fmt)

    text = render_text(fmt, report, items, threshold)
    if text is None:
        cli_reporter.print_coverage_report(report, items, threshold)
        return None

    click.echo(text)
    return text

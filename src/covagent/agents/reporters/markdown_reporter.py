"""Markdown reporter: renders coverage gaps for PR comments and wikis."""

from __future__ import annotations

from typing import TYPE_CHECKING

from covagent.agents.analyzers.coverage import group_by_severity

if TYPE_CHECKING:
    from covagent.adapters.coverage import CoverageReport, UncoveredItem

_SEVERITY_HEADINGS = {
    "error": "🔴 Public functions",
    "warning": "🟡 Functions",
    "info": "🔵 Test functions",
}


class MarkdownReporter:
    """Render a coverage gap report as GitHub-flavoured Markdown."""

    def generate_string(
        self,
        report: CoverageReport,
        items: list[UncoveredItem],
        threshold: float,
    ) -> str:
        """Return the report as a Markdown document."""
        lines: list[str] = [
            "# Coverage Report",
            "",
            "| Metric | Value |",
            "|--------|-------|",
            f"| Overall coverage | {report.overall_percentage:.1f}% |",
            f"| Threshold | {threshold:.1f}% |",
            f"| Files analyzed | {len(report.files)} |",
            f"| Uncovered items | {len(items)} |",
            "",
        ]

        if not items:
            lines.append("✨ Coverage meets threshold!")
            return "\n".join(lines) + "\n"

        for severity, grouped in group_by_severity(items).items():
            lines.append(f"## {_SEVERITY_HEADINGS[severity]} ({len(grouped)})")
            lines.append("")
            lines.append("| Function | Location | Coverage |")
            lines.append("|----------|----------|----------|")
            lines.extend(
                f"| `{_escape_cell(item.function)}` | `{_escape_cell(item.file)}:{item.line}` "
                f"| {item.coverage_percentage:.1f}% |"
                for item in grouped
            )
            lines.append("")

        return "\n".join(lines)


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|")

"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from covagent.agents.analyzers.coverage import group_by_severity

if TYPE_CHECKING:
    from rich.status import Status

    from covagent.adapters.coverage import CoverageReport, UncoveredItem

console = Console()

_HIGH_COVERAGE = 80.0
_MEDIUM_COVERAGE = 50.0

_MAX_FUNCTION_NAME_LENGTH = 50
_MAX_FILE_PATH_LENGTH = 45

_SEVERITY_STYLES = {
    "error": ("red", "●"),
    "warning": ("yellow", "●"),
    "info": ("blue", "○"),
}


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else "…" + text[-(limit - 1) :]


class CLIReporter:
    """Rich terminal output for coverage analysis."""

    def __init__(self, output: Console | None = None) -> None:
        """Initialize the CLI reporter.

        Args:
            output: Console to write to. Defaults to the shared stdout console.
        """
        self.console = output or console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[dim]{message}[/dim]")

    def create_status(self, message: str) -> Status:
        """Create a Rich Status spinner for long-running operations."""
        return self.console.status(message)

    def print_coverage_report(
        self,
        report: CoverageReport,
        items: list[UncoveredItem],
        threshold: float,
    ) -> None:
        """Print the overall summary, the files below threshold and every gap."""
        overall_color = self._get_coverage_color(report.overall_percentage)
        self.console.print(
            Panel(
                f"[bold]Overall coverage:[/bold] "
                f"[{overall_color}]{report.overall_percentage:.1f}%[/{overall_color}]   "
                f"[bold]Threshold:[/bold] {threshold:.1f}%   "
                f"[bold]Uncovered items:[/bold] {len(items)}",
                title="Coverage Report",
                border_style="cyan",
                padding=(0, 2),
            )
        )

        self._print_files_table(report, threshold)

        for severity, grouped in group_by_severity(items).items():
            self._print_items_table(severity, grouped)

    def _print_files_table(self, report: CoverageReport, threshold: float) -> None:
        below = [file for file in report.files if file.coverage_percentage < threshold]
        if not below:
            return

        table = Table(title="Files Below Threshold", title_style="bold cyan")
        table.add_column("File", style="bold")
        table.add_column("Coverage", justify="right")
        table.add_column("Functions Covered", justify="right")

        for file in below:
            color = self._get_coverage_color(file.coverage_percentage)
            table.add_row(
                escape(_truncate(self._strip_workdir(file.path), _MAX_FILE_PATH_LENGTH)),
                f"[{color}]{file.coverage_percentage:.1f}%[/{color}]",
                f"{file.covered_function_count}/{len(file.functions)}",
            )

        self.console.print(table)

    def _print_items_table(self, severity: str, items: list[UncoveredItem]) -> None:
        color, icon = _SEVERITY_STYLES[severity]
        table = Table(
            title=f"[{color}]{icon} {severity.upper()}[/{color}] ({len(items)})",
            title_justify="left",
        )
        table.add_column("Function", style="bold")
        table.add_column("Location")
        table.add_column("Coverage", justify="right")
        table.add_column("Type")

        for item in items:
            location = _truncate(self._strip_workdir(item.file), _MAX_FILE_PATH_LENGTH)
            table.add_row(
                escape(_truncate(item.function, _MAX_FUNCTION_NAME_LENGTH)),
                escape(f"{location}:{item.line}"),
                f"[{color}]{item.coverage_percentage:.1f}%[/{color}]",
                item.item_type.value.replace("_", " "),
            )

        self.console.print(table)

    def _get_coverage_color(self, percentage: float) -> str:
        """Get a color based on coverage percentage."""
        if percentage >= _HIGH_COVERAGE:
            return "green"
        if percentage >= _MEDIUM_COVERAGE:
            return "yellow"
        return "red"

    def _strip_workdir(self, file_path: str) -> str:
        """Return *file_path* relative to the working directory when possible."""
        try:
            return str(Path(file_path).relative_to(Path.cwd()))
        except ValueError:
            return file_path


# Singleton instance for easy import
reporter = CLIReporter()

"""CoverageAnalyzer agent: turns a coverage report into actionable gaps.

This agent:
1. Loads an existing Cobertura report, or runs the cargo coverage adapter
2. Filters files and functions below the coverage threshold
3. Classifies each gap as a public, private or test function
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from covagent.adapters.coverage import (
    CargoCoverageAdapter,
    CoberturaParseError,
    CoverageFileError,
    CoverageToolError,
    UncoveredItem,
    UncoveredType,
    load_coverage,
)
from covagent.agents.base import BaseAgent, TaskInput, TaskOutput, TaskStatus

if TYPE_CHECKING:
    from collections.abc import Iterable

    from covagent.adapters.coverage import CoverageAdapter, CoverageReport

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

DEFAULT_THRESHOLD = 80.0
DEFAULT_COVERAGE_FILE = "cobertura.xml"

_TEST_PREFIX = "test_"
_PUBLIC_PREFIX = "pub "

SEVERITY_ORDER = ("error", "warning", "info")


# ── Gap detection ────────────────────────────────────────────────


def classify_function(name: str) -> UncoveredType:
    """Classify a function by its name prefix (test first, then public)."""
    if name.startswith(_TEST_PREFIX):
        return UncoveredType.TEST_FUNCTION
    if name.startswith(_PUBLIC_PREFIX):
        return UncoveredType.PUBLIC_FUNCTION
    return UncoveredType.FUNCTION


def find_uncovered(report: CoverageReport, threshold: float) -> list[UncoveredItem]:
    """Return every function below *threshold* inside files below *threshold*.

    Items keep report order: files as listed, then functions within each file.
    """
    return [
        UncoveredItem(
            file=file.path,
            function=func.name,
            line=func.line,
            coverage_percentage=func.coverage_percentage,
            item_type=classify_function(func.name),
        )
        for file in report.files
        if file.coverage_percentage < threshold
        for func in file.functions
        if func.coverage_percentage < threshold
    ]


def group_by_severity(items: Iterable[UncoveredItem]) -> dict[str, list[UncoveredItem]]:
    """Group items by severity (error, warning, info), keeping input order."""
    groups: dict[str, list[UncoveredItem]] = {severity: [] for severity in SEVERITY_ORDER}
    for item in items:
        groups[item.severity].append(item)
    return {severity: grouped for severity, grouped in groups.items() if grouped}


# ── Agent ────────────────────────────────────────────────────────


@dataclass
class CoverageAnalysisTask(TaskInput):
    """Task input for coverage analysis."""

    task_type: str = "analyze_coverage"
    target: str = ""

    project_root: str = "."
    """Root of the repository to analyze."""

    threshold: float = DEFAULT_THRESHOLD
    """Coverage percentage below which functions are reported."""

    use_existing: bool = False
    """Load ``coverage_file`` instead of running the coverage tool."""

    coverage_file: str = DEFAULT_COVERAGE_FILE
    """Path of the Cobertura report (relative paths resolve against cwd)."""

    timeout: float = 600.0
    """Seconds allowed for each coverage command."""

    def __post_init__(self) -> None:
        if not self.target:
            self.target = self.project_root


class CoverageAnalyzer(BaseAgent):
    """Agent that produces a coverage report and finds uncovered functions."""

    def __init__(self, adapter: CoverageAdapter | None = None) -> None:
        self._adapter = adapter or CargoCoverageAdapter()

    @property
    def name(self) -> str:
        return "coverage_analyzer"

    async def run(self, task: TaskInput) -> TaskOutput:
        """Run the analysis.

        Returns:
            COMPLETED with ``report``, ``uncovered`` and ``threshold`` in the
            result, or FAILED with the reason in ``errors``.
        """
        if not isinstance(task, CoverageAnalysisTask):
            return TaskOutput.failure("Task must be a CoverageAnalysisTask instance")

        try:
            report = await self._obtain_report(task)
        except CoberturaParseError as exc:
            logger.error("Malformed coverage report at byte %d: %s", exc.offset, exc)
            return TaskOutput.failure(str(exc))
        except (CoverageFileError, CoverageToolError) as exc:
            logger.error("Coverage collection failed: %s", exc)
            return TaskOutput.failure(str(exc))

        uncovered = find_uncovered(report, task.threshold)
        logger.info(
            "Found %d uncovered items below %.1f%% across %d files",
            len(uncovered),
            task.threshold,
            len(report.files),
        )
        return TaskOutput(
            status=TaskStatus.COMPLETED,
            result={"report": report, "uncovered": uncovered, "threshold": task.threshold},
        )

    async def _obtain_report(self, task: CoverageAnalysisTask) -> CoverageReport:
        if task.use_existing:
            coverage_file = Path(task.coverage_file)
            logger.info("Loading existing coverage data from %s", coverage_file)
            return load_coverage(coverage_file)

        project = Path(task.project_root)
        if not self._adapter.detect(project):
            logger.warning(
                "%s does not look like a %s project; running %s anyway",
                project,
                self._adapter.language,
                self._adapter.name,
            )
        return await self._adapter.run_coverage(project, timeout=task.timeout)

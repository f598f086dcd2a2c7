"""Base classes and data models for coverage adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path


@dataclass(frozen=True)
class FunctionCoverage:
    """Coverage data for a single function."""

    name: str
    line: int
    coverage_percentage: float
    is_covered: bool


@dataclass(frozen=True)
class FileCoverage:
    """Coverage data for a single source file."""

    path: str
    coverage_percentage: float
    lines_covered: int = 0
    lines_total: int = 0
    uncovered_lines: tuple[int, ...] = ()
    functions: tuple[FunctionCoverage, ...] = ()

    @property
    def covered_function_count(self) -> int:
        """Return the number of functions that were hit at least once."""
        return sum(1 for func in self.functions if func.is_covered)


@dataclass(frozen=True)
class CoverageReport:
    """Coverage report for a project, built once from a native report file.

    Files keep the order in which the report lists them.
    """

    overall_percentage: float = 0.0
    files: tuple[FileCoverage, ...] = field(default_factory=tuple)

    @property
    def function_count(self) -> int:
        """Return the total number of functions across all files."""
        return sum(len(file.functions) for file in self.files)

    @property
    def covered_function_count(self) -> int:
        """Return the number of covered functions across all files."""
        return sum(file.covered_function_count for file in self.files)

    def get_file(self, path: str) -> FileCoverage | None:
        """Return the first file entry with *path*, or None."""
        for file in self.files:
            if file.path == path:
                return file
        return None


class UncoveredType(Enum):
    """Kind of function an uncovered item refers to."""

    FUNCTION = "function"
    PUBLIC_FUNCTION = "public_function"
    TEST_FUNCTION = "test_function"


_SEVERITY_BY_TYPE = {
    UncoveredType.PUBLIC_FUNCTION: "error",
    UncoveredType.FUNCTION: "warning",
    UncoveredType.TEST_FUNCTION: "info",
}

_KIND_LABEL_BY_TYPE = {
    UncoveredType.PUBLIC_FUNCTION: "public function",
    UncoveredType.FUNCTION: "function",
    UncoveredType.TEST_FUNCTION: "test function",
}


@dataclass(frozen=True)
class UncoveredItem:
    """A function whose coverage is below the requested threshold."""

    file: str
    function: str
    line: int
    coverage_percentage: float
    item_type: UncoveredType

    @property
    def severity(self) -> str:
        """Return ``error``, ``warning`` or ``info`` depending on the item type."""
        return _SEVERITY_BY_TYPE[self.item_type]

    @property
    def title(self) -> str:
        """Return a short title suitable for an issue or report heading."""
        return f"test: Add tests for {_KIND_LABEL_BY_TYPE[self.item_type]} `{self.function}`"

    def to_dict(self) -> dict[str, Any]:
        """Serialize into a JSON-compatible dict."""
        return {
            "file": self.file,
            "function": self.function,
            "line": self.line,
            "coverage_percentage": self.coverage_percentage,
            "item_type": self.item_type.value,
            "severity": self.severity,
            "title": self.title,
        }


class CoverageFileError(Exception):
    """Raised when a coverage report file cannot be read."""


class CoverageToolError(Exception):
    """Raised when the coverage tooling fails to produce a report."""

    def __init__(self, message: str, stderr: str = "") -> None:
        """Initialize with error message and captured stderr.

        Args:
            message: Error description.
            stderr: Standard error output of the failing tool.
        """
        super().__init__(message)
        self.stderr = stderr


class CoverageAdapter(ABC):
    """Abstract base class for coverage tool adapters.

    Each concrete adapter knows how to run a coverage tool and parse its
    output into the unified CoverageReport format.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Coverage tool identifier (e.g. 'cargo-llvm-cov')."""

    @property
    @abstractmethod
    def language(self) -> str:
        """Primary language (e.g. 'rust')."""

    @abstractmethod
    def detect(self, project_path: Path) -> bool:
        """Return True if this coverage tool can be used in project_path."""

    @abstractmethod
    async def run_coverage(
        self,
        project_path: Path,
        *,
        timeout: float = 600.0,
    ) -> CoverageReport:
        """Run coverage collection and return unified report.

        Args:
            project_path: Root of the project to collect coverage for.
            timeout: Maximum seconds to wait for each coverage command.

        Returns:
            A CoverageReport with unified coverage data.

        Raises:
            CoverageToolError: If no coverage report could be produced.
        """

    @abstractmethod
    def parse_coverage_file(self, coverage_file: Path) -> CoverageReport:
        """Parse a coverage report file into unified format.

        Args:
            coverage_file: Path to the native coverage report file.

        Returns:
            A CoverageReport with parsed coverage data.
        """

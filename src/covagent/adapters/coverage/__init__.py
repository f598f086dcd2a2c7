"""Coverage adapters for unified coverage reporting."""

from covagent.adapters.coverage.base import (
    CoverageAdapter,
    CoverageFileError,
    CoverageReport,
    CoverageToolError,
    FileCoverage,
    FunctionCoverage,
    UncoveredItem,
    UncoveredType,
)
from covagent.adapters.coverage.cargo import CargoCoverageAdapter
from covagent.adapters.coverage.cobertura import (
    CoberturaParseError,
    CoberturaScanState,
    load_coverage,
    parse_cobertura,
)

__all__ = [
    "CargoCoverageAdapter",
    "CoberturaParseError",
    "CoberturaScanState",
    "CoverageAdapter",
    "CoverageFileError",
    "CoverageReport",
    "CoverageToolError",
    "FileCoverage",
    "FunctionCoverage",
    "UncoveredItem",
    "UncoveredType",
    "load_coverage",
    "parse_cobertura",
]

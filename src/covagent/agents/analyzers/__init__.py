"""Analyzer agents for covagent."""

from covagent.agents.analyzers.coverage import (
    CoverageAnalysisTask,
    CoverageAnalyzer,
    classify_function,
    find_uncovered,
    group_by_severity,
)

__all__ = [
    "CoverageAnalysisTask",
    "CoverageAnalyzer",
    "classify_function",
    "find_uncovered",
    "group_by_severity",
]

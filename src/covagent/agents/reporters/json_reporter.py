"""JSON reporter: generates structured JSON coverage gap reports.

Produces machine-readable output for downstream tooling (CI annotations,
dashboards, issue trackers).
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from covagent.agents.analyzers.coverage import SEVERITY_ORDER

if TYPE_CHECKING:
    from pathlib import Path

    from covagent.adapters.coverage import CoverageReport, UncoveredItem

logger = logging.getLogger(__name__)


class JSONReporter:
    """Serialize a coverage report and its uncovered items as JSON."""

    def generate(
        self,
        output_path: Path,
        report: CoverageReport,
        items: list[UncoveredItem],
        threshold: float,
    ) -> Path:
        """Write a JSON report file.

        Returns:
            The path to the generated JSON file.
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(
            self.generate_string(report, items, threshold) + "\n",
            encoding="utf-8",
        )
        logger.info("JSON report written to %s", output_path)
        return output_path

    def generate_string(
        self,
        report: CoverageReport,
        items: list[UncoveredItem],
        threshold: float,
    ) -> str:
        """Return the JSON report as a string."""
        payload = build_report_payload(report, items, threshold)
        return json.dumps(payload, indent=2, ensure_ascii=False)


def build_report_payload(
    report: CoverageReport,
    items: list[UncoveredItem],
    threshold: float,
) -> dict[str, Any]:
    """Build the JSON report structure."""
    summary = dict.fromkeys(SEVERITY_ORDER, 0)
    for item in items:
        summary[item.severity] += 1

    return {
        "tool": "covagent",
        "timestamp": datetime.now(tz=UTC).isoformat(),
        "threshold": threshold,
        "overall_coverage": round(report.overall_percentage, 2),
        "files_analyzed": len(report.files),
        "uncovered_count": len(items),
        "summary": summary,
        "items": [item.to_dict() for item in items],
    }

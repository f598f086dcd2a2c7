"""CSV reporter: one row per uncovered item for spreadsheets and scripts."""

from __future__ import annotations

import csv
import io
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from covagent.adapters.coverage import CoverageReport, UncoveredItem

CSV_HEADER = ("file", "function", "line", "coverage_percentage", "item_type", "severity")


class CSVReporter:
    """Render uncovered items as CSV."""

    def generate_string(
        self,
        report: CoverageReport,
        items: list[UncoveredItem],
        threshold: float,
    ) -> str:
        """Return the items as CSV text with a header row.

        *report* and *threshold* are accepted so every reporter shares one
        signature; the rows already carry everything CSV consumers need.
        """
        _ = report, threshold
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for item in items:
            writer.writerow(
                [
                    item.file,
                    item.function,
                    item.line,
                    f"{item.coverage_percentage:.1f}",
                    item.item_type.value,
                    item.severity,
                ]
            )
        return buffer.getvalue()

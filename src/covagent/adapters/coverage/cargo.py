"""Cargo coverage adapter for Rust projects.

Prefers ``cargo llvm-cov --cobertura`` (instrumentation based, fast) and
falls back to ``cargo tarpaulin --out Xml``. Both write ``cobertura.xml``
at the project root, which is then parsed into the unified CoverageReport.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from covagent.adapters.coverage.base import (
    CoverageAdapter,
    CoverageReport,
    CoverageToolError,
)
from covagent.adapters.coverage.cobertura import load_coverage
from covagent.utils.subprocess_runner import SubprocessError, run_subprocess

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

_CARGO_TOML = "Cargo.toml"
_DEFAULT_TIMEOUT = 600.0
COBERTURA_OUTPUT_NAME = "cobertura.xml"

LLVM_COV_COMMAND = [
    "cargo",
    "llvm-cov",
    "--cobertura",
    "--output-path",
    COBERTURA_OUTPUT_NAME,
    "--workspace",
    "--release",
    "--ignore-run-fail",
]

TARPAULIN_COMMAND = [
    "cargo",
    "tarpaulin",
    "--out",
    "Xml",
    "--output-dir",
    ".",
    "--skip-clean",
    "--exclude-files",
    "target/*",
    "--timeout",
    "300",
    "--release",
    "--lib",
]


# ── Adapter ──────────────────────────────────────────────────────


class CargoCoverageAdapter(CoverageAdapter):
    """Rust coverage adapter producing Cobertura XML via cargo plugins."""

    @property
    def name(self) -> str:
        return "cargo-coverage"

    @property
    def language(self) -> str:
        return "rust"

    def detect(self, project_path: Path) -> bool:
        """Return True when Cargo.toml exists (Rust project)."""
        return (project_path / _CARGO_TOML).is_file()

    async def run_coverage(
        self,
        project_path: Path,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> CoverageReport:
        """Generate ``cobertura.xml`` and parse it.

        Raises:
            CoverageToolError: If neither cargo-llvm-cov nor cargo-tarpaulin
                produced a report.
        """
        if not await self._try_llvm_cov(project_path, timeout):
            logger.info("cargo-llvm-cov not available, falling back to tarpaulin (slower)")
            await self._run_tarpaulin(project_path, timeout)

        out_path = project_path / COBERTURA_OUTPUT_NAME
        if not out_path.is_file():
            raise CoverageToolError(f"Coverage run finished but {out_path} was not written")
        return self.parse_coverage_file(out_path)

    def parse_coverage_file(self, coverage_file: Path) -> CoverageReport:
        """Parse a Cobertura XML file into CoverageReport."""
        return load_coverage(coverage_file)

    async def _try_llvm_cov(self, project_path: Path, timeout: float) -> bool:
        try:
            result = await run_subprocess(LLVM_COV_COMMAND, cwd=project_path, timeout=timeout)
        except SubprocessError:
            return False
        if result.success:
            logger.info("Used cargo-llvm-cov (%.1fs)", result.duration_ms / 1000)
            return True
        logger.debug("cargo llvm-cov failed (exit %d): %s", result.returncode, result.stderr)
        return False

    async def _run_tarpaulin(self, project_path: Path, timeout: float) -> None:
        try:
            result = await run_subprocess(TARPAULIN_COMMAND, cwd=project_path, timeout=timeout)
        except SubprocessError as exc:
            raise CoverageToolError(
                "Failed to run cargo tarpaulin. Is it installed? "
                "Run: cargo install cargo-tarpaulin",
                stderr=exc.result.stderr,
            ) from exc
        if not result.success:
            raise CoverageToolError(
                f"cargo tarpaulin failed: {result.stderr.strip()}", stderr=result.stderr
            )

"""Tests for the covagent CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner, Result

from covagent import __version__
from covagent.adapters.coverage import CoverageToolError
from covagent.agents.reporters.github_issue import IssueCreationResult
from covagent.cli import cli

if TYPE_CHECKING:
    from pathlib import Path

_COVERAGE_XML = """\
<coverage line-rate="0.70">
  <class filename="src/lib.rs" line-rate="0.60">
    <method name="pub covered_func" line-rate="0.95"><line number="1"/></method>
    <method name="uncovered_func" line-rate="0.0"><line number="10"/></method>
  </class>
</coverage>
"""

_FULLY_COVERED_XML = """\
<coverage line-rate="1.0">
  <class filename="src/lib.rs" line-rate="1.0">
    <method name="pub covered_func" line-rate="1.0"><line number="1"/></method>
  </class>
</coverage>
"""


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A repository with an existing Cobertura report."""
    monkeypatch.delenv("COVAGENT_THRESHOLD", raising=False)
    monkeypatch.delenv("COVAGENT_GITHUB_REPO", raising=False)
    (tmp_path / "Cargo.toml").write_text('[package]\nname = "demo"\n', encoding="utf-8")
    (tmp_path / "cobertura.xml").write_text(_COVERAGE_XML, encoding="utf-8")
    return tmp_path


def _analyze(runner: CliRunner, repo: Path, *args: str, ci: bool = False) -> Result:
    base = ["--ci"] if ci else []
    return runner.invoke(
        cli, [*base, "analyze", "--repo-path", str(repo), "--use-existing", *args]
    )


# ── Group options ────────────────────────────────────────────────


class TestGroup:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "analyze" in result.output
        assert "config" in result.output

    def test_verbose_configures_logging(self, runner: CliRunner, repo: Path) -> None:
        with patch("covagent.cli.logging.basicConfig") as basic_config:
            result = runner.invoke(
                cli, ["-v", "analyze", "--repo-path", str(repo), "--use-existing"]
            )

        assert result.exit_code == 0, result.output
        basic_config.assert_called_once()


# ── analyze ──────────────────────────────────────────────────────


class TestAnalyze:
    def test_console_output(self, runner: CliRunner, repo: Path) -> None:
        result = _analyze(runner, repo)

        assert result.exit_code == 0, result.output
        assert "Overall coverage: 70.0%" in result.output
        assert "uncovered_func" in result.output
        assert "covered_func" in result.output

    def test_meets_threshold(self, runner: CliRunner, repo: Path) -> None:
        (repo / "cobertura.xml").write_text(_FULLY_COVERED_XML, encoding="utf-8")

        result = _analyze(runner, repo)

        assert result.exit_code == 0
        assert "Coverage meets threshold" in result.output

    def test_low_threshold_meets(self, runner: CliRunner, repo: Path) -> None:
        result = _analyze(runner, repo, "--threshold", "50")

        assert result.exit_code == 0
        assert "Coverage meets threshold (50.0%)" in result.output

    def test_json_output(self, runner: CliRunner, repo: Path) -> None:
        result = _analyze(runner, repo, "--output", "json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["overall_coverage"] == 70.0
        assert data["uncovered_count"] == 1
        assert data["items"][0]["function"] == "uncovered_func"

    def test_json_output_when_nothing_is_uncovered(self, runner: CliRunner, repo: Path) -> None:
        result = _analyze(runner, repo, "--output", "json", "--threshold", "10")

        assert result.exit_code == 0
        assert json.loads(result.stdout)["items"] == []

    def test_csv_output(self, runner: CliRunner, repo: Path) -> None:
        result = _analyze(runner, repo, "--output", "csv")

        assert result.exit_code == 0
        lines = result.stdout.strip().splitlines()
        assert lines[0] == "file,function,line,coverage_percentage,item_type,severity"
        assert lines[1] == "src/lib.rs,uncovered_func,10,0.0,function,warning"

    def test_markdown_output_file(self, runner: CliRunner, repo: Path) -> None:
        out = repo / "reports" / "coverage.md"

        result = _analyze(runner, repo, "--output", "markdown", "--output-file", str(out))

        assert result.exit_code == 0
        assert "# Coverage Report" in result.stdout
        assert "## 🟡 Functions (1)" in out.read_text(encoding="utf-8")

    def test_console_output_file_is_json(self, runner: CliRunner, repo: Path) -> None:
        out = repo / "coverage.json"

        result = _analyze(runner, repo, "--output-file", str(out))

        assert result.exit_code == 0
        assert json.loads(out.read_text(encoding="utf-8"))["uncovered_count"] == 1

    def test_unknown_format_falls_back_to_console(self, runner: CliRunner, repo: Path) -> None:
        result = _analyze(runner, repo, "--output", "yaml")

        assert result.exit_code == 0
        assert "Coverage Report" in result.output

    def test_custom_coverage_file(self, runner: CliRunner, repo: Path) -> None:
        target = repo / "target"
        target.mkdir()
        (target / "cov.xml").write_text(_COVERAGE_XML, encoding="utf-8")
        (repo / "cobertura.xml").unlink()

        result = _analyze(runner, repo, "--coverage-file", "target/cov.xml")

        assert result.exit_code == 0, result.output
        assert "uncovered_func" in result.output

    def test_missing_coverage_file(self, runner: CliRunner, repo: Path) -> None:
        (repo / "cobertura.xml").unlink()

        result = _analyze(runner, repo)

        assert result.exit_code == 1
        assert "Failed to read coverage file" in result.output

    def test_malformed_coverage_file(self, runner: CliRunner, repo: Path) -> None:
        (repo / "cobertura.xml").write_text('<coverage line-rate="0.5">', encoding="utf-8")

        result = _analyze(runner, repo)

        assert result.exit_code == 1
        assert "position" in result.output

    def test_threshold_out_of_range(self, runner: CliRunner, repo: Path) -> None:
        result = _analyze(runner, repo, "--threshold", "120")

        assert result.exit_code == 2
        assert "--threshold" in result.output

    def test_threshold_from_config(self, runner: CliRunner, repo: Path) -> None:
        (repo / ".covagent.yml").write_text("coverage:\n  threshold: 50\n", encoding="utf-8")

        result = _analyze(runner, repo)

        assert "Coverage meets threshold (50.0%)" in result.output

    def test_format_from_config(self, runner: CliRunner, repo: Path) -> None:
        (repo / ".covagent.yml").write_text("report:\n  format: csv\n", encoding="utf-8")

        result = _analyze(runner, repo)

        assert result.stdout.startswith("file,function,line")

    def test_output_file_from_config(self, runner: CliRunner, repo: Path) -> None:
        (repo / ".covagent.yml").write_text(
            "report:\n  format: csv\n  output_file: reports/out.csv\n", encoding="utf-8"
        )

        result = _analyze(runner, repo)

        assert result.exit_code == 0, result.output
        written = (repo / "reports" / "out.csv").read_text(encoding="utf-8")
        assert written.startswith("file,function,line")
        assert "uncovered_func" in written

    def test_output_file_flag_wins_over_config(self, runner: CliRunner, repo: Path) -> None:
        (repo / ".covagent.yml").write_text("report:\n  output_file: cfg.json\n", encoding="utf-8")
        flag_path = repo / "flag.json"

        result = _analyze(runner, repo, "--output-file", str(flag_path))

        assert result.exit_code == 0, result.output
        assert flag_path.exists()
        assert not (repo / "cfg.json").exists()

    def test_null_threshold_in_config(self, runner: CliRunner, repo: Path) -> None:
        (repo / ".covagent.yml").write_text("coverage:\n  threshold:\n", encoding="utf-8")

        result = _analyze(runner, repo)

        assert result.exception is None
        assert result.exit_code == 0, result.output
        assert "uncovered_func" in result.output

    def test_unusable_config_value_aborts(self, runner: CliRunner, repo: Path) -> None:
        (repo / ".covagent.yml").write_text("coverage:\n  threshold: [1, 2]\n", encoding="utf-8")

        result = _analyze(runner, repo)

        assert result.exit_code == 1
        assert "Failed to load configuration" in result.output

    def test_runs_coverage_without_use_existing(self, runner: CliRunner, repo: Path) -> None:
        with patch(
            "covagent.adapters.coverage.cargo.CargoCoverageAdapter.run_coverage",
            new_callable=AsyncMock,
            side_effect=CoverageToolError("cargo tarpaulin failed: boom"),
        ) as run_coverage:
            result = runner.invoke(cli, ["analyze", "--repo-path", str(repo)])

        assert result.exit_code == 1
        assert "cargo tarpaulin failed: boom" in result.output
        run_coverage.assert_awaited_once()


class TestCiMode:
    def test_gaps_exit_nonzero_with_json(self, runner: CliRunner, repo: Path) -> None:
        result = _analyze(runner, repo, ci=True)

        assert result.exit_code == 1
        assert json.loads(result.stdout)["uncovered_count"] == 1

    def test_no_gaps_exit_zero(self, runner: CliRunner, repo: Path) -> None:
        (repo / "cobertura.xml").write_text(_FULLY_COVERED_XML, encoding="utf-8")

        result = _analyze(runner, repo, ci=True)

        assert result.exit_code == 0
        assert json.loads(result.stdout)["uncovered_count"] == 0

    def test_ci_overrides_output_format(self, runner: CliRunner, repo: Path) -> None:
        result = _analyze(runner, repo, "--output", "markdown", ci=True)

        assert json.loads(result.stdout)["tool"] == "covagent"


class TestCreateIssues:
    def test_dry_run(self, runner: CliRunner, repo: Path) -> None:
        with patch(
            "covagent.agents.reporters.github_issue.get_remote_url",
            return_value="git@github.com:acme/widgets.git",
        ):
            result = _analyze(runner, repo, "--create-issues", "--dry-run")

        assert result.exit_code == 0, result.output
        assert "Would create issue: test: Add tests for function `uncovered_func`" in result.output

    def test_creates_issues(self, runner: CliRunner, repo: Path) -> None:
        issue_reporter = MagicMock()
        issue_reporter.create_issues.return_value = [
            IssueCreationResult(
                success=True,
                title="test: Add tests for function `uncovered_func`",
                issue_url="https://github.com/acme/widgets/issues/3",
                issue_number=3,
            )
        ]

        with patch("covagent.cli.GitHubIssueReporter", return_value=issue_reporter) as factory:
            result = _analyze(runner, repo, "--create-issues")

        assert result.exit_code == 0, result.output
        assert "Created issue #3" in result.output
        assert "Created 1 of 1 issues" in result.output
        factory.assert_called_once()
        assert factory.call_args.kwargs["labels"] == ["testing", "coverage"]
        issue_reporter.create_issues.assert_called_once()
        assert issue_reporter.create_issues.call_args.kwargs["dry_run"] is False

    def test_failed_issue_is_reported(self, runner: CliRunner, repo: Path) -> None:
        issue_reporter = MagicMock()
        issue_reporter.create_issues.return_value = [
            IssueCreationResult(success=False, title="t", error="rate limited")
        ]

        with patch("covagent.cli.GitHubIssueReporter", return_value=issue_reporter):
            result = _analyze(runner, repo, "--create-issues")

        assert result.exit_code == 0
        assert "Failed to create issue 't': rate limited" in result.output
        assert "Created 0 of 1 issues" in result.output

    def test_missing_token(self, runner: CliRunner, repo: Path) -> None:
        from covagent.utils.git import GitHubAPIError  # noqa: PLC0415

        with patch(
            "covagent.cli.GitHubIssueReporter", side_effect=GitHubAPIError("GitHub token required")
        ):
            result = _analyze(runner, repo, "--create-issues")

        assert result.exit_code == 1
        assert "Cannot create issues: GitHub token required" in result.output

    def test_no_issues_when_threshold_met(self, runner: CliRunner, repo: Path) -> None:
        with patch("covagent.cli.GitHubIssueReporter") as factory:
            result = _analyze(runner, repo, "--create-issues", "--threshold", "10")

        assert result.exit_code == 0
        factory.assert_not_called()


# ── config ───────────────────────────────────────────────────────


class TestConfigCommands:
    def test_show_yaml(self, runner: CliRunner, repo: Path) -> None:
        (repo / ".covagent.yml").write_text("coverage:\n  threshold: 70\n", encoding="utf-8")

        result = runner.invoke(cli, ["config", "show", "--path", str(repo)])

        assert result.exit_code == 0
        data = yaml.safe_load(result.output)
        assert data["coverage"]["threshold"] == 70.0
        assert "raw" not in data

    def test_show_json(self, runner: CliRunner, repo: Path) -> None:
        result = runner.invoke(cli, ["config", "show", "--path", str(repo), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["report"]["format"] == "console"
        assert data["issues"]["labels"] == ["testing", "coverage"]

    def test_show_invalid_yaml(self, runner: CliRunner, repo: Path) -> None:
        (repo / ".covagent.yml").write_text("coverage: [oops\n", encoding="utf-8")

        result = runner.invoke(cli, ["config", "show", "--path", str(repo)])

        assert result.exit_code == 1
        assert "Failed to load configuration" in result.output

    def test_validate_ok(self, runner: CliRunner, repo: Path) -> None:
        result = runner.invoke(cli, ["config", "validate", "--path", str(repo)])

        assert result.exit_code == 0
        assert "Configuration is valid!" in result.output

    def test_validate_errors(self, runner: CliRunner, repo: Path) -> None:
        (repo / ".covagent.yml").write_text(
            "coverage:\n  threshold: 120\nreport:\n  format: pdf\n", encoding="utf-8"
        )

        result = runner.invoke(cli, ["config", "validate", "--path", str(repo)])

        assert result.exit_code == 1
        assert "Found 2 configuration error(s)" in result.output
        assert "coverage.threshold" in result.output

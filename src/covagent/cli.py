"""covagent CLI: top-level command group."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
import yaml
from rich.console import Console
from rich.markup import escape

from covagent import __version__
from covagent.agents.analyzers.coverage import CoverageAnalysisTask, CoverageAnalyzer
from covagent.agents.reporters.github_issue import GitHubIssueReporter
from covagent.agents.reporters.json_reporter import JSONReporter
from covagent.agents.reporters.render import OUTPUT_FORMATS, render_report, render_text
from covagent.agents.reporters.terminal import CLIReporter, reporter
from covagent.config import CONFIG_FILENAME, load_config, validate_config
from covagent.utils.git import GitHubAPIError

if TYPE_CHECKING:
    from covagent.adapters.coverage import CoverageReport, UncoveredItem
    from covagent.config import CovagentConfig

logger = logging.getLogger(__name__)
console = Console()

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_MAX_PERCENTAGE = 100.0


def _configure_logging(*, verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format=_LOG_FORMAT)


def _is_ci_mode(ctx: click.Context) -> bool:
    return bool(ctx.obj.get("ci", False)) if ctx.obj else False


def _load_config_or_abort(path: str | Path) -> CovagentConfig:
    try:
        return load_config(path)
    except (OSError, TypeError, ValueError, yaml.YAMLError) as e:
        reporter.print_error(f"Failed to load configuration: {escape(str(e))}")
        raise click.Abort from e


def _config_to_dict(config: CovagentConfig) -> dict[str, Any]:
    """Convert CovagentConfig to dictionary for display."""
    result = asdict(config)
    # Remove the raw field as it's redundant
    result.pop("raw", None)
    return result


@click.group()
@click.option(
    "--ci",
    is_flag=True,
    help="CI mode: JSON output, exit code 1 when uncovered functions are found.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging on stderr.")
@click.version_option(version=__version__, prog_name="covagent")
@click.pass_context
def cli(ctx: click.Context, *, ci: bool, verbose: bool) -> None:
    """Find untested functions from Cobertura coverage data."""
    ctx.ensure_object(dict)
    ctx.obj["ci"] = ci
    _configure_logging(verbose=verbose)


# ── analyze ──────────────────────────────────────────────────────


@cli.command("analyze")
@click.option(
    "--repo-path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Repository to analyze.",
)
@click.option(
    "--threshold",
    type=float,
    default=None,
    help="Coverage percentage below which functions are reported (default: 80).",
)
@click.option("--create-issues", is_flag=True, help="Open a GitHub issue per uncovered item.")
@click.option(
    "--output",
    "output_format",
    default=None,
    help=f"Output format: {', '.join(OUTPUT_FORMATS)} (default: console).",
)
@click.option("--dry-run", is_flag=True, help="Show which issues would be created.")
@click.option(
    "--use-existing",
    is_flag=True,
    help="Load an existing coverage file instead of running the coverage tools.",
)
@click.option(
    "--coverage-file",
    default=None,
    help="Cobertura report path, relative to the repository (default: cobertura.xml).",
)
@click.option(
    "--output-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write the report to this file.",
)
@click.pass_context
def analyze(
    ctx: click.Context,
    repo_path: str,
    threshold: float | None,
    output_format: str | None,
    coverage_file: str | None,
    output_file: str | None,
    *,
    create_issues: bool,
    dry_run: bool,
    use_existing: bool,
) -> None:
    """Run coverage, report uncovered functions and optionally open issues.

    Examples:
      covagent analyze
      covagent analyze --use-existing --coverage-file target/cobertura.xml
      covagent analyze --output markdown --output-file coverage.md
      covagent analyze --create-issues --dry-run
    """
    ci_mode = _is_ci_mode(ctx)
    root = Path(repo_path)
    config = _load_config_or_abort(root)

    threshold = config.coverage.threshold if threshold is None else threshold
    if not 0.0 <= threshold <= _MAX_PERCENTAGE:
        raise click.BadParameter(
            f"must be between 0 and 100 (got: {threshold})", param_hint="--threshold"
        )

    fmt = "json" if ci_mode else (output_format or config.report.format).lower()
    machine_output = fmt in OUTPUT_FORMATS and fmt != "console"
    # Keep stdout clean for machine-readable formats
    out = CLIReporter(Console(stderr=True)) if machine_output else reporter

    if not output_file and config.report.output_file:
        output_file = str(root / config.report.output_file)
    use_existing = use_existing or config.coverage.use_existing
    create_issues = create_issues or config.issues.create
    dry_run = dry_run or config.issues.dry_run

    task = CoverageAnalysisTask(
        project_root=str(root),
        threshold=threshold,
        use_existing=use_existing,
        coverage_file=str(root / (coverage_file or config.coverage.coverage_file)),
        timeout=config.coverage.timeout,
    )

    if use_existing:
        out.print_info(f"Using existing coverage file: {escape(task.coverage_file)}")
    else:
        out.print_info("Running coverage analysis...")

    with out.create_status("Collecting coverage..."):
        output = asyncio.run(CoverageAnalyzer().run(task))

    if not output.ok:
        for error in output.errors:
            out.print_error(escape(error))
        raise SystemExit(1)

    report: CoverageReport = output.result["report"]
    items: list[UncoveredItem] = output.result["uncovered"]

    out.print_info(f"Overall coverage: {report.overall_percentage:.1f}%")

    if not items and not machine_output:
        reporter.print_success(f"Coverage meets threshold ({threshold:.1f}%)!")
        _write_output_file(output_file, fmt, report, items, threshold)
        return

    render_report(fmt, report, items, threshold)
    _write_output_file(output_file, fmt, report, items, threshold)

    if create_issues and items:
        _create_issues(out, root, config, items, dry_run=dry_run)

    if ci_mode and items:
        raise SystemExit(1)


def _write_output_file(
    output_file: str | None,
    fmt: str,
    report: CoverageReport,
    items: list[UncoveredItem],
    threshold: float,
) -> None:
    if not output_file:
        return

    path = Path(output_file)
    text = render_text(fmt, report, items, threshold)
    if text is None:
        # Console output has no file form; write JSON instead
        JSONReporter().generate(path, report, items, threshold)
    else:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    logger.info("Report written to %s", path)


def _create_issues(
    out: CLIReporter,
    root: Path,
    config: CovagentConfig,
    items: list[UncoveredItem],
    *,
    dry_run: bool,
) -> None:
    out.print_header(f"Creating GitHub issues for {len(items)} uncovered items")

    # Dry runs never need API credentials
    use_gh_cli = True if dry_run else config.issues.gh_cli_preference
    try:
        issue_reporter = GitHubIssueReporter(
            root,
            repo=config.issues.repo,
            labels=config.issues.labels,
            use_gh_cli=use_gh_cli,
        )
    except GitHubAPIError as e:
        out.print_error(f"Cannot create issues: {escape(str(e))}")
        raise SystemExit(1) from e

    results = issue_reporter.create_issues(items, dry_run=dry_run)
    created = 0
    for result in results:
        title = escape(result.title)
        if result.success and result.dry_run:
            out.print_info(f"Would create issue: {title}")
        elif result.success:
            created += 1
            out.print_success(f"Created issue #{result.issue_number}: {result.issue_url}")
        else:
            out.print_warning(f"Failed to create issue '{title}': {escape(result.error or '')}")

    if not dry_run:
        out.print_info(f"Created {created} of {len(results)} issues")


# ── config ───────────────────────────────────────────────────────


@cli.group("config")
def config_group() -> None:
    """Inspect `.covagent.yml` configuration."""


@config_group.command("show")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON instead of YAML.")
def config_show(path: str, *, as_json: bool) -> None:
    """Display the effective configuration with environment variables resolved.

    Example:
      covagent config show
      covagent config show --json
    """
    config = _load_config_or_abort(path)
    config_dict = _config_to_dict(config)

    if as_json:
        click.echo(json.dumps(config_dict, indent=2))
    else:
        click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))


@config_group.command("validate")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def config_validate(path: str) -> None:
    """Validate `.covagent.yml` values.

    Example:
      covagent config validate
    """
    config = _load_config_or_abort(path)

    errors = validate_config(config)
    if not errors:
        reporter.print_success("Configuration is valid!")
        return

    reporter.print_error(f"Found {len(errors)} configuration error(s):")
    console.print()

    for idx, error in enumerate(errors, start=1):
        console.print(f"  {idx}. [red]{escape(error)}[/red]")

    console.print()
    console.print(
        f"[dim]Fix these errors in {CONFIG_FILENAME} and run "
        "'covagent config validate' again.[/dim]"
    )
    raise click.Abort

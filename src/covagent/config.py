"""Configuration parsing from ``.covagent.yml``."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from covagent.agents.analyzers.coverage import DEFAULT_COVERAGE_FILE, DEFAULT_THRESHOLD
from covagent.agents.reporters.github_issue import DEFAULT_LABELS
from covagent.agents.reporters.render import OUTPUT_FORMATS
from covagent.utils.git import is_owner_repo

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".covagent.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_GH_CLI_MODES = ("auto", "true", "false")


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


@dataclass
class CoverageConfig:
    """How coverage data is produced and judged."""

    threshold: float = DEFAULT_THRESHOLD
    """Functions and files below this percentage are reported."""

    coverage_file: str = DEFAULT_COVERAGE_FILE
    """Cobertura report path, relative to the repository root."""

    use_existing: bool = False
    """Load ``coverage_file`` instead of running the coverage tools."""

    timeout: float = 600.0
    """Timeout in seconds for each coverage tool run."""


@dataclass
class ReportConfig:
    """Output configuration."""

    format: str = "console"
    """Output format: console, json, markdown or csv."""

    output_file: str = ""
    """Optional path the rendered report is also written to."""


@dataclass
class IssuesConfig:
    """GitHub issue creation settings."""

    create: bool = False
    """Open one issue per uncovered item."""

    dry_run: bool = False
    """Report which issues would be opened without opening them."""

    repo: str = ""
    """Target repository as ``owner/name``. Empty means the origin remote."""

    labels: list[str] = field(default_factory=lambda: list(DEFAULT_LABELS))
    """Labels added to every issue."""

    use_gh_cli: str = "auto"
    """``auto`` detects gh, ``true`` forces it, ``false`` forces the REST API."""

    @property
    def gh_cli_preference(self) -> bool | None:
        """Return the forced gh CLI choice, or None to auto-detect."""
        if self.use_gh_cli == "true":
            return True
        if self.use_gh_cli == "false":
            return False
        return None


@dataclass
class CovagentConfig:
    """Complete covagent configuration from ``.covagent.yml``."""

    root: str
    """Repository root directory."""

    coverage: CoverageConfig = field(default_factory=CoverageConfig)
    """Coverage configuration."""

    report: ReportConfig = field(default_factory=ReportConfig)
    """Reporting configuration."""

    issues: IssuesConfig = field(default_factory=IssuesConfig)
    """Issue creation configuration."""

    raw: dict[str, Any] = field(default_factory=dict)
    """Raw parsed YAML for extension/debugging."""


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw.get(name, {})
    return section if isinstance(section, dict) else {}


def _value(section: dict[str, Any], key: str, default: Any) -> Any:
    """Return ``section[key]``, or *default* when the key is missing or null."""
    value = section.get(key)
    return default if value is None else value


def _parse_coverage_config(raw: dict[str, Any]) -> CoverageConfig:
    """Parse coverage configuration from raw YAML."""
    coverage_raw = _section(raw, "coverage")

    return CoverageConfig(
        threshold=float(
            _value(
                coverage_raw,
                "threshold",
                os.environ.get("COVAGENT_THRESHOLD", DEFAULT_THRESHOLD),
            )
        ),
        coverage_file=str(_value(coverage_raw, "coverage_file", DEFAULT_COVERAGE_FILE)),
        use_existing=bool(_value(coverage_raw, "use_existing", False)),
        timeout=float(_value(coverage_raw, "timeout", 600.0)),
    )


def _parse_report_config(raw: dict[str, Any]) -> ReportConfig:
    """Parse report configuration from raw YAML."""
    report_raw = _section(raw, "report")

    return ReportConfig(
        format=str(_value(report_raw, "format", "console")).lower(),
        output_file=str(_value(report_raw, "output_file", "")),
    )


def _parse_issues_config(raw: dict[str, Any]) -> IssuesConfig:
    """Parse issue creation configuration from raw YAML."""
    issues_raw = _section(raw, "issues")

    labels_raw = _value(issues_raw, "labels", list(DEFAULT_LABELS))
    labels = [str(label) for label in labels_raw] if isinstance(labels_raw, list) else []

    # YAML turns bare true/false into booleans
    use_gh_cli = _value(issues_raw, "use_gh_cli", "auto")
    if isinstance(use_gh_cli, bool):
        use_gh_cli = "true" if use_gh_cli else "false"

    return IssuesConfig(
        create=bool(_value(issues_raw, "create", False)),
        dry_run=bool(_value(issues_raw, "dry_run", False)),
        repo=str(_value(issues_raw, "repo", os.environ.get("COVAGENT_GITHUB_REPO", ""))),
        labels=labels,
        use_gh_cli=str(use_gh_cli).lower(),
    )


def load_config(root: str | Path) -> CovagentConfig:
    """Load and parse the complete ``.covagent.yml`` configuration.

    Falls back to defaults and ``COVAGENT_*`` environment variables when
    the YAML file is missing or incomplete.
    """
    root_path = Path(root).resolve()
    config_path = root_path / CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.is_file():
        text = config_path.read_text(encoding="utf-8")
        parsed = yaml.safe_load(text)
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)
        else:
            logger.debug("%s is empty or not a mapping, using defaults", config_path)

    return CovagentConfig(
        root=str(root_path),
        coverage=_parse_coverage_config(raw),
        report=_parse_report_config(raw),
        issues=_parse_issues_config(raw),
        raw=raw,
    )


def _validate_coverage_config(coverage: CoverageConfig) -> list[str]:
    """Validate coverage settings."""
    max_percentage = 100.0
    errors: list[str] = []

    if not 0.0 <= coverage.threshold <= max_percentage:
        errors.append(
            f"coverage.threshold must be between 0 and 100 (got: {coverage.threshold})"
        )

    if coverage.timeout <= 0:
        errors.append(f"coverage.timeout must be positive (got: {coverage.timeout})")

    if not coverage.coverage_file:
        errors.append("coverage.coverage_file is required")

    return errors


def _validate_issues_config(issues: IssuesConfig) -> list[str]:
    errors: list[str] = []

    if issues.repo and not is_owner_repo(issues.repo):
        errors.append(f"issues.repo must have the form owner/name (got: {issues.repo!r})")

    if issues.use_gh_cli not in _GH_CLI_MODES:
        errors.append(
            f"issues.use_gh_cli must be one of {', '.join(_GH_CLI_MODES)} "
            f"(got: {issues.use_gh_cli!r})"
        )

    return errors


def validate_config(config: CovagentConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    errors.extend(_validate_coverage_config(config.coverage))

    if config.report.format not in OUTPUT_FORMATS:
        errors.append(
            f"report.format must be one of {', '.join(OUTPUT_FORMATS)} "
            f"(got: {config.report.format!r})"
        )

    errors.extend(_validate_issues_config(config.issues))

    return errors

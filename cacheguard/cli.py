"""
CLI entry point: ties together parser → rules → LLM → reporter.

Usage:
  # Scan a workflows directory:
  cacheguard scan path/to/.github/workflows/

  # AI-enhanced scan (with Claude explanations):
  cacheguard scan path/to/.github/workflows/ --enrich

  # Output as JSON or SARIF:
  cacheguard scan path/to/.github/workflows/ --format sarif > results.sarif

  # Scan a single file:
  cacheguard scan path/to/release.yml

Exit codes:
  0 — no findings
  1 — findings detected
  2 — error (bad input, missing API key, etc.)
"""

import fnmatch
import logging
import os
import sys

import click
import yaml

from cacheguard.config import load_config
from cacheguard.parser import parse_workflow, parse_workflows_dir
from cacheguard.rules import run_all_rules, Severity
from cacheguard.reporter import report_console, report_json, report_sarif
from cacheguard.reporter.enriched_reporter import report_enriched

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_ERROR = 2

SEVERITY_ORDER = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


def _setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging.")
def cli(verbose: bool):
    """Cache poisoning scanner for GitHub Actions publishing workflows."""
    _setup_logging(verbose)


@cli.command()
@click.argument("path")
@click.option("--enrich", is_flag=True, help="Use Claude AI to explain findings and suggest fixes.")
@click.option("--format", "output_format", type=click.Choice(["console", "json", "sarif"]), default="console", help="Output format.")
@click.option("--severity", "min_severity", type=click.Choice(["critical", "high", "medium", "low"]), default=None, help="Minimum severity to report (overrides config file).")
@click.option("--config", "config_path", default=None, help="Path to .cacheguard.yml config file.")
def scan(path: str, enrich: bool, output_format: str, min_severity: str, config_path: str):
    """Scan GitHub Actions workflow files for cache poisoning exposure.

    Exits with code 0 if no issues found, 1 if issues found, 2 on error.
    """
    path = os.path.abspath(path)

    # CLI flags override config values
    config = load_config(config_path=config_path, scan_path=path)
    min_sev = Severity(min_severity or config.severity)

    try:
        if os.path.isfile(path):
            workflows = [parse_workflow(path)]
        elif os.path.isdir(path):
            workflows = parse_workflows_dir(path)
        else:
            click.echo(f"Error: '{path}' is not a file or directory.", err=True)
            sys.exit(EXIT_ERROR)
    except (yaml.YAMLError, ValueError) as e:
        click.echo(f"Error parsing workflow: {e}", err=True)
        sys.exit(EXIT_ERROR)
    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ERROR)

    if not workflows:
        click.echo("No workflow files found.")
        sys.exit(EXIT_OK)

    if config.exclude:
        before = len(workflows)
        workflows = [
            wf for wf in workflows
            if not any(fnmatch.fnmatch(wf.file_path, pat) for pat in config.exclude)
        ]
        excluded = before - len(workflows)
        if excluded:
            logger.info("Excluded %d workflow(s) via config", excluded)

    if not workflows:
        click.echo("All workflow files excluded by config.")
        sys.exit(EXIT_OK)

    all_findings = []
    for wf in workflows:
        all_findings.extend(run_all_rules(wf))

    if config.ignore_rules:
        before = len(all_findings)
        all_findings = [f for f in all_findings if f.rule_id not in config.ignore_rules]
        ignored = before - len(all_findings)
        if ignored:
            logger.info("Ignored %d finding(s) via config ignore_rules", ignored)

    all_findings = [
        f for f in all_findings
        if SEVERITY_ORDER[f.severity] >= SEVERITY_ORDER[min_sev]
    ]

    if output_format == "sarif":
        # An empty SARIF run is still a valid upload
        click.echo(report_sarif(all_findings))
        sys.exit(EXIT_FINDINGS if all_findings else EXIT_OK)

    if not all_findings:
        if output_format == "json":
            click.echo(report_json(all_findings))
        else:
            click.echo("\n✅ No security issues found!")
        sys.exit(EXIT_OK)

    if enrich:
        from cacheguard.llm import enrich_findings

        if not os.environ.get("ANTHROPIC_API_KEY"):
            click.echo(
                "Error: --enrich requires ANTHROPIC_API_KEY environment variable.",
                err=True,
            )
            sys.exit(EXIT_ERROR)

        # Findings are sent per workflow, together with that workflow's YAML
        by_file: dict[str, list] = {}
        for finding in all_findings:
            by_file.setdefault(finding.file_path, []).append(finding)

        click.echo(f"Enriching {len(all_findings)} finding(s) with Claude AI...\n")

        try:
            enriched = []
            for file_path, findings in by_file.items():
                try:
                    with open(file_path, "r") as f:
                        yaml_content = f.read()
                except OSError as e:
                    click.echo(f"Warning: could not read {file_path}: {e}", err=True)
                    yaml_content = ""
                enriched.extend(enrich_findings(findings, yaml_content))
        except Exception as e:
            logger.error("Claude API error: %s", e)
            click.echo(f"Error calling Claude API: {e}", err=True)
            click.echo("Falling back to standard report.\n", err=True)
            report_console(all_findings, file_path=path)
            sys.exit(EXIT_FINDINGS)

        report_enriched(enriched, file_path=path)
    elif output_format == "json":
        click.echo(report_json(all_findings))
    else:
        report_console(all_findings, file_path=path)

    sys.exit(EXIT_FINDINGS)


if __name__ == "__main__":
    cli()

"""
Enriched console reporter: prints findings with LLM-generated explanations and fixes.
"""

import logging

from cacheguard.rules.engine import Severity
from cacheguard.llm.claude_client import EnrichedFinding
from cacheguard.reporter.console_reporter import (
    BOLD,
    RESET,
    _severity_badge,
    format_finding_details,
)

logger = logging.getLogger(__name__)

GREEN = "\033[32m"


def report_enriched(enriched_findings: list[EnrichedFinding], file_path: str = "") -> str:
    """
    Format enriched findings as a colored console report with
    LLM explanations and suggested fixes.
    """
    lines = []

    lines.append("")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append(f"{BOLD}  Cache Poisoning Report (AI-Enhanced){RESET}")
    if file_path:
        lines.append(f"  File: {file_path}")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    if not enriched_findings:
        lines.append("  ✅ No security issues found!")
        lines.append("")
        report = "\n".join(lines)
        logger.info("Enriched report: no findings")
        print(report)
        return report

    counts: dict[Severity, int] = {}
    for ef in enriched_findings:
        sev = ef.finding.severity
        counts[sev] = counts.get(sev, 0) + 1

    lines.append(f"  Found {BOLD}{len(enriched_findings)}{RESET} issue(s):")
    for sev in [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW]:
        if sev in counts:
            lines.append(f"    {_severity_badge(sev)} × {counts[sev]}")
    lines.append("")

    for i, ef in enumerate(enriched_findings, 1):
        f = ef.finding
        lines.append(f"  {'-' * 56}")
        lines.append("")
        lines.append(f"  {_severity_badge(f.severity)} #{i}: {BOLD}{f.title}{RESET}")
        lines.extend(format_finding_details(f))

        lines.append("")
        lines.append(f"    {BOLD}Why this matters:{RESET}")
        for desc_line in ef.explanation.split("\n"):
            lines.append(f"    {desc_line}")

        lines.append("")
        lines.append(f"    {GREEN}{BOLD}Suggested fix:{RESET}")
        for fix_line in ef.suggested_fix.split("\n"):
            lines.append(f"    {GREEN}{fix_line}{RESET}")
        lines.append("")

    lines.append(f"  {'-' * 56}")
    lines.append(f"{BOLD}{'=' * 60}{RESET}")
    lines.append("")

    logger.info("Enriched report: %d finding(s) with AI explanations", len(enriched_findings))
    report = "\n".join(lines)
    print(report)
    return report

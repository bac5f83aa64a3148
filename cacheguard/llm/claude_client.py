"""
Claude LLM client: enriches cache-poisoning findings with explanations and fix suggestions.

Takes the deterministic findings from the rule engine and sends them to
Claude along with the original workflow YAML, asking for:
  1. A plain explanation of how the cache could be poisoned and what ends
     up published as a result
  2. A concrete YAML fix (disable caching, lookup-only restore, or moving
     the publication into a job that does not restore caches)
"""

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional

from anthropic import Anthropic
from anthropic.types import TextBlock

from cacheguard.rules.engine import Finding

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


@dataclass
class EnrichedFinding:
    """A finding enriched with LLM-generated explanation and fix."""
    finding: Finding
    explanation: str    # how the poisoned cache reaches the published artifact
    suggested_fix: str  # concrete YAML snippet to fix the issue


SYSTEM_PROMPT = """You are a GitHub Actions supply-chain security expert. You will receive:
1. A list of cache-poisoning findings. Each one names a job that publishes artifacts
   (because of its trigger or a publisher step) and a step in that job that restores
   a cache which a less trusted run, such as a pull request, may have written.
   Each finding lists the annotated locations it is based on.
2. The original workflow YAML file

Respond with EXACTLY a JSON array — one object per finding, in the same order, no markdown, no extra text:
[
  {
    "explanation": "2-3 sentences explaining how an attacker could poison this cache and what would end up in the published artifact. Mention when the finding depends on an unresolved expression.",
    "suggested_fix": "A concrete YAML snippet for the affected step or job, e.g. disabling the cache input, using lookup-only restores, or publishing from a job that does not restore caches. Only show the part that changes."
  }
]

The array must have exactly as many objects as there are findings, in the same order."""


def _build_user_prompt(findings: list[Finding], workflow_yaml: str) -> str:
    """Build a batched prompt for all findings in one request."""
    findings_text = ""
    for i, f in enumerate(findings, 1):
        locations_text = "".join(
            f"    - line {a.location.line_number or '?'} ({a.location.yaml_key}): {a.annotation}\n"
            for a in f.locations
        )
        findings_text += f"""Finding {i}:
  Rule ID: {f.rule_id}
  Severity: {f.severity.value}
  Confidence: {f.confidence.value}
  Title: {f.title}
  Description: {f.description}
  File: {f.file_path}
  Job: {f.job_id or "(workflow-level)"}
  Step: {f.step_name or "N/A"}
  Locations:
{locations_text}
"""
    return f"""Here are {len(findings)} security finding(s):

{findings_text}Here is the full workflow YAML:

```yaml
{workflow_yaml}
```

Respond with the JSON array only."""


def enrich_findings(
    findings: list[Finding],
    workflow_yaml: str,
    api_key: Optional[str] = None,
    model: str = DEFAULT_MODEL,
) -> list[EnrichedFinding]:
    """
    Enrich a list of findings using Claude in a single batched API call.

    Args:
        findings: The deterministic findings from the rule engine.
        workflow_yaml: The original workflow YAML content.
        api_key: Anthropic API key. Falls back to ANTHROPIC_API_KEY env var.
        model: Claude model to use.

    Returns:
        A list of EnrichedFinding objects with explanations and fixes.
    """
    key = api_key or os.environ.get("ANTHROPIC_API_KEY")
    if not key:
        raise ValueError(
            "No Anthropic API key provided. Set ANTHROPIC_API_KEY environment "
            "variable or pass api_key parameter."
        )

    if not findings:
        return []

    logger.info(
        "Enriching %d finding(s) in a single batched call (model=%s)",
        len(findings), model,
    )
    client = Anthropic(api_key=key)
    user_prompt = _build_user_prompt(findings, workflow_yaml)
    logger.debug("Batched prompt length: %d chars", len(user_prompt))

    t0 = time.monotonic()
    try:
        response = client.messages.create(
            model=model,
            max_tokens=4096,
            system=SYSTEM_PROMPT,
            messages=[
                {"role": "user", "content": user_prompt},
            ],
        )
    except Exception as e:
        logger.error("Claude API request failed: %s", e)
        raise

    elapsed_ms = (time.monotonic() - t0) * 1000
    logger.info(
        "Claude response: %.0fms, tokens in=%s out=%s",
        elapsed_ms,
        getattr(response.usage, "input_tokens", None),
        getattr(response.usage, "output_tokens", None),
    )

    # Only TextBlock carries .text
    text_blocks = [b for b in response.content if isinstance(b, TextBlock)]
    response_text = text_blocks[0].text.strip() if text_blocks else ""
    logger.debug("Raw response (%d chars): %.200s", len(response_text), response_text)

    try:
        items = json.loads(response_text)
        if not isinstance(items, list) or len(items) != len(findings):
            raise ValueError(
                f"Expected a JSON array of {len(findings)} item(s), "
                f"got: {type(items).__name__} with "
                f"{len(items) if isinstance(items, list) else '?'} item(s)"
            )
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning(
            "Failed to parse batched Claude response: %s. "
            "Response starts with: %.200s",
            e, response_text,
        )
        # Fallback: return raw text as explanation for all findings
        return [
            EnrichedFinding(
                finding=f,
                explanation=response_text,
                suggested_fix="Could not parse fix suggestion.",
            )
            for f in findings
        ]

    enriched = []
    for finding, item in zip(findings, items):
        item = item if isinstance(item, dict) else {}
        enriched.append(EnrichedFinding(
            finding=finding,
            explanation=item.get("explanation", "No explanation provided."),
            suggested_fix=item.get("suggested_fix", "No fix suggested."),
        ))

    logger.info("Enrichment complete: %d finding(s) processed in 1 API call", len(enriched))
    return enriched

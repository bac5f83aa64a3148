"""
JSON reporter: outputs findings as structured JSON for programmatic use.
"""

import json
import logging
from typing import Any

from cacheguard.rules.engine import AnnotatedLocation, Finding

logger = logging.getLogger(__name__)


def _location_dict(annotated: AnnotatedLocation) -> dict[str, Any]:
    loc = annotated.location
    return {
        "file_path": loc.file_path,
        "line_number": loc.line_number,
        "key": loc.yaml_key,
        "job_id": loc.job_id,
        "step_name": loc.step_name,
        "annotation": annotated.annotation,
    }


def report_json(findings: list[Finding]) -> str:
    """
    Format findings as a JSON string.

    Args:
        findings: List of Finding objects to report.

    Returns:
        A JSON string with all findings.
    """
    data = {
        "total": len(findings),
        "findings": [
            {
                "rule_id": f.rule_id,
                "severity": f.severity.value,
                "confidence": f.confidence.value,
                "title": f.title,
                "description": f.description,
                "file_path": f.file_path,
                "job_id": f.job_id,
                "step_name": f.step_name,
                "line_number": f.line_number,
                "locations": [_location_dict(loc) for loc in f.locations],
            }
            for f in findings
        ],
    }
    output = json.dumps(data, indent=2)
    logger.info("JSON report: %d finding(s), %d bytes", len(findings), len(output))
    return output

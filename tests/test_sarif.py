"""Tests for the SARIF reporter."""

import json

from cacheguard.rules.engine import AnnotatedLocation, Confidence, Finding, Location, Severity
from cacheguard.reporter.sarif_reporter import report_sarif


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_finding(**overrides):
    defaults = dict(
        rule_id="cache-poisoning",
        severity=Severity.HIGH,
        title="Runtime artifacts potentially vulnerable to cache poisoning",
        description="Job 'image' restores a cache through 'actions/setup-go@v5'.",
        file_path=".github/workflows/image.yml",
        job_id="image",
        step_name="Setup Go",
        line_number=14,
        confidence=Confidence.LOW,
        locations=(
            AnnotatedLocation(
                Location(".github/workflows/image.yml", 18, "uses", "image", "Build and push"),
                "this step typically publishes runtime-built artifacts",
            ),
            AnnotatedLocation(
                Location(".github/workflows/image.yml", 14, "uses", "image", "Setup Go"),
                "caching is enabled by default here",
            ),
        ),
    )
    defaults.update(overrides)
    return Finding(**defaults)


def _result(finding):
    return json.loads(report_sarif([finding]))["runs"][0]["results"][0]


# ---------------------------------------------------------------------------
# SARIF structure
# ---------------------------------------------------------------------------

class TestSarifStructure:
    def test_sarif_version_and_schema(self):
        parsed = json.loads(report_sarif([_make_finding()]))
        assert parsed["version"] == "2.1.0"
        assert "$schema" in parsed
        assert len(parsed["runs"]) == 1

    def test_tool_name(self):
        parsed = json.loads(report_sarif([_make_finding()]))
        assert parsed["runs"][0]["tool"]["driver"]["name"] == "cacheguard"

    def test_empty_findings(self):
        parsed = json.loads(report_sarif([]))
        assert parsed["runs"][0]["results"] == []
        assert parsed["runs"][0]["tool"]["driver"]["rules"] == []


# ---------------------------------------------------------------------------
# Rules section
# ---------------------------------------------------------------------------

class TestSarifRules:
    def test_deduplicates_rules(self):
        parsed = json.loads(report_sarif([_make_finding(), _make_finding()]))
        rules = parsed["runs"][0]["tool"]["driver"]["rules"]
        assert [r["id"] for r in rules] == ["cache-poisoning"]
        assert rules[0]["name"] == "CachePoisoning"

    def test_rule_properties(self):
        parsed = json.loads(report_sarif([_make_finding()]))
        props = parsed["runs"][0]["tool"]["driver"]["rules"][0]["properties"]
        assert props["security-severity"] == "7.0"
        assert props["precision"] == "low"

    def test_severity_mapping(self):
        for severity, expected_score in [
            (Severity.CRITICAL, "9.0"),
            (Severity.HIGH, "7.0"),
            (Severity.MEDIUM, "5.0"),
            (Severity.LOW, "3.0"),
        ]:
            parsed = json.loads(report_sarif([_make_finding(severity=severity)]))
            rule = parsed["runs"][0]["tool"]["driver"]["rules"][0]
            assert rule["properties"]["security-severity"] == expected_score


# ---------------------------------------------------------------------------
# Results section
# ---------------------------------------------------------------------------

class TestSarifResults:
    def test_result_basics(self):
        result = _result(_make_finding())
        assert result["ruleId"] == "cache-poisoning"
        assert result["level"] == "error"
        assert "actions/setup-go@v5" in result["message"]["text"]
        assert result["properties"]["confidence"] == "low"

    def test_level_mapping(self):
        assert _result(_make_finding(severity=Severity.MEDIUM))["level"] == "warning"
        assert _result(_make_finding(severity=Severity.LOW))["level"] == "note"

    def test_primary_location(self):
        location = _result(_make_finding())["locations"][0]
        physical = location["physicalLocation"]
        assert physical["artifactLocation"]["uri"] == ".github/workflows/image.yml"
        assert physical["region"]["startLine"] == 14

    def test_falls_back_to_line_1(self):
        location = _result(_make_finding(line_number=None))["locations"][0]
        assert location["physicalLocation"]["region"]["startLine"] == 1

    def test_logical_locations(self):
        logical = _result(_make_finding())["locations"][0]["logicalLocations"]
        assert {loc["kind"] for loc in logical} == {"job", "step"}

    def test_related_locations(self):
        related = _result(_make_finding())["relatedLocations"]
        assert [r["id"] for r in related] == [0, 1]
        assert related[0]["physicalLocation"]["region"]["startLine"] == 18
        assert related[0]["message"]["text"] == "this step typically publishes runtime-built artifacts"
        assert related[1]["message"]["text"] == "caching is enabled by default here"

    def test_no_related_locations_without_annotations(self):
        assert "relatedLocations" not in _result(_make_finding(locations=()))

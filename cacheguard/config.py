"""
Configuration file support for cacheguard.

Looks for a .cacheguard.yml file next to the scanned workflows (or in one
of their parent directories) and loads settings that control the minimum
severity, ignored rules and excluded workflow files.

Example .cacheguard.yml:

    # Minimum severity to report (critical, high, medium, low)
    severity: high

    # Rules to ignore (by rule ID)
    ignore_rules:
      - cache-poisoning

    # Workflow files to exclude (glob patterns matched against the file path)
    exclude:
      - "**/nightly-*.yml"
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".cacheguard.yml"
VALID_SEVERITIES = ("critical", "high", "medium", "low")


@dataclass
class Config:
    """Parsed cacheguard configuration."""
    severity: str = "low"
    ignore_rules: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)


def load_config(config_path: Optional[str] = None, scan_path: Optional[str] = None) -> Config:
    """
    Load configuration from a .cacheguard.yml file.

    Search order:
      1. Explicit config_path if provided
      2. .cacheguard.yml in the scan_path directory (or its parent if scan_path
         is a file), then in each enclosing directory
      3. .cacheguard.yml in the current working directory

    Returns a Config with defaults if no config file is found.
    """
    path = _find_config_file(config_path, scan_path)

    if path is None:
        logger.debug("No config file found, using defaults")
        return Config()

    logger.info("Loading config from %s", path)

    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        logger.warning("Config file is not a YAML mapping, using defaults")
        return Config()

    severity = str(raw.get("severity", "low")).lower()
    if severity not in VALID_SEVERITIES:
        logger.warning("Unknown severity '%s' in %s, using 'low'", severity, path)
        severity = "low"

    return Config(
        severity=severity,
        ignore_rules=_string_list(raw.get("ignore_rules"), "ignore_rules"),
        exclude=_string_list(raw.get("exclude"), "exclude"),
    )


def _string_list(value: Any, name: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        logger.warning("Config '%s' should be a list, ignoring it", name)
        return []
    return [str(v) for v in value]


def _find_config_file(
    config_path: Optional[str] = None,
    scan_path: Optional[str] = None,
) -> Optional[str]:
    """Find the config file, returning its path or None."""
    # 1. Explicit path
    if config_path:
        p = Path(config_path)
        if p.is_file():
            return str(p)
        logger.warning("Config file not found: %s", config_path)
        return None

    # 2. Relative to scan path, walking up (e.g. scan_path is .github/workflows/)
    if scan_path:
        scan_p = Path(scan_path)
        if scan_p.is_file():
            scan_p = scan_p.parent
        for directory in (scan_p, *scan_p.parents):
            candidate = directory / DEFAULT_CONFIG_FILENAME
            if candidate.is_file():
                return str(candidate)

    # 3. Current working directory
    cwd_candidate = Path.cwd() / DEFAULT_CONFIG_FILENAME
    if cwd_candidate.is_file():
        return str(cwd_candidate)

    return None

from .engine import run_all_rules, Finding, Severity, Confidence

__all__ = ["run_all_rules", "Finding", "Severity", "Confidence"]

# Import all rule modules so they register themselves via @register_rule
from . import cache_poisoning

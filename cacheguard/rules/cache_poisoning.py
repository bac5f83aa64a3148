"""
Rule: Detect runtime artifacts exposed to cache poisoning.

GitHub Actions caches are shared between runs of the same repository.
A pull-request build can write a cache entry that a later release build
restores. If the release job then publishes what it built (to PyPI, a
container registry, a GitHub Release, a cloud deployment...), whatever
the attacker planted in the cache ends up in the published artifact.

The rule flags jobs that:
  1. run in a publishing context: the workflow is triggered by a release
     or a tag push, or the job invokes a well-known publisher action;
  2. invoke a well-known cache-aware action with caching active, given
     the inputs the step declares.

Since nothing is executed, every finding is reported at low confidence.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from cacheguard.parser.workflow_parser import (
    ActionRef,
    BareEvent,
    BareEvents,
    EventMap,
    Job,
    Step,
    Trigger,
    Workflow,
)
from cacheguard.rules.engine import (
    AnnotatedLocation,
    Confidence,
    Finding,
    Location,
    Severity,
    register_rule,
)
from cacheguard.rules.known_actions import (
    CachePolarity,
    ConfigurableCacheAction,
    ControlValue,
    FixedCacheAction,
    find_cache_aware_action,
    is_known_publisher,
)

logger = logging.getLogger(__name__)

RULE_ID = "cache-poisoning"
TITLE = "Runtime artifacts potentially vulnerable to cache poisoning"

# Filters that restrict a push trigger to tag refs
TAG_FILTER_KEYS = ("tags", "tags-ignore")

# A value that is entirely a workflow expression, e.g. "${{ matrix.cache }}"
EXPRESSION_PATTERN = re.compile(r"^\$\{\{.*\}\}$", re.DOTALL)


class CacheUsage(Enum):
    ALWAYS_CACHE = "always-active"
    DEFAULT_BEHAVIOUR = "active-by-default"
    DIRECT_OPT_IN = "direct-opt-in"
    CONDITIONAL_OPT_IN = "conditional-opt-in"


# How the value given to a cache control input reads, before polarity applies
class _Signal(Enum):
    DIRECT = "direct"
    EXPLICIT_FALSE = "explicit-false"
    CONDITIONAL = "conditional"


@dataclass(frozen=True)
class TriggerScenario:
    """The workflow trigger (release / tag push) implies publishing."""


@dataclass(frozen=True)
class PublisherStepScenario:
    """A step in the job invokes a well-known publisher action."""
    step: Step


PublishingScenario = Union[TriggerScenario, PublisherStepScenario]


# (yaml key to anchor on, annotation) per cache usage
_CACHE_ANCHORS: dict[CacheUsage, tuple[str, str]] = {
    CacheUsage.ALWAYS_CACHE: ("uses", "caching is always restored here"),
    CacheUsage.DEFAULT_BEHAVIOUR: ("uses", "caching is enabled by default here"),
    CacheUsage.DIRECT_OPT_IN: ("with", "caching is explicitly opted into here"),
    CacheUsage.CONDITIONAL_OPT_IN: (
        "with",
        "caching may be opted into here, depending on an unresolved expression",
    ),
}

_TRIGGER_ANNOTATION = "generally indicates artifact publishing"
_PUBLISHER_ANNOTATION = "this step typically publishes runtime-built artifacts"


# ---------------------------------------------------------------------------
# Publishing-scenario detection
# ---------------------------------------------------------------------------

def trigger_implies_publishing(trigger: Optional[Trigger]) -> bool:
    """True for `release` triggers and for pushes filtered on tags."""
    if isinstance(trigger, BareEvent):
        return trigger.event == "release"
    if isinstance(trigger, BareEvents):
        return "release" in trigger.events
    if isinstance(trigger, EventMap):
        push = trigger.events.get("push")
        return isinstance(push, dict) and any(push.get(k) is not None for k in TAG_FILTER_KEYS)
    return False


def find_publisher_step(steps: list[Step]) -> Optional[Step]:
    """First step (in declaration order) that uses a well-known publisher action."""
    for step in steps:
        if step.uses is not None and is_known_publisher(step.uses):
            return step
    return None


def detect_publishing_scenario(
    trigger: Optional[Trigger],
    steps: list[Step],
) -> Optional[PublishingScenario]:
    """Decide whether a job publishes artifacts, and through which signal."""
    if trigger_implies_publishing(trigger):
        return TriggerScenario()

    publisher = find_publisher_step(steps)
    if publisher is not None:
        return PublisherStepScenario(publisher)

    return None


# ---------------------------------------------------------------------------
# Cache-usage evaluation
# ---------------------------------------------------------------------------

def is_expression(value: str) -> bool:
    """True if the value is an unresolved `${{ ... }}` workflow expression."""
    return bool(EXPRESSION_PATTERN.match(value.strip()))


def _as_text(value: Any) -> str:
    # YAML gives us real booleans for `cache: true`; the runner sees "true"
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _classify_value(value: Any, shape: ControlValue) -> Optional[_Signal]:
    text = _as_text(value).strip()
    if text == "true":
        return _Signal.DIRECT
    if text == "false":
        return _Signal.EXPLICIT_FALSE
    if is_expression(text):
        return _Signal.CONDITIONAL
    if shape is ControlValue.STRING and text:
        return _Signal.DIRECT
    return None


def _default_behaviour(action: ConfigurableCacheAction) -> Optional[CacheUsage]:
    return CacheUsage.DEFAULT_BEHAVIOUR if action.caching_by_default else None


def _usage_of_configurable(
    action: ConfigurableCacheAction,
    with_args: dict[str, Any],
) -> Optional[CacheUsage]:
    if action.control_input not in with_args:
        return _default_behaviour(action)

    signal = _classify_value(with_args[action.control_input], action.value_shape)
    opt_in = action.polarity is CachePolarity.OPT_IN

    if signal is _Signal.CONDITIONAL:
        # unresolved expression: reported whatever the polarity
        return CacheUsage.CONDITIONAL_OPT_IN
    if signal is _Signal.DIRECT:
        return CacheUsage.DIRECT_OPT_IN if opt_in else None
    if signal is _Signal.EXPLICIT_FALSE:
        # false on an opt-out input just leaves the action at its default
        return None if opt_in else _default_behaviour(action)
    return None


def evaluate_cache_usage(uses: ActionRef, with_args: dict[str, Any]) -> Optional[CacheUsage]:
    """
    Decide whether a step invoking `uses` with inputs `with_args` restores a cache.

    Returns None when the action is not a known cache-aware action or when
    the declared inputs leave caching off.
    """
    action = find_cache_aware_action(uses)
    if action is None:
        return None
    if isinstance(action, FixedCacheAction):
        return CacheUsage.ALWAYS_CACHE
    return _usage_of_configurable(action, with_args)


# ---------------------------------------------------------------------------
# Finding synthesis
# ---------------------------------------------------------------------------

def _describe(job: Job, step: Step, scenario: PublishingScenario, usage: CacheUsage) -> str:
    if isinstance(scenario, TriggerScenario):
        context = "the workflow is triggered by a release or a tag push"
    else:
        context = f"step '{scenario.step.display_name}' publishes artifacts"

    action = step.uses.full_ref if step.uses else step.display_name
    return (
        f"Job '{job.job_id}' restores a cache through '{action}' "
        f"({usage.value}) while {context}. A cache entry written by a less "
        f"trusted run, such as a pull request build, could be restored here "
        f"and end up in the published artifact. Disable caching in "
        f"publishing jobs, or split the build and the publication."
    )


def build_finding(
    workflow: Workflow,
    job: Job,
    step: Step,
    scenario: PublishingScenario,
    usage: CacheUsage,
) -> Finding:
    """Build the finding for a cache-restoring step in a publishing job."""
    if isinstance(scenario, TriggerScenario):
        boundary = AnnotatedLocation(
            Location(
                file_path=workflow.file_path,
                line_number=workflow.trigger_line,
                yaml_key="on",
            ),
            _TRIGGER_ANNOTATION,
        )
    else:
        publisher = scenario.step
        boundary = AnnotatedLocation(
            Location(
                file_path=workflow.file_path,
                line_number=publisher.key_line("uses"),
                yaml_key="uses",
                job_id=job.job_id,
                step_name=publisher.display_name,
            ),
            _PUBLISHER_ANNOTATION,
        )

    yaml_key, annotation = _CACHE_ANCHORS[usage]
    cache_location = Location(
        file_path=workflow.file_path,
        line_number=step.key_line(yaml_key),
        yaml_key=yaml_key,
        job_id=job.job_id,
        step_name=step.display_name,
    )

    return Finding(
        rule_id=RULE_ID,
        severity=Severity.HIGH,
        title=TITLE,
        description=_describe(job, step, scenario, usage),
        file_path=workflow.file_path,
        job_id=job.job_id,
        step_name=step.display_name,
        line_number=cache_location.line_number,
        confidence=Confidence.LOW,
        locations=(boundary, AnnotatedLocation(cache_location, annotation)),
    )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def audit_job(workflow: Workflow, job: Job) -> list[Finding]:
    """Return the cache-poisoning findings for one job, in step order."""
    scenario = detect_publishing_scenario(workflow.trigger, job.steps)
    if scenario is None:
        logger.debug("Job '%s': no publishing scenario, skipping", job.job_id)
        return []
    logger.debug("Job '%s': publishing scenario %s", job.job_id, type(scenario).__name__)

    findings = []
    for step in job.steps:
        if step.uses is None:
            continue
        usage = evaluate_cache_usage(step.uses, step.with_args)
        if usage is None:
            continue
        logger.debug("Job '%s', step '%s': cache usage %s", job.job_id, step.display_name, usage.value)
        findings.append(build_finding(workflow, job, step, scenario, usage))
    return findings


@register_rule
def check_cache_poisoning(workflow: Workflow) -> list[Finding]:
    findings = []
    for job in workflow.jobs:
        findings.extend(audit_job(workflow, job))
    return findings

"""
Parser for GitHub Actions workflow files.

Reads .yml/.yaml files from a workflows directory and normalizes them
into a structured format that the cache-poisoning rule can analyze.
Every mapping keeps the line of each of its keys so that findings can
point at the exact `on:`, `uses:` or `with:` declaration.
"""

import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import yaml

logger = logging.getLogger(__name__)

LINE_KEY = "__line__"
KEY_LINES_KEY = "__key_lines__"
_META_KEYS = (LINE_KEY, KEY_LINES_KEY)


class _LineLoader(yaml.SafeLoader):
    """PyYAML loader that stores the start line of every mapping and of each of its keys."""


def _construct_mapping(loader: _LineLoader, node: yaml.MappingNode) -> dict[Any, Any]:
    mapping: dict[Any, Any] = loader.construct_mapping(node, deep=True)
    key_lines: dict[Any, int] = {}
    for key_node, _ in node.value:
        key = loader.construct_object(key_node, deep=True)
        if isinstance(key, (str, bool, int)):
            key_lines[key] = key_node.start_mark.line + 1  # YAML lines are 0-indexed
    mapping[LINE_KEY] = node.start_mark.line + 1
    mapping[KEY_LINES_KEY] = key_lines
    return mapping


_LineLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _strip_meta(value: Any) -> Any:
    """Drop the loader's line bookkeeping from a mapping (recursively)."""
    if isinstance(value, dict):
        return {k: _strip_meta(v) for k, v in value.items() if k not in _META_KEYS}
    if isinstance(value, list):
        return [_strip_meta(v) for v in value]
    return value


@dataclass(frozen=True)
class ActionRef:
    """A reference to a GitHub Action, e.g. 'actions/aws/s3-upload@v1'."""
    full_ref: str            # e.g. "actions/checkout@v3"
    owner: str               # e.g. "actions"
    repo: str                # e.g. "checkout"
    subpath: Optional[str]   # e.g. "s3-upload" for "actions/aws/s3-upload@v1"
    ref: Optional[str]       # e.g. "v3" or a SHA; None for catalogue coordinates

    def matches(self, other: "ActionRef") -> bool:
        """True if both refer to the same action, whatever version is pinned."""
        return (
            self.owner.lower() == other.owner.lower()
            and self.repo.lower() == other.repo.lower()
            and self.subpath == other.subpath
        )


# Workflow triggers. `on:` comes in three shapes:
#   on: release                      -> BareEvent
#   on: [push, release]              -> BareEvents
#   on: {push: {tags: ["v*"]}}       -> EventMap


@dataclass(frozen=True)
class BareEvent:
    event: str


@dataclass(frozen=True)
class BareEvents:
    events: tuple[str, ...]


@dataclass(frozen=True)
class EventMap:
    # event name -> its filter/config mapping (None for `push:` with no body)
    events: dict[str, Optional[dict[str, Any]]]


Trigger = Union[BareEvent, BareEvents, EventMap]


@dataclass
class Step:
    """A single step within a job."""
    name: Optional[str]
    uses: Optional[ActionRef]
    run: Optional[str]
    env: dict[str, Any]
    with_args: dict[str, Any]
    raw: dict[str, Any]
    line_number: Optional[int] = None
    key_lines: dict[str, int] = field(default_factory=dict)

    def key_line(self, key: str) -> Optional[int]:
        """Line of `key` within this step, or the step's own line if unknown."""
        return self.key_lines.get(key, self.line_number)

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.uses:
            return self.uses.full_ref
        return "(unnamed step)"


@dataclass
class Job:
    """A single job within a workflow."""
    job_id: str
    name: Optional[str]
    steps: list[Step]
    env: dict[str, Any]
    raw: dict[str, Any]
    line_number: Optional[int] = None


@dataclass
class Workflow:
    """A parsed GitHub Actions workflow."""
    file_path: str
    name: Optional[str]
    env: dict[str, Any]
    jobs: list[Job]
    raw: dict[str, Any]
    line_number: Optional[int] = None
    trigger: Optional[Trigger] = None
    trigger_line: Optional[int] = None


def parse_action_ref(uses_string: str, require_ref: bool = True) -> Optional[ActionRef]:
    """
    Parse an action reference like 'actions/checkout@v3' into components.

    Returns None for anything that is not a repository action: local
    actions, docker images and malformed strings. Callers treat that as
    "not applicable" rather than an error.

    Args:
        uses_string: The `uses:` value.
        require_ref: Reject references without an '@ref' part. Workflow
                     steps always need one; catalogue entries never have one.
    """
    if not isinstance(uses_string, str) or "/" not in uses_string:
        logger.debug("Skipping non-action uses reference: %r", uses_string)
        return None

    # Handle docker:// and ./ (local) actions
    if uses_string.startswith("docker://") or uses_string.startswith("./"):
        logger.debug("Skipping local/docker action: %s", uses_string)
        return None

    ref: Optional[str] = None
    action_path = uses_string
    if "@" in uses_string:
        action_path, ref = uses_string.rsplit("@", 1)
        if not ref:
            logger.debug("Skipping action with empty ref: %s", uses_string)
            return None
    elif require_ref:
        logger.debug("Skipping action without version ref: %s", uses_string)
        return None

    parts = action_path.split("/")
    if len(parts) < 2 or not all(parts) or any(c.isspace() for c in action_path):
        logger.debug("Skipping malformed action reference: %s", uses_string)
        return None

    owner = parts[0]
    repo = parts[1]
    subpath = "/".join(parts[2:]) or None

    logger.debug(
        "Parsed action %s/%s%s@%s",
        owner, repo, f"/{subpath}" if subpath else "", ref or "",
    )

    return ActionRef(
        full_ref=uses_string,
        owner=owner,
        repo=repo,
        subpath=subpath,
        ref=ref,
    )


def _parse_step(step_raw: dict[str, Any]) -> Step:
    """Parse a raw step dictionary into a Step dataclass."""
    uses_str = step_raw.get("uses")
    with_args = step_raw.get("with")
    env = step_raw.get("env")
    return Step(
        name=step_raw.get("name"),
        uses=parse_action_ref(uses_str) if uses_str else None,
        run=step_raw.get("run"),
        env=_strip_meta(env) if isinstance(env, dict) else {},
        with_args=_strip_meta(with_args) if isinstance(with_args, dict) else {},
        raw=step_raw,
        line_number=step_raw.get(LINE_KEY),
        key_lines=step_raw.get(KEY_LINES_KEY, {}),
    )


def _parse_trigger(on_field: Any) -> Optional[Trigger]:
    """Turn the 'on' field into one of the three trigger shapes."""
    if isinstance(on_field, str):
        return BareEvent(on_field)
    if isinstance(on_field, list):
        return BareEvents(tuple(e for e in on_field if isinstance(e, str)))
    if isinstance(on_field, dict):
        events = {}
        for name, body in _strip_meta(on_field).items():
            if isinstance(name, str):
                events[name] = body if isinstance(body, dict) else None
        return EventMap(events)
    return None


def _parse_job(job_id: str, job_raw: dict[str, Any]) -> Job:
    """Parse a raw job dictionary into a Job dataclass."""
    steps_field = job_raw.get("steps")
    steps_raw = [s for s in steps_field if isinstance(s, dict)] if isinstance(steps_field, list) else []
    logger.debug("Parsing job '%s' with %d step(s)", job_id, len(steps_raw))
    env = job_raw.get("env")
    return Job(
        job_id=job_id,
        name=job_raw.get("name"),
        steps=[_parse_step(s) for s in steps_raw],
        env=_strip_meta(env) if isinstance(env, dict) else {},
        raw=job_raw,
        line_number=job_raw.get(LINE_KEY),
    )


def parse_workflow(file_path: str) -> Workflow:
    """
    Parse a single GitHub Actions workflow YAML file.

    Args:
        file_path: Path to the .yml/.yaml workflow file.

    Returns:
        A Workflow dataclass with normalized data.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        yaml.YAMLError: If the file isn't valid YAML.
        ValueError: If the document isn't a YAML mapping.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Workflow file not found: {file_path}")

    logger.info("Parsing workflow: %s", file_path)

    with open(path, "r") as f:
        raw = yaml.load(f, Loader=_LineLoader)  # noqa: S506  # _LineLoader is safe

    if not isinstance(raw, dict):
        logger.error("File is not a valid YAML mapping: %s", file_path)
        raise ValueError(f"Workflow file is not a valid YAML mapping: {file_path}")

    jobs_raw = raw.get("jobs")
    jobs = [
        _parse_job(str(job_id), job_data)
        for job_id, job_data in (jobs_raw.items() if isinstance(jobs_raw, dict) else [])
        if job_id not in _META_KEYS and isinstance(job_data, dict)
    ]

    # YAML 1.1 reads a bare `on` key as the boolean True
    on_key = "on" if "on" in raw else True
    on_field = raw.get(on_key)
    trigger = _parse_trigger(on_field)
    trigger_line = raw.get(KEY_LINES_KEY, {}).get(on_key) if on_key in raw else None

    env = raw.get("env")
    logger.debug("Parsed '%s': %d job(s), trigger=%s", raw.get("name", "(unnamed)"), len(jobs), trigger)

    return Workflow(
        file_path=str(path),
        name=raw.get("name"),
        env=_strip_meta(env) if isinstance(env, dict) else {},
        jobs=jobs,
        raw=raw,
        line_number=raw.get(LINE_KEY),
        trigger=trigger,
        trigger_line=trigger_line,
    )


def parse_workflows_dir(dir_path: str) -> list[Workflow]:
    """
    Parse all workflow files in a directory.

    Args:
        dir_path: Path to a directory containing .yml/.yaml files
                  (typically .github/workflows/).

    Returns:
        A list of parsed Workflow objects.
    """
    path = Path(dir_path)
    if not path.is_dir():
        raise NotADirectoryError(f"Not a directory: {dir_path}")

    yaml_files = sorted(f for f in path.iterdir() if f.suffix in (".yml", ".yaml"))
    logger.debug("Found %d YAML file(s) in %s", len(yaml_files), dir_path)

    workflows = []
    for file in yaml_files:
        try:
            workflows.append(parse_workflow(str(file)))
        except (ValueError, yaml.YAMLError) as e:
            logger.warning("Skipping invalid workflow %s: %s", file.name, e)

    logger.info("Parsed %d workflow(s) from %s", len(workflows), dir_path)
    return workflows

from .workflow_parser import (
    ActionRef,
    BareEvent,
    BareEvents,
    EventMap,
    Job,
    Step,
    Trigger,
    Workflow,
    parse_action_ref,
    parse_workflow,
    parse_workflows_dir,
)

__all__ = [
    "ActionRef",
    "BareEvent",
    "BareEvents",
    "EventMap",
    "Job",
    "Step",
    "Trigger",
    "Workflow",
    "parse_action_ref",
    "parse_workflow",
    "parse_workflows_dir",
]

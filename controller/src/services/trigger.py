"""
Trigger evaluation: does an event start a run of a pipeline?
"""

from fnmatch import fnmatchcase
from typing import Iterable, Tuple

from controller.src.models.pipeline import Event, PipelineDefinition, TriggerRule

def _matches_any(value: str, patterns: Iterable[str]) -> bool:
    return any(fnmatchcase(value, pattern) for pattern in patterns)

def _paths_match(changed_paths: Tuple[str, ...], patterns: Tuple[str, ...]) -> bool:
    if not patterns:
        return True
    # No path information (e.g. a manual dispatch) never filters a run out
    if not changed_paths:
        return True
    return any(_matches_any(path, patterns) for path in changed_paths)

def evaluate_trigger(rule: TriggerRule, event: Event) -> bool:
    """
    Match an event against a trigger rule.
    Empty branch or path filters match everything.
    """
    event_filter = rule.filter_for(event.kind)
    if event_filter is None:
        return False

    if event_filter.branches and not _matches_any(event.branch, event_filter.branches):
        return False

    return _paths_match(event.changed_paths, event_filter.paths)

def should_run(definition: PipelineDefinition, event: Event) -> bool:
    return evaluate_trigger(definition.trigger, event)

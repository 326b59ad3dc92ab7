"""
Pipeline YAML parser and validator.
"""

import logging
import os
import yaml
from typing import List, Dict, Any, Optional

from controller.src.models.pipeline import (
    EventKind,
    EventFilter,
    FailurePolicy,
    PipelineDefinition,
    StepConfig,
    StepKind,
    TriggerRule,
)
from controller.src.services.actions import ACTIONS
from controller.src.errors import PipelineConfigError

logger = logging.getLogger(__name__)

# workflow_dispatch is accepted for configs ported from GitHub Actions
EVENT_ALIASES = {
    "push": EventKind.PUSH,
    "manual": EventKind.MANUAL,
    "workflow_dispatch": EventKind.MANUAL,
}

def parse_pipeline_config(yaml_content: str) -> PipelineDefinition:
    """Parse pipeline YAML configuration from string."""
    try:
        config = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise PipelineConfigError(f"Invalid YAML: {e}")

    return validate_config(config)

def parse_pipeline_dict(config: Dict[str, Any]) -> PipelineDefinition:
    """Validate pipeline configuration from dict."""
    return validate_config(config)

def validate_config(config: Optional[Dict[str, Any]]) -> PipelineDefinition:
    """Validate pipeline configuration structure."""
    if not config:
        raise PipelineConfigError("Empty pipeline configuration")

    if not isinstance(config, dict):
        raise PipelineConfigError("Pipeline configuration must be a dictionary")

    if "name" not in config:
        raise PipelineConfigError("Pipeline must have a 'name'")

    name = config["name"]
    if not isinstance(name, str) or not name:
        raise PipelineConfigError("Pipeline 'name' must be a non-empty string")

    # YAML 1.1 reads a bare `on:` key as boolean True
    trigger_config = config.get("on", config.get(True))
    if trigger_config is None:
        raise PipelineConfigError("Pipeline must have 'on' defined")
    trigger = validate_trigger(trigger_config)

    if "steps" not in config:
        raise PipelineConfigError("Pipeline must have 'steps' defined")

    steps = config["steps"]
    if not isinstance(steps, list):
        raise PipelineConfigError("Pipeline 'steps' must be a list")

    if len(steps) == 0:
        raise PipelineConfigError("Pipeline must have at least one step")

    validated_steps = []
    seen_ids = set()
    for i, step in enumerate(steps):
        validated_step = validate_step(step, i)
        if validated_step.id:
            if validated_step.id in seen_ids:
                raise PipelineConfigError(f"Step {i} reuses id '{validated_step.id}'")
            seen_ids.add(validated_step.id)
        validated_steps.append(validated_step)

    return PipelineDefinition(
        name=name,
        trigger=trigger,
        env=validate_mapping(config.get("env", {}), "Pipeline 'env'"),
        steps=tuple(validated_steps),
    )

def validate_trigger(trigger_config: Any) -> TriggerRule:
    """Validate the 'on' section: a string, a list of events, or a mapping."""
    if isinstance(trigger_config, str):
        trigger_config = {trigger_config: None}
    elif isinstance(trigger_config, list):
        trigger_config = {event: None for event in trigger_config}

    if not isinstance(trigger_config, dict) or not trigger_config:
        raise PipelineConfigError("Pipeline 'on' must name at least one event")

    filters = []
    for event, options in trigger_config.items():
        if event not in EVENT_ALIASES:
            raise PipelineConfigError(f"Unsupported trigger event '{event}'")

        options = options or {}
        if not isinstance(options, dict):
            raise PipelineConfigError(f"Trigger '{event}' options must be a dictionary")

        filters.append(EventFilter(
            kind=EVENT_ALIASES[event],
            branches=validate_patterns(options.get("branches"), f"Trigger '{event}' branches"),
            paths=validate_patterns(options.get("paths"), f"Trigger '{event}' paths"),
        ))

    return TriggerRule(filters=tuple(filters))

def validate_patterns(patterns: Any, label: str) -> tuple:
    if patterns is None:
        return ()
    if isinstance(patterns, str):
        patterns = [patterns]
    if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
        raise PipelineConfigError(f"{label} must be a string or list of strings")
    return tuple(patterns)

def validate_mapping(mapping: Any, label: str) -> Dict[str, str]:
    """Validate a str -> scalar mapping, coercing values to strings."""
    if mapping is None:
        return {}
    if not isinstance(mapping, dict):
        raise PipelineConfigError(f"{label} must be a dictionary")

    result = {}
    for key, value in mapping.items():
        if isinstance(value, (dict, list)):
            raise PipelineConfigError(f"{label} value for '{key}' must be a scalar")
        if isinstance(value, bool):
            value = "true" if value else "false"
        result[str(key)] = "" if value is None else str(value)
    return result

def validate_step(step: Dict[str, Any], index: int) -> StepConfig:
    """Validate a single pipeline step."""
    if not isinstance(step, dict):
        raise PipelineConfigError(f"Step {index} must be a dictionary")

    # Required fields
    if "name" not in step:
        raise PipelineConfigError(f"Step {index} missing 'name'")

    if not isinstance(step["name"], str):
        raise PipelineConfigError(f"Step {index} 'name' must be a string")

    has_run = "run" in step
    has_uses = "uses" in step
    if has_run == has_uses:
        raise PipelineConfigError(f"Step {index} must have exactly one of 'run' or 'uses'")

    if has_run:
        if not isinstance(step["run"], str) or not step["run"].strip():
            raise PipelineConfigError(f"Step {index} 'run' must be a non-empty string")
        if "with" in step:
            raise PipelineConfigError(f"Step {index} 'with' is only valid for 'uses' steps")
    else:
        uses = step["uses"]
        if not isinstance(uses, str):
            raise PipelineConfigError(f"Step {index} 'uses' must be a string")
        if uses not in ACTIONS:
            raise PipelineConfigError(f"Step {index} uses unknown action '{uses}'")
        if "image" in step:
            raise PipelineConfigError(f"Step {index} 'image' is only valid for 'run' steps")

    step_id = step.get("id")
    if step_id is not None and not isinstance(step_id, str):
        raise PipelineConfigError(f"Step {index} 'id' must be a string")

    timeout = step.get("timeout")
    if timeout is not None and (not isinstance(timeout, int) or timeout <= 0):
        raise PipelineConfigError(f"Step {index} 'timeout' must be a positive integer")

    continue_on_error = step.get("continue_on_error", False)
    if not isinstance(continue_on_error, bool):
        raise PipelineConfigError(f"Step {index} 'continue_on_error' must be a boolean")

    return StepConfig(
        name=step["name"],
        kind=StepKind.SHELL if has_run else StepKind.ACTION,
        id=step_id,
        run=step.get("run"),
        uses=step.get("uses"),
        inputs=validate_mapping(step.get("with", {}), f"Step {index} 'with'"),
        env=validate_mapping(step.get("env", {}), f"Step {index} 'env'"),
        working_directory=step.get("working_directory"),
        image=step.get("image"),
        policy=FailurePolicy.CONTINUE if continue_on_error else FailurePolicy.ABORT,
        timeout=timeout,
    )

def pipeline_files(directory: str) -> List[str]:
    if not os.path.isdir(directory):
        return []
    return sorted(
        os.path.join(directory, name)
        for name in os.listdir(directory)
        if name.endswith((".yml", ".yaml"))
    )

def load_pipelines(directory: str) -> Dict[str, PipelineDefinition]:
    """
    Load every pipeline definition in `directory`.
    Called once at process start; definitions are immutable afterwards.
    """
    pipelines: Dict[str, PipelineDefinition] = {}

    for path in pipeline_files(directory):
        with open(path, "r") as f:
            try:
                definition = parse_pipeline_config(f.read())
            except PipelineConfigError as e:
                raise PipelineConfigError(f"{path}: {e}")

        if definition.name in pipelines:
            raise PipelineConfigError(f"{path}: duplicate pipeline name '{definition.name}'")

        pipelines[definition.name] = definition
        logger.info(f"Loaded pipeline '{definition.name}' from {path}")

    return pipelines

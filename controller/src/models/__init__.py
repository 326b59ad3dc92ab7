from controller.src.models.pipeline import (
    EventKind,
    StepKind,
    FailurePolicy,
    EventFilter,
    TriggerRule,
    StepConfig,
    PipelineDefinition,
    Event,
)
from controller.src.models.step import (
    StepStatus,
    RunStatus,
    StepResult,
    Artifact,
    PipelineJob,
)
from controller.src.models.context import Credentials, RunContext

__all__ = [
    "EventKind",
    "StepKind",
    "FailurePolicy",
    "EventFilter",
    "TriggerRule",
    "StepConfig",
    "PipelineDefinition",
    "Event",
    "StepStatus",
    "RunStatus",
    "StepResult",
    "Artifact",
    "PipelineJob",
    "Credentials",
    "RunContext",
]

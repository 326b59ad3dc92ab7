from controller.src.errors import (
    PipelineError,
    PipelineConfigError,
    StepError,
    BuildError,
    AuthError,
    PublishError,
)
from controller.src.services.executor import execute_steps, execute_step
from controller.src.services.orchestrator import (
    RunOutcome,
    run_pipeline,
    execute_pipeline,
    credentials_from_settings,
)
from controller.src.services.pipeline_parser import (
    parse_pipeline_config,
    parse_pipeline_dict,
    load_pipelines,
)
from controller.src.services.trigger import evaluate_trigger, should_run

__all__ = [
    "PipelineError",
    "PipelineConfigError",
    "StepError",
    "BuildError",
    "AuthError",
    "PublishError",
    "execute_steps",
    "execute_step",
    "RunOutcome",
    "run_pipeline",
    "execute_pipeline",
    "credentials_from_settings",
    "parse_pipeline_config",
    "parse_pipeline_dict",
    "load_pipelines",
    "evaluate_trigger",
    "should_run",
]

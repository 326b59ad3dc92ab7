from api.src.models.pipeline import Repository, PipelineRun, PipelineStep
from api.src.models.run import (
    PipelineRunResponse,
    StepResponse,
    RepositoryResponse,
    PipelineSummary,
)

__all__ = [
    "Repository",
    "PipelineRun",
    "PipelineStep",
    "PipelineRunResponse",
    "StepResponse",
    "RepositoryResponse",
    "PipelineSummary",
]

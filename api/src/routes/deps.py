from typing import Dict
from fastapi import Request

from controller.src.models.pipeline import PipelineDefinition

def get_pipelines(request: Request) -> Dict[str, PipelineDefinition]:
    """Pipeline definitions loaded at startup."""
    return request.app.state.pipelines

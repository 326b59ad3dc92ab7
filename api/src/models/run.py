from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime
from uuid import UUID

class StepBase(BaseModel):
    name: str
    kind: str
    command: str

class StepResponse(StepBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: str
    step_order: int
    exit_code: Optional[int] = None
    error_kind: Optional[str] = None
    logs: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

class PipelineRunBase(BaseModel):
    pipeline: str
    event_kind: str
    commit_sha: str
    branch: str

class PipelineRunResponse(PipelineRunBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: str
    triggered_by: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    steps: List[StepResponse] = []

class RepositoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    full_name: str
    clone_url: str
    created_at: Optional[datetime] = None

class PipelineSummary(BaseModel):
    name: str
    events: List[str]
    branches: List[str]
    steps: List[str]

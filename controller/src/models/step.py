"""
Step execution models.
"""

from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum

class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

class RunStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # event did not match the trigger

class StepResult(BaseModel):
    step_order: int
    name: str
    status: StepStatus
    exit_code: int
    output: str = ""
    started_at: datetime
    finished_at: datetime
    error: Optional[str] = None
    error_kind: Optional[str] = None  # StepError subclass name

    @property
    def succeeded(self) -> bool:
        return self.status == StepStatus.SUCCEEDED

class Artifact(BaseModel):
    path: str
    tag: str  # commit SHA, or "latest" when there is none

class PipelineJob(BaseModel):
    run_id: str
    pipeline: str
    event: Dict[str, Any]
    queued_at: str

"""
Pipeline definition models.

Definitions are loaded once at startup and never mutated; every model here
is frozen.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, Optional, Tuple
from enum import Enum

class EventKind(str, Enum):
    PUSH = "push"
    MANUAL = "manual"

class StepKind(str, Enum):
    SHELL = "shell"
    ACTION = "action"

class FailurePolicy(str, Enum):
    ABORT = "abort"
    CONTINUE = "continue"

class EventFilter(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: EventKind
    branches: Tuple[str, ...] = ()
    paths: Tuple[str, ...] = ()

class TriggerRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    filters: Tuple[EventFilter, ...] = ()

    def filter_for(self, kind: EventKind) -> Optional[EventFilter]:
        for event_filter in self.filters:
            if event_filter.kind == kind:
                return event_filter
        return None

class StepConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    kind: StepKind
    id: Optional[str] = None
    run: Optional[str] = None
    uses: Optional[str] = None
    inputs: Dict[str, str] = Field(default_factory=dict, alias="with")
    env: Dict[str, str] = Field(default_factory=dict)
    working_directory: Optional[str] = None
    image: Optional[str] = None
    policy: FailurePolicy = FailurePolicy.ABORT
    timeout: Optional[int] = None

class PipelineDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    trigger: TriggerRule
    env: Dict[str, str] = Field(default_factory=dict)
    steps: Tuple[StepConfig, ...]

class Event(BaseModel):
    """A repository event that may start a run."""
    model_config = ConfigDict(frozen=True)

    kind: EventKind
    ref: str
    sha: str = ""
    actor: str = ""
    repository: str = ""  # clone url, empty for local runs
    changed_paths: Tuple[str, ...] = ()

    @property
    def branch(self) -> str:
        # refs/heads/main -> main
        if self.ref.startswith("refs/heads/"):
            return self.ref[len("refs/heads/"):]
        return self.ref

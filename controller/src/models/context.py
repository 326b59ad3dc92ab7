"""
Per-run execution state.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import uuid

from controller.src.models.pipeline import Event, PipelineDefinition
from controller.src.models.step import Artifact, RunStatus, StepResult

@dataclass(frozen=True)
class Credentials:
    """Registry credentials handed to a run. Never mutated."""
    registry: str
    username: str
    token: str

    def secrets(self) -> Dict[str, str]:
        return {
            "REGISTRY_USERNAME": self.username,
            "REGISTRY_TOKEN": self.token,
        }

class RunContext:
    """
    State owned by exactly one run: the triggering event, a mutable
    environment and the append-only StepResult log.
    """

    def __init__(
        self,
        definition: PipelineDefinition,
        event: Event,
        credentials: Credentials,
        workspace: str,
        run_id: Optional[str] = None,
    ):
        self.run_id = run_id or str(uuid.uuid4())
        self.definition = definition
        self.event = event
        self.credentials = credentials
        self.workspace = workspace
        self.secrets = {k: v for k, v in credentials.secrets().items() if v}
        self.env: Dict[str, str] = {
            "DOCKHAND_PIPELINE": definition.name,
            "DOCKHAND_RUN_ID": self.run_id,
            "DOCKHAND_EVENT": event.kind.value,
            "DOCKHAND_REF": event.ref,
            "DOCKHAND_BRANCH": event.branch,
            "DOCKHAND_SHA": event.sha,
            "DOCKHAND_ACTOR": event.actor or credentials.username,
            "DOCKHAND_WORKSPACE": workspace,
            "REGISTRY": credentials.registry,
        }
        # Shell steps read secrets as plain env vars; captured output is masked
        self.env.update(self.secrets)
        self.env.update(definition.env)
        self.status = RunStatus.RUNNING
        self.artifact: Optional[Artifact] = None
        # Timeout of the step currently executing, set by the executor
        self.step_timeout: Optional[int] = None
        # Created lazily and owned by this run only; registry logins live
        # on the docker client, so clients are never shared between runs.
        self.docker: Any = None
        self.publisher: Any = None
        self._results: List[StepResult] = []

    @property
    def results(self) -> List[StepResult]:
        return list(self._results)

    def record(self, result: StepResult):
        self._results.append(result)

    def merge_outputs(self, outputs: Dict[str, str], step_id: Optional[str] = None):
        for key, value in outputs.items():
            self.env[key] = value
            if step_id:
                self.env[f"steps.{step_id}.{key}"] = value

    def process_env(self) -> Dict[str, str]:
        """Environment for child processes; drops keys like steps.<id>.<key>."""
        return {k: v for k, v in self.env.items() if k.isidentifier()}

    def mask(self, text: str) -> str:
        """Replace secret values in captured output."""
        for value in self.secrets.values():
            text = text.replace(value, "***")
        return text

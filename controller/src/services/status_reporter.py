"""
Report pipeline and step status to database.
"""

import logging
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional, Protocol
from sqlalchemy import create_engine, update
from sqlalchemy.orm import sessionmaker

from controller.src.config import get_settings
from controller.src.models.context import RunContext
from controller.src.models.db import PipelineRun, PipelineStep
from controller.src.models.step import RunStatus, StepResult, StepStatus

logger = logging.getLogger(__name__)

class RunReporter(Protocol):
    def run_started(self, context: RunContext, started_at: datetime): ...
    def step_started(self, context: RunContext, step_order: int, started_at: datetime): ...
    def step_finished(self, context: RunContext, result: StepResult): ...
    def run_finished(self, context: RunContext, finished_at: datetime): ...
    def run_ended(self, run_id: str, status: RunStatus, finished_at: datetime): ...

@lru_cache()
def get_session_factory() -> sessionmaker:
    # Sync database connection for controller
    engine = create_engine(get_settings().database_url)
    return sessionmaker(bind=engine)

def _now() -> datetime:
    return datetime.now(timezone.utc)

def update_run_status(
    session_factory: sessionmaker,
    run_id: str,
    status: str,
    started_at: Optional[datetime] = None,
    finished_at: Optional[datetime] = None,
):
    """Update pipeline run status in database."""
    with session_factory() as session:
        values = {"status": status, "updated_at": _now()}

        if started_at:
            values["started_at"] = started_at
        if finished_at:
            values["finished_at"] = finished_at

        session.execute(
            update(PipelineRun)
            .where(PipelineRun.id == uuid.UUID(run_id))
            .values(**values)
        )
        session.commit()
        logger.info(f"Updated run {run_id} status to {status}")

def update_step_status(
    session_factory: sessionmaker,
    run_id: str,
    step_order: int,
    status: str,
    logs: Optional[str] = None,
    exit_code: Optional[int] = None,
    error_kind: Optional[str] = None,
    started_at: Optional[datetime] = None,
    finished_at: Optional[datetime] = None,
):
    """Update pipeline step status in database."""
    with session_factory() as session:
        values = {"status": status, "updated_at": _now()}

        if logs is not None:
            values["logs"] = logs
        if exit_code is not None:
            values["exit_code"] = exit_code
        if error_kind is not None:
            values["error_kind"] = error_kind
        if started_at:
            values["started_at"] = started_at
        if finished_at:
            values["finished_at"] = finished_at

        session.execute(
            update(PipelineStep)
            .where(PipelineStep.run_id == uuid.UUID(run_id))
            .where(PipelineStep.step_order == step_order)
            .values(**values)
        )
        session.commit()
        logger.debug(f"Updated step {step_order} of run {run_id} to {status}")

def skip_pending_steps(session_factory: sessionmaker, run_id: str, finished_at: datetime):
    """Mark steps that never started as skipped."""
    with session_factory() as session:
        session.execute(
            update(PipelineStep)
            .where(PipelineStep.run_id == uuid.UUID(run_id))
            .where(PipelineStep.status == StepStatus.PENDING.value)
            .values(status=StepStatus.SKIPPED.value, finished_at=finished_at, updated_at=_now())
        )
        session.commit()

class DatabaseReporter:
    """Writes run and step transitions to the rows the API created."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or get_session_factory()

    def run_started(self, context: RunContext, started_at: datetime):
        update_run_status(self.session_factory, context.run_id, "running", started_at=started_at)

    def step_started(self, context: RunContext, step_order: int, started_at: datetime):
        update_step_status(
            self.session_factory, context.run_id, step_order,
            StepStatus.RUNNING.value, started_at=started_at,
        )

    def step_finished(self, context: RunContext, result: StepResult):
        logs = result.output
        if result.error:
            logs = f"{logs}\n{result.error}".strip()

        update_step_status(
            self.session_factory, context.run_id, result.step_order,
            result.status.value,
            logs=logs,
            exit_code=result.exit_code,
            error_kind=result.error_kind,
            finished_at=result.finished_at,
        )

    def run_finished(self, context: RunContext, finished_at: datetime):
        update_run_status(
            self.session_factory, context.run_id, context.status.value,
            finished_at=finished_at,
        )
        skip_pending_steps(self.session_factory, context.run_id, finished_at)

    def run_ended(self, run_id: str, status: RunStatus, finished_at: datetime):
        """Close out a queued run that never started executing."""
        update_run_status(self.session_factory, run_id, status.value, finished_at=finished_at)
        skip_pending_steps(self.session_factory, run_id, finished_at)

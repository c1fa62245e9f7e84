"""
Report pipeline and stage status to database.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, select, update
from sqlalchemy.orm import sessionmaker

from controller.src.models.db import PipelineRun, StageRun
from controller.src.models.stage import PipelineRunResult, StageRun as StageRunRecord

logger = logging.getLogger(__name__)

class StatusReporter:
    """Persists run and stage state through a synchronous SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker):
        self.SessionLocal = session_factory

    @classmethod
    def from_url(cls, database_url: str) -> "StatusReporter":
        engine = create_engine(database_url)
        return cls(sessionmaker(bind=engine))

    def run_started(self, result: PipelineRunResult):
        """Create the run and stage rows if the API has not, and mark the run running."""
        run_id = uuid.UUID(result.run_id)

        with self.SessionLocal() as session:
            run = session.get(PipelineRun, run_id)
            if run is None:
                trigger = result.trigger
                session.add(PipelineRun(
                    id=run_id,
                    owner=trigger.owner,
                    repo=trigger.repo,
                    branch=trigger.branch,
                    commit_ref=trigger.commit_ref,
                    triggered_by=trigger.triggered_by,
                    status="queued",
                ))
                session.flush()

            existing = {
                row.stage for row in session.scalars(
                    select(StageRun).where(StageRun.run_id == run_id)
                )
            }
            for order, stage_run in enumerate(result.stages):
                if stage_run.stage.value not in existing:
                    session.add(StageRun(
                        run_id=run_id,
                        stage=stage_run.stage.value,
                        stage_order=order,
                        status="pending",
                    ))
            session.commit()

        self.update_run_status(result.run_id, "running", started_at=result.started_at)

    def stage_started(self, run_id: str, stage_run: StageRunRecord):
        self.update_stage_status(
            run_id, stage_run.stage.value, "running", started_at=stage_run.started_at
        )

    def stage_finished(self, run_id: str, stage_run: StageRunRecord):
        self.update_stage_status(
            run_id,
            stage_run.stage.value,
            stage_run.status.value,
            output=stage_run.output,
            error=stage_run.error,
            finished_at=stage_run.finished_at,
        )

    def run_finished(self, result: PipelineRunResult):
        self.update_run_status(
            result.run_id,
            result.status.value,
            finished_at=result.finished_at,
            commit_sha=result.snapshot.commit_sha if result.snapshot else None,
            artifact_version=result.artifact.version if result.artifact else None,
            failed_stage=result.failed_stage.value if result.failed_stage else None,
            error=result.error,
        )

    def update_run_status(
        self,
        run_id: str,
        status: str,
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
        **fields: Any,
    ):
        """Update pipeline run status in database."""
        with self.SessionLocal() as session:
            values = {"status": status, "updated_at": datetime.utcnow()}

            if started_at:
                values["started_at"] = started_at
            if finished_at:
                values["finished_at"] = finished_at
            values.update({k: v for k, v in fields.items() if v is not None})

            session.execute(
                update(PipelineRun)
                .where(PipelineRun.id == uuid.UUID(run_id))
                .values(**values)
            )
            session.commit()
            logger.info(f"Updated run {run_id} status to {status}")

    def update_stage_status(
        self,
        run_id: str,
        stage: str,
        status: str,
        output: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
    ):
        """Update pipeline stage status in database."""
        with self.SessionLocal() as session:
            values = {"status": status, "updated_at": datetime.utcnow()}

            if output is not None:
                values["output"] = output
            if error is not None:
                values["error"] = error
            if started_at:
                values["started_at"] = started_at
            if finished_at:
                values["finished_at"] = finished_at

            session.execute(
                update(StageRun)
                .where(StageRun.run_id == uuid.UUID(run_id))
                .where(StageRun.stage == stage)
                .values(**values)
            )
            session.commit()
            logger.debug(f"Updated stage {stage} of run {run_id} to {status}")

    def get_stage_runs(self, run_id: str) -> List[Dict[str, Any]]:
        """Get all stages for a run, in pipeline order."""
        with self.SessionLocal() as session:
            stages = session.scalars(
                select(StageRun)
                .where(StageRun.run_id == uuid.UUID(run_id))
                .order_by(StageRun.stage_order)
            ).all()

            return [
                {
                    "order": s.stage_order,
                    "stage": s.stage,
                    "status": s.status,
                    "output": s.output,
                    "error": s.error,
                }
                for s in stages
            ]

    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        with self.SessionLocal() as session:
            run = session.get(PipelineRun, uuid.UUID(run_id))
            if run is None:
                return None
            return {
                "status": run.status,
                "commit_sha": run.commit_sha,
                "artifact_version": run.artifact_version,
                "failed_stage": run.failed_stage,
                "error": run.error,
            }

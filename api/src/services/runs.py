"""
Pipeline run creation shared by webhook and manual triggers.
"""

import logging
from typing import Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from api.src.models.pipeline import PipelineRun, StageRun, RELEASE_STAGES
from api.src.services.queue import enqueue_trigger

logger = logging.getLogger(__name__)

async def queue_pipeline_run(db: AsyncSession, trigger: Dict[str, Any]) -> PipelineRun:
    """Record a queued run with one pending row per stage, then enqueue it."""
    pipeline_run = PipelineRun(
        owner=trigger["owner"],
        repo=trigger["repo"],
        branch=trigger["branch"],
        commit_ref=trigger.get("commit_ref") or None,
        triggered_by=trigger.get("triggered_by") or None,
        status="queued",
    )
    db.add(pipeline_run)
    await db.flush()

    for i, stage in enumerate(RELEASE_STAGES):
        db.add(StageRun(
            run_id=pipeline_run.id,
            stage=stage,
            stage_order=i,
            status="pending",
        ))

    await db.commit()

    await enqueue_trigger(run_id=str(pipeline_run.id), trigger=trigger)

    logger.info(f"Pipeline run {pipeline_run.id} created and queued")
    return pipeline_run

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from typing import List, Optional
from uuid import UUID

from api.src.db.database import get_db
from api.src.models.pipeline import PipelineRun
from api.src.models.run import ManualTriggerRequest, PipelineRunResponse
from api.src.services.queue import get_run_status
from api.src.services.runs import queue_pipeline_run

router = APIRouter(prefix="/pipelines", tags=["pipelines"])

@router.post("/trigger")
async def manual_trigger(request: ManualTriggerRequest, db: AsyncSession = Depends(get_db)):
    """Queue a release run without a webhook, e.g. after remediating a failure."""
    pipeline_run = await queue_pipeline_run(db, request.model_dump())
    return {"status": "queued", "run_id": str(pipeline_run.id)}

@router.get("/runs", response_model=List[PipelineRunResponse])
async def list_runs(
    limit: int = 20,
    offset: int = 0,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db)
):
    """List pipeline runs, newest first."""
    query = (
        select(PipelineRun)
        .options(selectinload(PipelineRun.stages))
        .order_by(PipelineRun.created_at.desc())
    )

    if status:
        query = query.where(PipelineRun.status == status)

    query = query.limit(limit).offset(offset)

    result = await db.execute(query)
    return result.scalars().all()

async def load_run(db: AsyncSession, run_id: UUID) -> PipelineRun:
    query = (
        select(PipelineRun)
        .options(selectinload(PipelineRun.stages))
        .where(PipelineRun.id == run_id)
    )
    result = await db.execute(query)
    run = result.scalar_one_or_none()

    if not run:
        raise HTTPException(status_code=404, detail="Pipeline run not found")
    return run

@router.get("/runs/{run_id}", response_model=PipelineRunResponse)
async def get_run(run_id: UUID, db: AsyncSession = Depends(get_db)):
    """Get a specific pipeline run."""
    return await load_run(db, run_id)

@router.get("/runs/{run_id}/status")
async def get_run_status_endpoint(run_id: UUID, db: AsyncSession = Depends(get_db)):
    """Get real-time status of a pipeline run."""
    run = await load_run(db, run_id)

    # Get live status from Redis
    live_status = await get_run_status(str(run_id))

    return {
        "run_id": str(run_id),
        "db_status": run.status,
        "live_status": live_status,
        "failed_stage": run.failed_stage,
        "error": run.error,
        "artifact_version": run.artifact_version,
        "stages": [
            {
                "stage": stage.stage,
                "status": stage.status,
                "order": stage.stage_order,
            }
            for stage in sorted(run.stages, key=lambda s: s.stage_order)
        ]
    }

@router.get("/stats")
async def get_pipeline_stats(db: AsyncSession = Depends(get_db)):
    """Get pipeline statistics."""
    status_query = (
        select(PipelineRun.status, func.count(PipelineRun.id))
        .group_by(PipelineRun.status)
    )
    result = await db.execute(status_query)
    status_counts = {row[0]: row[1] for row in result.all()}

    # Where failed runs stalled
    stalled_query = (
        select(PipelineRun.failed_stage, func.count(PipelineRun.id))
        .where(PipelineRun.failed_stage.is_not(None))
        .group_by(PipelineRun.failed_stage)
    )
    result = await db.execute(stalled_query)
    stalled = {row[0]: row[1] for row in result.all()}

    return {
        "runs": status_counts,
        "failed_stages": stalled,
        "total_runs": sum(status_counts.values()),
    }

"""
GitHub webhook endpoints.
"""

from fastapi import APIRouter, Request, HTTPException, Header, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from api.src.config import get_settings
from api.src.db.database import get_db
from api.src.services.github import (
    verify_signature,
    parse_webhook_payload,
    is_branch_deletion,
)
from api.src.services.runs import queue_pipeline_run

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

async def process_push_event(payload: dict, db: AsyncSession):
    """Turn a GitHub push event into a queued release run."""
    trigger = parse_webhook_payload(payload)

    if is_branch_deletion(payload):
        return {"status": "skipped", "reason": "Branch deleted"}

    if not trigger["commit_ref"]:
        logger.warning("No commit SHA in webhook payload")
        return {"status": "skipped", "reason": "No commit SHA"}

    if not trigger["owner"] or not trigger["repo"]:
        logger.warning("No repository in webhook payload")
        return {"status": "skipped", "reason": "No repository"}

    if settings.tracked_branch and trigger["branch"] != settings.tracked_branch:
        return {
            "status": "skipped",
            "reason": f"Branch {trigger['branch']} is not released",
        }

    pipeline_run = await queue_pipeline_run(db, trigger)

    return {
        "status": "queued",
        "run_id": str(pipeline_run.id),
        "commit": trigger["commit_ref"],
    }

@router.post("/github")
async def github_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    x_hub_signature_256: Optional[str] = Header(None),
    x_github_event: Optional[str] = Header(None),
):
    """
    Receive GitHub webhook events.
    """
    # Get raw body for signature verification
    body = await request.body()

    if not verify_signature(body, x_hub_signature_256 or ""):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    if x_github_event == "ping":
        return {"status": "pong", "message": "Webhook configured successfully"}

    if x_github_event == "push":
        return await process_push_event(payload, db)

    # Ignore other events
    return {
        "status": "ignored",
        "event": x_github_event,
        "message": f"Event type '{x_github_event}' not handled"
    }

from pydantic import BaseModel, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID

class StageResponse(BaseModel):
    id: UUID
    stage: str
    stage_order: int
    status: str
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class TriggerBase(BaseModel):
    owner: str
    repo: str
    branch: str = "main"

class ManualTriggerRequest(TriggerBase):
    commit_ref: Optional[str] = None
    triggered_by: Optional[str] = None

class PipelineRunResponse(TriggerBase):
    id: UUID
    commit_ref: Optional[str] = None
    commit_sha: Optional[str] = None
    status: str
    triggered_by: Optional[str] = None
    artifact_version: Optional[str] = None
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: datetime
    stages: List[StageResponse] = []

    model_config = ConfigDict(from_attributes=True)

"""
Release pipeline models.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum

class StageId(str, Enum):
    FETCH = "fetch"
    BUILD = "build"
    UPDATE_CODE_MIGRATION = "update_code_migration"
    INVOKE_MIGRATION = "invoke_migration"
    UPDATE_CODE_APPLICATION = "update_code_application"
    UPDATE_CODE_CLEANUP = "update_code_cleanup"

class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

class RunStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

class Trigger(BaseModel):
    owner: str
    repo: str
    branch: str = "main"
    commit_ref: Optional[str] = None
    triggered_by: Optional[str] = None

class SourceSnapshot(BaseModel):
    owner: str
    repo: str
    branch: str
    commit_sha: str
    clone_url: str
    fetched_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(frozen=True)

class Artifact(BaseModel):
    name: str
    version: str
    source_commit: str
    checksum: str
    size: int

    model_config = ConfigDict(frozen=True)

class NetworkPlacement(BaseModel):
    placement: str = "isolated"  # isolated | public
    vpc_attached: bool = True

class ComputeUnit(BaseModel):
    name: str
    function_name: str
    role: str
    handler: str
    code_version: Optional[str] = None
    memory_mb: int = 1024
    timeout_seconds: int = 120
    network: NetworkPlacement = NetworkPlacement()
    environment: Dict[str, str] = {}

class Ack(BaseModel):
    unit: str
    code_version: str
    changed: bool = True

class InvocationResult(BaseModel):
    unit: str
    status_code: int = 200
    payload: Any = None
    executed_version: Optional[str] = None
    error: Optional[str] = None

class StageRun(BaseModel):
    stage: StageId
    status: StageStatus = StageStatus.PENDING
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

class PipelineRunResult(BaseModel):
    run_id: str
    trigger: Trigger
    status: RunStatus = RunStatus.QUEUED
    stages: List[StageRun] = []
    snapshot: Optional[SourceSnapshot] = None
    artifact: Optional[Artifact] = None
    failed_stage: Optional[StageId] = None
    error: Optional[str] = None
    live_versions: Dict[str, str] = {}
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def stage(self, stage_id: StageId) -> StageRun:
        for stage_run in self.stages:
            if stage_run.stage == stage_id:
                return stage_run
        raise KeyError(stage_id)

class PipelineJob(BaseModel):
    run_id: str
    trigger: Trigger
    queued_at: str

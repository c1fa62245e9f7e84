"""
Database models for controller (sync version).
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, JSON, Uuid
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
import uuid

Base = declarative_base()

class PipelineRun(Base):
    __tablename__ = "pipeline_runs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner = Column(String(255), nullable=False)
    repo = Column(String(255), nullable=False)
    branch = Column(String(255), nullable=False)
    commit_ref = Column(String(64))
    commit_sha = Column(String(40))
    status = Column(String(50), default="queued")
    triggered_by = Column(String(255))
    artifact_version = Column(String(255))
    failed_stage = Column(String(50))
    error = Column(Text)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

class StageRun(Base):
    __tablename__ = "stage_runs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    run_id = Column(Uuid(as_uuid=True), ForeignKey("pipeline_runs.id"))
    stage = Column(String(50), nullable=False)
    stage_order = Column(Integer, nullable=False)
    status = Column(String(50), default="pending")
    output = Column(JSON)
    error = Column(Text)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

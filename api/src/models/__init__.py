from api.src.models.pipeline import PipelineRun, StageRun, RELEASE_STAGES
from api.src.models.run import (
    ManualTriggerRequest,
    PipelineRunResponse,
    StageResponse,
)

__all__ = [
    "PipelineRun",
    "StageRun",
    "RELEASE_STAGES",
    "ManualTriggerRequest",
    "PipelineRunResponse",
    "StageResponse",
]

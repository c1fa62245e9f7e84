from controller.src.models.stage import (
    StageId,
    StageStatus,
    RunStatus,
    Trigger,
    SourceSnapshot,
    Artifact,
    NetworkPlacement,
    ComputeUnit,
    Ack,
    InvocationResult,
    StageRun,
    PipelineRunResult,
    PipelineJob,
)
from controller.src.models.topology import (
    BuildSpec,
    UnitSpec,
    Resources,
    Topology,
)

__all__ = [
    "StageId",
    "StageStatus",
    "RunStatus",
    "Trigger",
    "SourceSnapshot",
    "Artifact",
    "NetworkPlacement",
    "ComputeUnit",
    "Ack",
    "InvocationResult",
    "StageRun",
    "PipelineRunResult",
    "PipelineJob",
    "BuildSpec",
    "UnitSpec",
    "Resources",
    "Topology",
]

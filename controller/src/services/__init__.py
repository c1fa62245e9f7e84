from controller.src.services.scheduler import (
    PipelineScheduler,
    STAGE_ORDER,
    next_stage,
)
from controller.src.services.source_fetcher import SourceFetcher
from controller.src.services.build import BuildStage
from controller.src.services.code_update import CodeUpdateStage
from controller.src.services.migration import MigrationInvocationStage
from controller.src.services.maintenance import MaintenanceTimer
from controller.src.services.status_reporter import StatusReporter
from controller.src.services.topology_parser import (
    load_topology,
    parse_topology_config,
    parse_topology_dict,
)

__all__ = [
    "PipelineScheduler",
    "STAGE_ORDER",
    "next_stage",
    "SourceFetcher",
    "BuildStage",
    "CodeUpdateStage",
    "MigrationInvocationStage",
    "MaintenanceTimer",
    "StatusReporter",
    "load_topology",
    "parse_topology_config",
    "parse_topology_dict",
]

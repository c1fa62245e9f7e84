"""
Wires the release train's collaborators from settings and topology.
"""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict

from controller.src.config import Settings
from controller.src.models.topology import Topology
from controller.src.permissions import GrantModel
from controller.src.registry import (
    ComputeUnitRegistry,
    InMemoryComputeUnitRegistry,
    LambdaComputeUnitRegistry,
)
from controller.src.services.build import BuildStage
from controller.src.services.build_runner import (
    BuildRunner,
    KubernetesBuildRunner,
    LocalBuildRunner,
)
from controller.src.services.code_update import CodeUpdateStage
from controller.src.services.maintenance import MaintenanceTimer
from controller.src.services.migration import MigrationInvocationStage
from controller.src.services.scheduler import PipelineScheduler
from controller.src.services.source_fetcher import SourceFetcher
from controller.src.services.status_reporter import StatusReporter
from controller.src.storage import ArtifactStore, InMemoryArtifactStore, S3ArtifactStore

logger = logging.getLogger(__name__)

class ReleaseTrain(BaseModel):
    scheduler: PipelineScheduler
    registry: ComputeUnitRegistry
    store: ArtifactStore
    grants: GrantModel
    maintenance: MaintenanceTimer

    model_config = ConfigDict(arbitrary_types_allowed=True)

def create_store(settings: Settings) -> ArtifactStore:
    if settings.compute_backend == "memory":
        return InMemoryArtifactStore()
    return S3ArtifactStore(settings.artifact_bucket, region=settings.aws_region)

def create_registry(settings: Settings, topology: Topology) -> ComputeUnitRegistry:
    if settings.compute_backend == "memory":
        return InMemoryComputeUnitRegistry.from_topology(topology)
    return LambdaComputeUnitRegistry(
        topology,
        region=settings.aws_region,
        invoke_timeout=settings.migration_timeout,
    )

def create_runner(settings: Settings) -> BuildRunner:
    if settings.build_runner == "local":
        return LocalBuildRunner(github_token=settings.github_token)
    return KubernetesBuildRunner(github_token=settings.github_token)

def create_release_train(
    settings: Settings,
    topology: Topology,
    reporter: Optional[StatusReporter] = None,
) -> ReleaseTrain:
    """Build the scheduler and its collaborators; grants are computed here, once."""
    grants = GrantModel.from_topology(topology)
    store = create_store(settings)
    registry = create_registry(settings, topology)

    unit_resources = {name: topology.function_arn(name) for name in topology.units}
    artifact_resource = topology.resources.artifact_store

    scheduler = PipelineScheduler(
        fetcher=SourceFetcher(settings.github_api_url, settings.github_token),
        builder=BuildStage(
            runner=create_runner(settings),
            store=store,
            spec=topology.build,
            grants=grants,
            artifact_resource=artifact_resource,
            workspace=settings.build_workspace,
            artifact_name=topology.artifact_name,
        ),
        code_updater=CodeUpdateStage(
            registry=registry,
            store=store,
            grants=grants,
            artifact_resource=artifact_resource,
            unit_resources=unit_resources,
        ),
        migrator=MigrationInvocationStage(
            registry=registry,
            grants=grants,
            unit_resources=unit_resources,
            timeout=settings.migration_timeout,
        ),
        reporter=reporter,
    )

    maintenance = MaintenanceTimer(
        registry=registry,
        grants=grants,
        unit_resource=unit_resources["cleanup"],
        interval=settings.maintenance_interval,
    )

    logger.info(
        f"Release train '{topology.name}' ready: backend={settings.compute_backend}, "
        f"runner={settings.build_runner}, units={', '.join(topology.units)}"
    )
    return ReleaseTrain(
        scheduler=scheduler,
        registry=registry,
        store=store,
        grants=grants,
        maintenance=maintenance,
    )

"""
Code-update stage - repoints one compute unit at a built artifact.
"""

import logging

from controller.src.models.stage import Ack, Artifact
from controller.src.permissions import GrantModel, update_code_principal
from controller.src.permissions.grants import ARTIFACT_READ_ACTION, UPDATE_CODE_ACTION
from controller.src.registry import ComputeUnitRegistry
from controller.src.storage import ArtifactStore

logger = logging.getLogger(__name__)

class CodeUpdateStage:

    def __init__(
        self,
        registry: ComputeUnitRegistry,
        store: ArtifactStore,
        grants: GrantModel,
        artifact_resource: str,
        unit_resources: dict,
    ):
        self.registry = registry
        self.store = store
        self.grants = grants
        self.artifact_resource = artifact_resource
        self.unit_resources = dict(unit_resources)

    async def update_code(self, unit_name: str, artifact: Artifact) -> Ack:
        """
        Point unit_name at artifact.version.
        Applying the same (unit, artifact) pair again is a no-op.
        """
        principal = update_code_principal(unit_name)
        resource = self.unit_resources.get(unit_name, unit_name)
        self.grants.check(principal, resource, UPDATE_CODE_ACTION)
        self.grants.check(principal, self.artifact_resource, ARTIFACT_READ_ACTION)

        unit = await self.registry.get_unit(unit_name)
        if unit.code_version == artifact.version:
            logger.info(f"Unit {unit_name} already runs {artifact.version}, nothing to do")
            return Ack(unit=unit_name, code_version=artifact.version, changed=False)

        location = self.store.location(artifact.name, artifact.version)
        ack = await self.registry.update_unit_code(unit_name, artifact, location)
        logger.info(
            f"Unit {unit_name} moved from {unit.code_version or 'initial code'} "
            f"to {artifact.version}"
        )
        return ack

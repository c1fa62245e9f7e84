"""
Migration-invocation stage - runs the migration unit and blocks on it.
"""

import asyncio
import logging
from typing import Any

from controller.src.errors import InvocationFailure, Timeout
from controller.src.models.stage import InvocationResult
from controller.src.permissions import GrantModel, PIPELINE_PRINCIPAL
from controller.src.permissions.grants import INVOKE_ACTION
from controller.src.registry import ComputeUnitRegistry

logger = logging.getLogger(__name__)

class MigrationInvocationStage:

    def __init__(
        self,
        registry: ComputeUnitRegistry,
        grants: GrantModel,
        unit_resources: dict,
        timeout: float = 120,
    ):
        self.registry = registry
        self.grants = grants
        self.unit_resources = dict(unit_resources)
        self.timeout = timeout

    async def invoke(self, unit_name: str = "migration", payload: Any = None) -> InvocationResult:
        """
        Invoke the migration unit and wait for it, at most self.timeout seconds.
        The invocation task is cancelled when the bound is hit.
        """
        resource = self.unit_resources.get(unit_name, unit_name)
        self.grants.check(PIPELINE_PRINCIPAL, resource, INVOKE_ACTION)

        logger.info(f"Invoking {unit_name} (timeout {self.timeout}s)")
        task = asyncio.ensure_future(self.registry.invoke_unit(unit_name, payload))
        try:
            result = await asyncio.wait_for(task, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"{unit_name} did not finish within {self.timeout}s")
            raise Timeout(f"invoke {unit_name}", self.timeout)

        if result.error:
            logger.error(f"{unit_name} reported an error: {result.error}")
            raise InvocationFailure(result.error)

        if result.status_code >= 300:
            raise InvocationFailure(f"status code {result.status_code}")

        logger.info(f"{unit_name} completed on version {result.executed_version}")
        return result

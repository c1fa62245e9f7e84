"""
Scheduled maintenance - periodically invokes the cleanup unit.

Runs independently of release pipeline runs; a tick may land before,
during or after any run.
"""

import asyncio
import logging
from typing import Optional

from controller.src.errors import StageError
from controller.src.models.stage import InvocationResult
from controller.src.permissions import GrantModel, MAINTENANCE_PRINCIPAL
from controller.src.permissions.grants import INVOKE_ACTION
from controller.src.registry import ComputeUnitRegistry

logger = logging.getLogger(__name__)

class MaintenanceTimer:

    def __init__(
        self,
        registry: ComputeUnitRegistry,
        grants: GrantModel,
        unit_resource: str,
        interval: float = 300,
        unit_name: str = "cleanup",
    ):
        self.registry = registry
        self.grants = grants
        self.unit_resource = unit_resource
        self.interval = interval
        self.unit_name = unit_name
        self._task: Optional[asyncio.Task] = None

    async def tick(self) -> InvocationResult:
        """Invoke the cleanup unit once."""
        self.grants.check(MAINTENANCE_PRINCIPAL, self.unit_resource, INVOKE_ACTION)
        result = await self.registry.invoke_unit(self.unit_name, {"source": "maintenance"})
        if result.error:
            logger.warning(f"Maintenance run of {self.unit_name} reported: {result.error}")
        else:
            logger.info(f"Maintenance run of {self.unit_name} completed")
        return result

    async def run_forever(self):
        logger.info(f"Maintenance timer started, invoking {self.unit_name} every {self.interval}s")
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except StageError as e:
                logger.error(f"Maintenance run of {self.unit_name} failed: {e}")
            except Exception:
                logger.exception(f"Maintenance run of {self.unit_name} failed")

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever())
        return self._task

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

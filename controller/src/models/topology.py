"""
Release topology models.

The topology describes already-provisioned resources the release train
deploys onto. It is loaded once at startup and never changes during a run.
"""

from pydantic import BaseModel
from typing import List, Dict, Optional

from controller.src.models.stage import ComputeUnit, NetworkPlacement

REQUIRED_UNITS = ("application", "migration", "cleanup")

class BuildSpec(BaseModel):
    image: str = "node:18"
    commands: List[str]
    package: str = "lambda.zip"
    env: Dict[str, str] = {}
    timeout: int = 900

class UnitSpec(BaseModel):
    name: str
    function_name: str
    handler: str
    role: Optional[str] = None
    memory_mb: int = 1024
    timeout_seconds: int = 120
    network: NetworkPlacement = NetworkPlacement()
    environment: Dict[str, str] = {}

    @property
    def role_name(self) -> str:
        return self.role or f"{self.name}-execution-role"

    def to_compute_unit(self) -> ComputeUnit:
        return ComputeUnit(
            name=self.name,
            function_name=self.function_name,
            role=self.role_name,
            handler=self.handler,
            memory_mb=self.memory_mb,
            timeout_seconds=self.timeout_seconds,
            network=self.network,
            environment=dict(self.environment),
        )

class Resources(BaseModel):
    """ARNs (or equivalents) of the resources units depend on."""
    artifact_store: str
    database: str = "*"
    database_secret: str = "*"
    email_topic: str = "*"
    platform_topic: str = "*"
    user_pool: str = "*"

class Topology(BaseModel):
    name: str = "release"
    artifact_name: str = "lambda.zip"
    build: BuildSpec
    resources: Resources
    units: Dict[str, UnitSpec]

    def unit(self, name: str) -> UnitSpec:
        return self.units[name]

    def function_arn(self, unit_name: str) -> str:
        return self.units[unit_name].function_name

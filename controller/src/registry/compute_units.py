"""
Compute unit registries: look up, repoint and invoke deployed functions.
"""

import asyncio
import inspect
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from controller.src.errors import NotFound, PermissionDenied, UploadFailure
from controller.src.models.stage import Ack, Artifact, ComputeUnit, InvocationResult
from controller.src.models.topology import Topology

logger = logging.getLogger(__name__)

VERSION_TAG = "releasetrain:artifact-version"

# Extra read time past the caller's invocation bound
READ_TIMEOUT_MARGIN = 30

Handler = Callable[[ComputeUnit, Any], Union[Any, Awaitable[Any]]]

class ComputeUnitRegistry(ABC):

    @abstractmethod
    async def get_unit(self, name: str) -> ComputeUnit:
        """Return the unit or raise NotFound."""

    @abstractmethod
    async def update_unit_code(
        self, name: str, artifact: Artifact, location: Dict[str, str]
    ) -> Ack:
        """Atomically repoint the unit's code to the artifact version."""

    @abstractmethod
    async def invoke_unit(self, name: str, payload: Any = None) -> InvocationResult:
        """Synchronously invoke the unit."""

class InMemoryComputeUnitRegistry(ComputeUnitRegistry):
    """
    Registry holding units in memory.
    Handlers may be plain or async callables; raising from a handler is
    reported as an application-level error in the invocation result.
    """

    def __init__(self, units: Dict[str, ComputeUnit], handlers: Optional[Dict[str, Handler]] = None):
        self._units = {name: unit.model_copy() for name, unit in units.items()}
        self._handlers = dict(handlers or {})

    @classmethod
    def from_topology(cls, topology: Topology, handlers: Optional[Dict[str, Handler]] = None):
        units = {name: spec.to_compute_unit() for name, spec in topology.units.items()}
        return cls(units, handlers)

    def set_handler(self, name: str, handler: Handler):
        self._handlers[name] = handler

    async def get_unit(self, name: str) -> ComputeUnit:
        unit = self._units.get(name)
        if unit is None:
            raise NotFound(f"Compute unit '{name}' does not exist")
        return unit.model_copy()

    async def update_unit_code(
        self, name: str, artifact: Artifact, location: Dict[str, str]
    ) -> Ack:
        unit = self._units.get(name)
        if unit is None:
            raise NotFound(f"Compute unit '{name}' does not exist")

        if unit.code_version == artifact.version:
            return Ack(unit=name, code_version=artifact.version, changed=False)

        self._units[name] = unit.model_copy(update={"code_version": artifact.version})
        return Ack(unit=name, code_version=artifact.version, changed=True)

    async def invoke_unit(self, name: str, payload: Any = None) -> InvocationResult:
        unit = await self.get_unit(name)
        handler = self._handlers.get(name)
        if handler is None:
            return InvocationResult(unit=name, executed_version=unit.code_version)

        try:
            response = handler(unit, payload)
            if inspect.isawaitable(response):
                response = await response
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return InvocationResult(
                unit=name,
                status_code=200,
                executed_version=unit.code_version,
                error=str(e),
            )

        return InvocationResult(unit=name, payload=response, executed_version=unit.code_version)

def lambda_client_config(invoke_timeout: float) -> Config:
    """
    Client config for synchronous invocations: the read outlasts the
    invocation bound and nothing is retried, so a unit runs at most once
    per call.
    """
    return Config(
        read_timeout=int(invoke_timeout) + READ_TIMEOUT_MARGIN,
        retries={"max_attempts": 0},
    )

class LambdaComputeUnitRegistry(ComputeUnitRegistry):
    """Registry backed by AWS Lambda functions."""

    def __init__(
        self,
        topology: Topology,
        region: str = None,
        client: Any = None,
        invoke_timeout: float = 120,
    ):
        self._topology = topology
        self._lambda = client or boto3.client(
            "lambda",
            region_name=region,
            config=lambda_client_config(invoke_timeout),
        )

    def _function_name(self, name: str) -> str:
        if name not in self._topology.units:
            raise NotFound(f"Compute unit '{name}' does not exist")
        return self._topology.units[name].function_name

    async def get_unit(self, name: str) -> ComputeUnit:
        return await asyncio.to_thread(self._get_unit, name)

    def _get_unit(self, name: str) -> ComputeUnit:
        function_name = self._function_name(name)
        try:
            response = self._lambda.get_function(FunctionName=function_name)
        except ClientError as e:
            raise _translate(e, name, "lambda:GetFunction")

        config = response["Configuration"]
        tags = response.get("Tags", {})
        spec = self._topology.units[name]
        vpc = config.get("VpcConfig") or {}

        return ComputeUnit(
            name=name,
            function_name=config["FunctionArn"],
            role=config.get("Role", spec.role_name),
            handler=config.get("Handler", spec.handler),
            code_version=tags.get(VERSION_TAG),
            memory_mb=config.get("MemorySize", spec.memory_mb),
            timeout_seconds=config.get("Timeout", spec.timeout_seconds),
            network=spec.network.model_copy(
                update={"vpc_attached": bool(vpc.get("SubnetIds"))}
            ),
            environment=config.get("Environment", {}).get("Variables", {}),
        )

    async def update_unit_code(
        self, name: str, artifact: Artifact, location: Dict[str, str]
    ) -> Ack:
        return await asyncio.to_thread(self._update_unit_code, name, artifact, location)

    def _update_unit_code(self, name: str, artifact: Artifact, location: Dict[str, str]) -> Ack:
        if location.get("store") != "s3":
            raise UploadFailure(f"Artifact {artifact.name} is not in S3; Lambda cannot fetch it")

        current = self._get_unit(name)
        if current.code_version == artifact.version:
            logger.info(f"Unit {name} already on {artifact.version}")
            return Ack(unit=name, code_version=artifact.version, changed=False)

        try:
            response = self._lambda.update_function_code(
                FunctionName=current.function_name,
                S3Bucket=location["bucket"],
                S3Key=location["key"],
                S3ObjectVersion=location["version"],
                Publish=False,
            )
            waiter = self._lambda.get_waiter("function_updated_v2")
            waiter.wait(FunctionName=current.function_name)
            self._lambda.tag_resource(
                Resource=response["FunctionArn"],
                Tags={VERSION_TAG: artifact.version},
            )
        except ClientError as e:
            raise _translate(e, name, "lambda:UpdateFunctionCode")

        logger.info(f"Repointed {name} to {artifact.name}@{artifact.version}")
        return Ack(unit=name, code_version=artifact.version, changed=True)

    async def invoke_unit(self, name: str, payload: Any = None) -> InvocationResult:
        return await asyncio.to_thread(self._invoke_unit, name, payload)

    def _invoke_unit(self, name: str, payload: Any) -> InvocationResult:
        function_name = self._function_name(name)
        try:
            response = self._lambda.invoke(
                FunctionName=function_name,
                InvocationType="RequestResponse",
                Payload=json.dumps(payload if payload is not None else {}).encode(),
            )
        except ClientError as e:
            raise _translate(e, name, "lambda:InvokeFunction")

        raw = response["Payload"].read()
        try:
            body = json.loads(raw) if raw else None
        except ValueError:
            body = raw.decode("utf-8", errors="replace")

        error = None
        if response.get("FunctionError"):
            error = body.get("errorMessage") if isinstance(body, dict) else str(body)
            error = error or response["FunctionError"]

        return InvocationResult(
            unit=name,
            status_code=response.get("StatusCode", 200),
            payload=body,
            executed_version=response.get("ExecutedVersion"),
            error=error,
        )

def _translate(error: ClientError, unit: str, action: str) -> Exception:
    code = error.response.get("Error", {}).get("Code", "")
    if code == "ResourceNotFoundException":
        return NotFound(f"Compute unit '{unit}' does not exist")
    if code.startswith("AccessDenied"):
        return PermissionDenied("controller", unit, action)
    return error

"""
Permission grant model.

Grants are computed once from the release topology, before any pipeline
run, and are only queried afterwards. Which principal needs what is
expressed as two tables: capability -> (resource, actions) and
principal -> capabilities.
"""

import logging
from typing import Callable, Dict, FrozenSet, Iterable, Tuple, Union

from pydantic import BaseModel, ConfigDict

from controller.src.errors import PermissionDenied
from controller.src.models.stage import ComputeUnit
from controller.src.models.topology import Topology

logger = logging.getLogger(__name__)

BUILD_PRINCIPAL = "build"
PIPELINE_PRINCIPAL = "pipeline"
MAINTENANCE_PRINCIPAL = "maintenance"

UPDATE_CODE_ACTION = "lambda:UpdateFunctionCode"
INVOKE_ACTION = "lambda:InvokeFunction"
ARTIFACT_READ_ACTION = "s3:GetObject"
ARTIFACT_WRITE_ACTION = "s3:PutObject"

class Grant(BaseModel):
    principal: str
    resource: str
    actions: FrozenSet[str]

    model_config = ConfigDict(frozen=True)

    def allows(self, resource: str, action: str) -> bool:
        return (self.resource == "*" or self.resource == resource) and action in self.actions

# capability -> (resource resolver, actions). The resolver receives the
# topology and the capability's target unit (if any).
Resolver = Callable[[Topology, str], str]

ARTIFACT_READ = ("s3:GetObject", "s3:GetObjectVersion", "s3:ListBucket")

CAPABILITIES: Dict[str, Tuple[Resolver, Tuple[str, ...]]] = {
    "basic_logs": (
        lambda t, _: "*",
        ("logs:CreateLogGroup", "logs:CreateLogStream", "logs:PutLogEvents"),
    ),
    "secret_read": (
        lambda t, _: t.resources.database_secret,
        ("secretsmanager:GetSecretValue", "secretsmanager:DescribeSecret"),
    ),
    "database_connect": (
        lambda t, _: t.resources.database,
        ("rds-db:connect",),
    ),
    "artifact_read": (
        lambda t, _: t.resources.artifact_store,
        ARTIFACT_READ,
    ),
    "artifact_read_write": (
        lambda t, _: t.resources.artifact_store,
        ARTIFACT_READ + ("s3:PutObject", "s3:DeleteObject"),
    ),
    "email_topic": (
        lambda t, _: t.resources.email_topic,
        ("sns:Publish", "sns:Subscribe"),
    ),
    "platform_topic": (
        lambda t, _: t.resources.platform_topic,
        (
            "sns:CreatePlatformEndpoint",
            "sns:Publish",
            "sns:DeleteEndpoint",
            "sns:GetEndpointAttributes",
            "sns:SetEndpointAttributes",
        ),
    ),
    "user_pool": (
        lambda t, _: t.resources.user_pool,
        (
            "cognito-idp:AdminCreateUser",
            "cognito-idp:AdminGetUser",
            "cognito-idp:AdminUpdateUserAttributes",
            "cognito-idp:AdminInitiateAuth",
            "cognito-idp:ListUsers",
        ),
    ),
    "network_interfaces": (
        lambda t, _: "*",
        (
            "ec2:CreateNetworkInterface",
            "ec2:DescribeNetworkInterfaces",
            "ec2:DeleteNetworkInterface",
        ),
    ),
    "task_callback": (
        lambda t, _: "*",
        ("states:SendTaskSuccess", "states:SendTaskFailure"),
    ),
    "update_code": (
        lambda t, unit: t.function_arn(unit),
        (UPDATE_CODE_ACTION, "lambda:GetFunction", "lambda:TagResource"),
    ),
    "invoke": (
        lambda t, unit: t.function_arn(unit),
        (INVOKE_ACTION,),
    ),
}

# Unit execution roles. Network interface actions are added only for
# VPC-attached units.
UNIT_CAPABILITIES: Dict[str, Tuple[str, ...]] = {
    "application": (
        "basic_logs",
        "secret_read",
        "database_connect",
        "artifact_read_write",
        "email_topic",
        "platform_topic",
        "user_pool",
    ),
    "migration": ("basic_logs", "secret_read", "database_connect", "task_callback"),
    "cleanup": ("basic_logs", "secret_read", "database_connect"),
}
DEFAULT_UNIT_CAPABILITIES: Tuple[str, ...] = ("basic_logs",)

def update_code_principal(unit_name: str) -> str:
    return f"update-code-{unit_name}"

# Pipeline-side principals: (capability, target unit)
def stage_capabilities(topology: Topology) -> Dict[str, Tuple[Tuple[str, str], ...]]:
    table = {
        BUILD_PRINCIPAL: (("artifact_read_write", ""),),
        PIPELINE_PRINCIPAL: (("invoke", "migration"),),
        MAINTENANCE_PRINCIPAL: (("invoke", "cleanup"),),
    }
    for unit_name in topology.units:
        table[update_code_principal(unit_name)] = (
            ("artifact_read", ""),
            ("update_code", unit_name),
        )
    return table

class GrantModel:
    """Read-only view over the grants computed from a topology."""

    def __init__(self, grants: Iterable[Grant], unit_roles: Dict[str, str]):
        by_principal: Dict[str, set] = {}
        for grant in grants:
            by_principal.setdefault(grant.principal, set()).add(grant)
        self._by_principal = {p: frozenset(g) for p, g in by_principal.items()}
        self._unit_roles = dict(unit_roles)

    @classmethod
    def from_topology(cls, topology: Topology) -> "GrantModel":
        grants = []
        unit_roles = {}

        for unit_name, unit in topology.units.items():
            role = unit.role_name
            unit_roles[unit_name] = role
            capabilities = UNIT_CAPABILITIES.get(unit_name, DEFAULT_UNIT_CAPABILITIES)
            if unit.network.vpc_attached:
                capabilities = capabilities + ("network_interfaces",)
            for capability in capabilities:
                grants.append(_grant(topology, role, capability, unit_name))

        for principal, entries in stage_capabilities(topology).items():
            for capability, target in entries:
                grants.append(_grant(topology, principal, capability, target))

        model = cls(grants, unit_roles)
        logger.info(f"Computed {len(grants)} grants for {len(model.principals())} principals")
        return model

    def principals(self) -> FrozenSet[str]:
        return frozenset(self._by_principal)

    def grants_for_principal(self, principal: str) -> FrozenSet[Grant]:
        return self._by_principal.get(principal, frozenset())

    def grants_for(self, unit: Union[str, ComputeUnit]) -> FrozenSet[Grant]:
        """Grants held by a unit's execution role."""
        name = unit.name if isinstance(unit, ComputeUnit) else unit
        role = self._unit_roles.get(name)
        if role is None:
            return frozenset()
        return self.grants_for_principal(role)

    def is_allowed(self, principal: str, resource: str, action: str) -> bool:
        return any(g.allows(resource, action) for g in self.grants_for_principal(principal))

    def check(self, principal: str, resource: str, action: str):
        """Raise PermissionDenied unless a grant authorizes the action."""
        if not self.is_allowed(principal, resource, action):
            logger.warning(f"Denied {action} on {resource} for {principal}")
            raise PermissionDenied(principal, resource, action)

def _grant(topology: Topology, principal: str, capability: str, target: str) -> Grant:
    resolver, actions = CAPABILITIES[capability]
    return Grant(
        principal=principal,
        resource=resolver(topology, target),
        actions=frozenset(actions),
    )

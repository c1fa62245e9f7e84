"""
Release topology YAML parser and validator.
"""

import yaml
from typing import Dict, Any, Optional

from controller.src.errors import TopologyConfigError
from controller.src.models.topology import (
    REQUIRED_UNITS,
    BuildSpec,
    Resources,
    Topology,
    UnitSpec,
)
from controller.src.models.stage import NetworkPlacement

PLACEMENTS = ("isolated", "public")

def load_topology(path: str) -> Topology:
    """Read and validate a topology file."""
    try:
        with open(path, "r") as f:
            content = f.read()
    except OSError as e:
        raise TopologyConfigError(f"Cannot read topology file {path}: {e}")

    return parse_topology_config(content)

def parse_topology_config(yaml_content: str) -> Topology:
    """Parse release topology YAML from string."""
    try:
        config = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise TopologyConfigError(f"Invalid YAML: {e}")

    return validate_config(config)

def parse_topology_dict(config: Dict[str, Any]) -> Topology:
    """Validate release topology from dict."""
    return validate_config(config)

def validate_config(config: Optional[Dict[str, Any]]) -> Topology:
    """Validate release topology structure."""
    if not config:
        raise TopologyConfigError("Empty topology configuration")

    if not isinstance(config, dict):
        raise TopologyConfigError("Topology configuration must be a dictionary")

    name = config.get("name", "release")
    if not isinstance(name, str):
        raise TopologyConfigError("Topology 'name' must be a string")

    artifact = config.get("artifact", {}) or {}
    if not isinstance(artifact, dict):
        raise TopologyConfigError("Topology 'artifact' must be a dictionary")
    artifact_name = artifact.get("name", "lambda.zip")
    if not isinstance(artifact_name, str) or not artifact_name:
        raise TopologyConfigError("Artifact 'name' must be a non-empty string")

    if "build" not in config:
        raise TopologyConfigError("Topology must have 'build' defined")
    build = validate_build(config["build"], artifact_name)

    if "resources" not in config:
        raise TopologyConfigError("Topology must have 'resources' defined")
    resources = validate_resources(config["resources"])

    if "units" not in config:
        raise TopologyConfigError("Topology must have 'units' defined")

    units = config["units"]
    if not isinstance(units, dict):
        raise TopologyConfigError("Topology 'units' must be a dictionary")

    for required in REQUIRED_UNITS:
        if required not in units:
            raise TopologyConfigError(f"Topology missing unit '{required}'")

    validated_units = {}
    for unit_name, unit in units.items():
        validated_units[unit_name] = validate_unit(unit_name, unit)

    return Topology(
        name=name,
        artifact_name=artifact_name,
        build=build,
        resources=resources,
        units=validated_units,
    )

def validate_build(build: Any, package: str) -> BuildSpec:
    """Validate the build procedure."""
    if not isinstance(build, dict):
        raise TopologyConfigError("Topology 'build' must be a dictionary")

    if "commands" not in build:
        raise TopologyConfigError("Build missing 'commands'")

    if not isinstance(build["commands"], list) or len(build["commands"]) == 0:
        raise TopologyConfigError("Build 'commands' must be a non-empty list")

    for j, cmd in enumerate(build["commands"]):
        if not isinstance(cmd, str):
            raise TopologyConfigError(f"Build command {j} must be a string")

    image = build.get("image", "node:18")
    if not isinstance(image, str):
        raise TopologyConfigError("Build 'image' must be a string")

    timeout = build.get("timeout", 900)
    if not isinstance(timeout, int) or timeout <= 0:
        raise TopologyConfigError("Build 'timeout' must be a positive integer")

    return BuildSpec(
        image=image,
        commands=build["commands"],
        package=package,
        env={k: str(v) for k, v in (build.get("env") or {}).items()},
        timeout=timeout,
    )

def validate_resources(resources: Any) -> Resources:
    if not isinstance(resources, dict):
        raise TopologyConfigError("Topology 'resources' must be a dictionary")

    if "artifact_store" not in resources:
        raise TopologyConfigError("Resources missing 'artifact_store'")

    for key, value in resources.items():
        if not isinstance(value, str):
            raise TopologyConfigError(f"Resource '{key}' must be a string")

    return Resources(**resources)

def validate_unit(name: str, unit: Any) -> UnitSpec:
    """Validate a single compute unit."""
    if not isinstance(unit, dict):
        raise TopologyConfigError(f"Unit '{name}' must be a dictionary")

    if "function_name" not in unit:
        raise TopologyConfigError(f"Unit '{name}' missing 'function_name'")

    if "handler" not in unit:
        raise TopologyConfigError(f"Unit '{name}' missing 'handler'")

    memory = unit.get("memory", 1024)
    if not isinstance(memory, int) or memory <= 0:
        raise TopologyConfigError(f"Unit '{name}' 'memory' must be a positive integer")

    timeout = unit.get("timeout", 120)
    if not isinstance(timeout, int) or timeout <= 0:
        raise TopologyConfigError(f"Unit '{name}' 'timeout' must be a positive integer")

    network = unit.get("network", {}) or {}
    placement = network.get("placement", "isolated")
    if placement not in PLACEMENTS:
        raise TopologyConfigError(
            f"Unit '{name}' network placement must be one of {', '.join(PLACEMENTS)}"
        )

    environment = unit.get("environment", {}) or {}
    if not isinstance(environment, dict):
        raise TopologyConfigError(f"Unit '{name}' 'environment' must be a dictionary")

    return UnitSpec(
        name=name,
        function_name=unit["function_name"],
        handler=unit["handler"],
        role=unit.get("role"),
        memory_mb=memory,
        timeout_seconds=timeout,
        network=NetworkPlacement(
            placement=placement,
            vpc_attached=bool(network.get("vpc", True)),
        ),
        environment={k: str(v) for k, v in environment.items()},
    )

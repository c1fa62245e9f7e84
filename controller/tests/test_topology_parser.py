"""Tests for release topology parser."""

import pytest
from controller.src.errors import TopologyConfigError
from controller.src.services.topology_parser import (
    load_topology,
    parse_topology_config,
    parse_topology_dict,
)

from conftest import topology_dict

VALID = """
name: nest-api
artifact:
  name: bundle.zip
build:
  image: node:18
  commands:
    - npm ci
    - npm run build
  env:
    NODE_ENV: production
resources:
  artifact_store: arn:aws:s3:::nest-artifacts
units:
  application:
    function_name: nest-app
    handler: lambda.handler
    memory: 512
    network:
      placement: public
      vpc: false
  migration:
    function_name: nest-migrate
    handler: migrate.handler
    role: migrator
    timeout: 300
  cleanup:
    function_name: nest-cleanup
    handler: cleanup.handler
    environment:
      RETENTION_DAYS: 30
"""

def test_valid_topology():
    result = parse_topology_config(VALID)
    assert result.name == "nest-api"
    assert result.artifact_name == "bundle.zip"
    assert result.build.commands == ["npm ci", "npm run build"]
    assert result.build.package == "bundle.zip"
    assert result.build.env == {"NODE_ENV": "production"}
    assert set(result.units) == {"application", "migration", "cleanup"}

def test_unit_fields():
    result = parse_topology_config(VALID)

    application = result.unit("application")
    assert application.memory_mb == 512
    assert application.network.placement == "public"
    assert application.network.vpc_attached is False

    migration = result.unit("migration")
    assert migration.role_name == "migrator"
    assert migration.timeout_seconds == 300
    assert migration.network.vpc_attached is True

    cleanup = result.unit("cleanup")
    assert cleanup.role_name == "cleanup-execution-role"
    assert cleanup.environment == {"RETENTION_DAYS": "30"}

def test_unset_resources_are_wildcards():
    result = parse_topology_config(VALID)
    assert result.resources.artifact_store == "arn:aws:s3:::nest-artifacts"
    assert result.resources.database == "*"

def test_empty_config():
    with pytest.raises(TopologyConfigError, match="Empty"):
        parse_topology_config("")

def test_invalid_yaml():
    with pytest.raises(TopologyConfigError, match="Invalid YAML"):
        parse_topology_config("units: [unclosed")

def test_missing_build():
    config = topology_dict()
    del config["build"]
    with pytest.raises(TopologyConfigError, match="must have 'build'"):
        parse_topology_dict(config)

def test_missing_build_commands():
    config = topology_dict()
    config["build"] = {"image": "node:18"}
    with pytest.raises(TopologyConfigError, match="missing 'commands'"):
        parse_topology_dict(config)

def test_empty_build_commands():
    config = topology_dict()
    config["build"]["commands"] = []
    with pytest.raises(TopologyConfigError, match="non-empty list"):
        parse_topology_dict(config)

def test_missing_resources():
    config = topology_dict()
    del config["resources"]
    with pytest.raises(TopologyConfigError, match="must have 'resources'"):
        parse_topology_dict(config)

def test_missing_artifact_store():
    config = topology_dict()
    del config["resources"]["artifact_store"]
    with pytest.raises(TopologyConfigError, match="missing 'artifact_store'"):
        parse_topology_dict(config)

@pytest.mark.parametrize("unit", ["application", "migration", "cleanup"])
def test_missing_required_unit(unit):
    config = topology_dict()
    del config["units"][unit]
    with pytest.raises(TopologyConfigError, match=f"missing unit '{unit}'"):
        parse_topology_dict(config)

def test_missing_function_name():
    config = topology_dict()
    del config["units"]["cleanup"]["function_name"]
    with pytest.raises(TopologyConfigError, match="missing 'function_name'"):
        parse_topology_dict(config)

def test_missing_handler():
    config = topology_dict()
    del config["units"]["migration"]["handler"]
    with pytest.raises(TopologyConfigError, match="missing 'handler'"):
        parse_topology_dict(config)

def test_unknown_placement():
    config = topology_dict()
    config["units"]["application"]["network"] = {"placement": "dmz"}
    with pytest.raises(TopologyConfigError, match="placement must be one of"):
        parse_topology_dict(config)

def test_load_topology(tmp_path):
    path = tmp_path / "release.yml"
    path.write_text(VALID)
    assert load_topology(str(path)).name == "nest-api"

def test_load_missing_file(tmp_path):
    with pytest.raises(TopologyConfigError, match="Cannot read"):
        load_topology(str(tmp_path / "absent.yml"))

"""Tests for the code-update stage."""

import pytest

from controller.src.errors import NotFound, PermissionDenied
from controller.src.models.stage import Artifact
from controller.src.registry import InMemoryComputeUnitRegistry

async def built(release, commit="abc123"):
    version = await release.store.put("lambda.zip", f"package for {commit}".encode())
    return Artifact(name="lambda.zip", version=version, source_commit=commit, checksum="x", size=1)

@pytest.mark.asyncio
async def test_update_repoints_unit(release):
    artifact = await built(release)

    ack = await release.code_updater.update_code("application", artifact)

    assert ack.unit == "application"
    assert ack.code_version == "v1"
    assert ack.changed is True
    assert await release.code_version("application") == "v1"
    assert await release.code_version("cleanup") is None

@pytest.mark.asyncio
async def test_second_update_is_a_no_op(release):
    artifact = await built(release)

    await release.code_updater.update_code("cleanup", artifact)
    ack = await release.code_updater.update_code("cleanup", artifact)

    assert ack.changed is False
    assert ack.code_version == "v1"
    assert release.registry.update_calls == [("cleanup", "v1")]

@pytest.mark.asyncio
async def test_newer_artifact_replaces_older(release):
    first = await built(release, "abc123")
    second = await built(release, "def456")

    await release.code_updater.update_code("migration", first)
    ack = await release.code_updater.update_code("migration", second)

    assert ack.changed is True
    assert await release.code_version("migration") == "v2"

@pytest.mark.asyncio
async def test_missing_unit_raises_not_found(release, topology):
    units = {
        name: spec.to_compute_unit()
        for name, spec in topology.units.items()
        if name != "cleanup"
    }
    release.code_updater.registry = InMemoryComputeUnitRegistry(units)
    artifact = await built(release)

    with pytest.raises(NotFound):
        await release.code_updater.update_code("cleanup", artifact)

@pytest.mark.asyncio
async def test_unknown_unit_is_denied_before_lookup(release):
    artifact = await built(release)

    with pytest.raises(PermissionDenied):
        await release.code_updater.update_code("worker", artifact)

    assert release.registry.update_calls == []

def test_registry_keeps_no_call_log(topology):
    registry = InMemoryComputeUnitRegistry.from_topology(topology)
    assert not hasattr(registry, "update_calls")

"""Tests for the release pipeline scheduler."""

import asyncio

import pytest

from controller.src.models.stage import RunStatus, StageId, StageStatus
from controller.src.permissions import GrantModel
from controller.src.services.scheduler import STAGE_ORDER, next_stage

from conftest import make_trigger

UNITS = ("migration", "application", "cleanup")

def test_stage_order():
    assert [s.value for s in STAGE_ORDER] == [
        "fetch",
        "build",
        "update_code_migration",
        "invoke_migration",
        "update_code_application",
        "update_code_cleanup",
    ]

def test_next_stage_walks_the_pipeline():
    stage = next_stage(None, None)
    visited = []
    while stage is not None:
        visited.append(stage)
        stage = next_stage(stage, StageStatus.SUCCEEDED)

    assert tuple(visited) == STAGE_ORDER

@pytest.mark.parametrize("status", [StageStatus.FAILED, StageStatus.RUNNING, StageStatus.PENDING])
def test_next_stage_stops_unless_succeeded(status):
    for stage in STAGE_ORDER:
        assert next_stage(stage, status) is None

def test_next_stage_after_last_stage_is_terminal():
    assert next_stage(StageId.UPDATE_CODE_CLEANUP, StageStatus.SUCCEEDED) is None

@pytest.mark.asyncio
async def test_successful_release(release):
    result = await release.scheduler.run(make_trigger("abc123"))

    assert result.status == RunStatus.SUCCEEDED
    assert result.failed_stage is None
    assert [s.stage for s in result.stages] == list(STAGE_ORDER)
    assert all(s.status == StageStatus.SUCCEEDED for s in result.stages)

    assert result.snapshot.commit_sha == "abc123"
    assert result.artifact.version == "v1"
    assert result.artifact.source_commit == "abc123"
    assert result.live_versions == {"migration": "v1", "application": "v1", "cleanup": "v1"}
    for unit in UNITS:
        assert await release.code_version(unit) == "v1"

    assert release.reporter.started_stages(result.run_id) == list(STAGE_ORDER)

@pytest.mark.asyncio
async def test_stages_start_only_after_predecessor_succeeded(release):
    result = await release.scheduler.run(make_trigger())

    finished = {}
    for event, run_id, payload in release.reporter.events:
        if event == "stage_finished":
            stage, status = payload
            finished[stage] = status
        if event == "stage_started":
            index = STAGE_ORDER.index(payload)
            if index > 0:
                assert finished[STAGE_ORDER[index - 1]] == StageStatus.SUCCEEDED

    for earlier, later in zip(result.stages, result.stages[1:]):
        assert earlier.finished_at <= later.started_at

@pytest.mark.asyncio
async def test_every_code_update_uses_the_built_artifact(release):
    result = await release.scheduler.run(make_trigger())

    versions = {
        s.output["code_version"]
        for s in result.stages
        if s.stage.value.startswith("update_code_")
    }
    assert versions == {result.artifact.version}
    assert [v for _, v in release.registry.update_calls] == [result.artifact.version] * 3

@pytest.mark.asyncio
async def test_migration_failure_stops_the_train(release):
    def failing_migration(unit, payload):
        raise RuntimeError("schema conflict")

    release.registry.set_handler("migration", failing_migration)

    result = await release.scheduler.run(make_trigger("abc123"))

    assert result.status == RunStatus.FAILED
    assert result.failed_stage == StageId.INVOKE_MIGRATION
    assert "schema conflict" in result.error
    assert result.stage(StageId.INVOKE_MIGRATION).status == StageStatus.FAILED
    assert result.stage(StageId.UPDATE_CODE_APPLICATION).status == StageStatus.PENDING
    assert result.stage(StageId.UPDATE_CODE_CLEANUP).status == StageStatus.PENDING

    # No rollback: migration keeps the new code, the rest keep what they had
    assert await release.code_version("migration") == "v1"
    assert await release.code_version("application") is None
    assert await release.code_version("cleanup") is None
    assert StageId.UPDATE_CODE_APPLICATION not in release.reporter.started_stages(result.run_id)

@pytest.mark.asyncio
async def test_failed_run_keeps_previous_release_live(release):
    first = await release.scheduler.run(make_trigger("abc123"))
    assert first.status == RunStatus.SUCCEEDED

    def failing_migration(unit, payload):
        raise RuntimeError("schema conflict")

    release.registry.set_handler("migration", failing_migration)
    second = await release.scheduler.run(make_trigger("def456"))

    assert second.status == RunStatus.FAILED
    assert await release.code_version("migration") == "v2"
    assert await release.code_version("application") == "v1"
    assert await release.code_version("cleanup") == "v1"

@pytest.mark.asyncio
async def test_migration_timeout_fails_the_run(make_release):
    release = make_release(migration_timeout=0.05)

    async def slow_migration(unit, payload):
        await asyncio.sleep(10)

    release.registry.set_handler("migration", slow_migration)

    result = await release.scheduler.run(make_trigger())

    assert result.status == RunStatus.FAILED
    assert result.failed_stage == StageId.INVOKE_MIGRATION
    assert result.error.startswith("Timeout")
    assert await release.code_version("application") is None

@pytest.mark.asyncio
async def test_unresolvable_source_fails_before_build(release):
    release.fetcher.missing.add("gone")

    result = await release.scheduler.run(make_trigger("gone"))

    assert result.status == RunStatus.FAILED
    assert result.failed_stage == StageId.FETCH
    assert result.error.startswith("SourceUnavailable")
    assert release.runner.calls == []
    assert all(s.status == StageStatus.PENDING for s in result.stages[1:])

@pytest.mark.asyncio
async def test_build_failure_touches_no_unit(release):
    release.runner.exit_code = 2

    result = await release.scheduler.run(make_trigger())

    assert result.failed_stage == StageId.BUILD
    assert "exit code 2" in result.error
    assert result.artifact is None
    assert release.registry.update_calls == []

@pytest.mark.asyncio
async def test_missing_grant_stops_at_that_update(make_release, topology):
    full = GrantModel.from_topology(topology)
    grants = [
        g for p in full.principals() for g in full.grants_for_principal(p)
        if p != "update-code-application"
    ]
    roles = {name: unit.role_name for name, unit in topology.units.items()}
    release = make_release(grants=GrantModel(grants, roles))

    result = await release.scheduler.run(make_trigger())

    assert result.failed_stage == StageId.UPDATE_CODE_APPLICATION
    assert result.error.startswith("PermissionDenied")
    assert result.stage(StageId.UPDATE_CODE_CLEANUP).status == StageStatus.PENDING
    assert await release.code_version("migration") == "v1"
    assert await release.code_version("cleanup") is None

@pytest.mark.asyncio
async def test_unexpected_stage_error_fails_the_run(release):
    async def broken_fetch(trigger):
        raise ValueError("boom")

    release.fetcher.fetch = broken_fetch

    result = await release.scheduler.run(make_trigger())

    assert result.status == RunStatus.FAILED
    assert result.failed_stage == StageId.FETCH
    assert result.error == "ValueError: boom"

@pytest.mark.asyncio
async def test_triggers_queue_behind_running_release(release):
    gate = asyncio.Event()
    release.runner.gate = gate

    first = await release.scheduler.submit(make_trigger("aaa111"), run_id="run-1")
    # Let the first run reach the build stage
    while release.runner.calls != ["aaa111"]:
        await asyncio.sleep(0)

    second = await release.scheduler.submit(make_trigger("bbb222"), run_id="run-2")
    third = await release.scheduler.submit(make_trigger("ccc333"), run_id="run-3")

    assert release.scheduler.current_run.run_id == "run-1"
    assert release.scheduler.queue_depth == 2
    assert not second.done() and not third.done()

    gate.set()
    results = await asyncio.gather(first, second, third)

    assert [r.status for r in results] == [RunStatus.SUCCEEDED] * 3
    assert [r.artifact.version for r in results] == ["v1", "v2", "v3"]
    assert [r.snapshot.commit_sha for r in results] == ["aaa111", "bbb222", "ccc333"]
    assert release.reporter.max_active == 1

    run_order = [rid for event, rid, _ in release.reporter.events if event == "run_started"]
    assert run_order == ["run-1", "run-2", "run-3"]
    for unit in UNITS:
        assert await release.code_version(unit) == "v3"

    await release.scheduler.close()

@pytest.mark.asyncio
async def test_failed_run_does_not_block_queued_triggers(release):
    release.fetcher.missing.add("bad")

    results = await asyncio.gather(
        release.scheduler.run(make_trigger("bad")),
        release.scheduler.run(make_trigger("good")),
    )

    assert [r.status for r in results] == [RunStatus.FAILED, RunStatus.SUCCEEDED]
    assert results[1].artifact.version == "v1"
    assert release.reporter.max_active == 1

    await release.scheduler.close()

@pytest.mark.asyncio
async def test_close_cancels_queued_runs(release):
    gate = asyncio.Event()
    release.runner.gate = gate

    first = await release.scheduler.submit(make_trigger("aaa111"))
    while not release.runner.calls:
        await asyncio.sleep(0)
    queued = await release.scheduler.submit(make_trigger("bbb222"))

    await release.scheduler.close()

    assert first.cancelled()
    assert queued.cancelled()

@pytest.mark.asyncio
async def test_reporter_failure_does_not_lose_the_run(release):
    def failing_stage_finished(run_id, stage_run):
        raise RuntimeError("database unavailable")

    release.reporter.stage_finished = failing_stage_finished

    def failing_migration(unit, payload):
        raise RuntimeError("schema conflict")

    release.registry.set_handler("migration", failing_migration)

    result = await release.scheduler.run(make_trigger("abc123"))

    assert result.status == RunStatus.FAILED
    assert result.failed_stage == StageId.INVOKE_MIGRATION
    assert "schema conflict" in result.error
    assert result.stage(StageId.UPDATE_CODE_MIGRATION).status == StageStatus.SUCCEEDED
    assert ("run_finished", result.run_id, RunStatus.FAILED) in release.reporter.events

@pytest.mark.asyncio
async def test_reporter_failure_on_start_still_runs_the_pipeline(release):
    def failing_run_started(result):
        raise RuntimeError("database unavailable")

    release.reporter.run_started = failing_run_started

    result = await release.scheduler.run(make_trigger("abc123"))

    assert result.status == RunStatus.SUCCEEDED
    assert result.live_versions == {"migration": "v1", "application": "v1", "cleanup": "v1"}

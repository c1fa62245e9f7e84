"""Shared fixtures: an in-memory release train with fake source control and builds."""

import copy
import os

import pytest

from controller.src.errors import SourceUnavailable
from controller.src.models.stage import SourceSnapshot, Trigger
from controller.src.permissions import GrantModel
from controller.src.registry import InMemoryComputeUnitRegistry
from controller.src.services.build import BuildStage
from controller.src.services.build_runner import BuildOutcome, BuildRunner
from controller.src.services.code_update import CodeUpdateStage
from controller.src.services.migration import MigrationInvocationStage
from controller.src.services.scheduler import PipelineScheduler
from controller.src.services.topology_parser import parse_topology_dict
from controller.src.storage import InMemoryArtifactStore

TOPOLOGY = {
    "name": "nest-api",
    "artifact": {"name": "lambda.zip"},
    "build": {
        "image": "node:18",
        "commands": ["npm ci", "npm run build", "zip -r lambda.zip dist"],
    },
    "resources": {
        "artifact_store": "arn:aws:s3:::nest-artifacts",
        "database": "arn:aws:rds:us-east-1:123456789012:db:nest",
        "database_secret": "arn:aws:secretsmanager:us-east-1:123456789012:secret:nest-db",
        "email_topic": "arn:aws:sns:us-east-1:123456789012:email",
        "platform_topic": "arn:aws:sns:us-east-1:123456789012:app/APNS/nest",
        "user_pool": "arn:aws:cognito-idp:us-east-1:123456789012:userpool/us-east-1_abc",
    },
    "units": {
        "application": {
            "function_name": "arn:aws:lambda:us-east-1:123456789012:function:nest-app",
            "handler": "lambda.handler",
        },
        "migration": {
            "function_name": "arn:aws:lambda:us-east-1:123456789012:function:nest-migrate",
            "handler": "migrate.handler",
        },
        "cleanup": {
            "function_name": "arn:aws:lambda:us-east-1:123456789012:function:nest-cleanup",
            "handler": "cleanup.handler",
        },
    },
}

def topology_dict():
    return copy.deepcopy(TOPOLOGY)

def make_trigger(commit_ref="abc123", branch="main"):
    return Trigger(owner="acme", repo="nest-api", branch=branch, commit_ref=commit_ref)

class FakeFetcher:
    """Resolves every trigger to its own commit; unknown refs can be configured."""

    def __init__(self):
        self.missing = set()
        self.calls = []

    async def fetch(self, trigger):
        self.calls.append(trigger.commit_ref)
        if trigger.commit_ref in self.missing:
            raise SourceUnavailable(f"Reference '{trigger.commit_ref}' not found")
        return SourceSnapshot(
            owner=trigger.owner,
            repo=trigger.repo,
            branch=trigger.branch,
            commit_sha=trigger.commit_ref or "head",
            clone_url=f"https://github.com/{trigger.owner}/{trigger.repo}.git",
        )

class FakeBuildRunner(BuildRunner):
    """Writes a package named after the commit into the workdir."""

    def __init__(self):
        self.calls = []
        self.exit_code = 0
        self.produce_package = True
        self.gate = None

    async def run(self, run_id, snapshot, spec, workdir):
        self.calls.append(snapshot.commit_sha)
        if self.gate is not None:
            await self.gate.wait()
        if self.exit_code != 0:
            return BuildOutcome(exit_code=self.exit_code, reason=f"exit code {self.exit_code}")
        if self.produce_package:
            os.makedirs(workdir, exist_ok=True)
            with open(os.path.join(workdir, spec.package), "wb") as f:
                f.write(f"package for {snapshot.commit_sha}".encode())
        return BuildOutcome(exit_code=0, logs="ok")

class RecordingRegistry(InMemoryComputeUnitRegistry):
    """In-memory registry that records every code update it is asked for."""

    def __init__(self, units, handlers=None):
        super().__init__(units, handlers)
        self.update_calls = []

    async def update_unit_code(self, name, artifact, location):
        self.update_calls.append((name, artifact.version))
        return await super().update_unit_code(name, artifact, location)

class RecordingReporter:
    """Records status events and how many runs were active at once."""

    def __init__(self):
        self.events = []
        self.active = 0
        self.max_active = 0

    def run_started(self, result):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.events.append(("run_started", result.run_id, None))

    def stage_started(self, run_id, stage_run):
        self.events.append(("stage_started", run_id, stage_run.stage))

    def stage_finished(self, run_id, stage_run):
        self.events.append(("stage_finished", run_id, (stage_run.stage, stage_run.status)))

    def run_finished(self, result):
        self.active -= 1
        self.events.append(("run_finished", result.run_id, result.status))

    def started_stages(self, run_id):
        return [stage for event, rid, stage in self.events if event == "stage_started" and rid == run_id]

class Release:
    """Bundle of a scheduler and the fakes behind it."""

    def __init__(self, tmp_path, grants=None, migration_timeout=5):
        self.topology = parse_topology_dict(topology_dict())
        self.grants = grants or GrantModel.from_topology(self.topology)
        self.store = InMemoryArtifactStore()
        self.registry = RecordingRegistry.from_topology(self.topology)
        self.fetcher = FakeFetcher()
        self.runner = FakeBuildRunner()
        self.reporter = RecordingReporter()

        unit_resources = {name: self.topology.function_arn(name) for name in self.topology.units}
        artifact_resource = self.topology.resources.artifact_store

        self.builder = BuildStage(
            runner=self.runner,
            store=self.store,
            spec=self.topology.build,
            grants=self.grants,
            artifact_resource=artifact_resource,
            workspace=str(tmp_path),
            artifact_name=self.topology.artifact_name,
        )
        self.code_updater = CodeUpdateStage(
            registry=self.registry,
            store=self.store,
            grants=self.grants,
            artifact_resource=artifact_resource,
            unit_resources=unit_resources,
        )
        self.migrator = MigrationInvocationStage(
            registry=self.registry,
            grants=self.grants,
            unit_resources=unit_resources,
            timeout=migration_timeout,
        )
        self.scheduler = PipelineScheduler(
            fetcher=self.fetcher,
            builder=self.builder,
            code_updater=self.code_updater,
            migrator=self.migrator,
            reporter=self.reporter,
        )

    async def code_version(self, unit):
        return (await self.registry.get_unit(unit)).code_version

@pytest.fixture
def topology():
    return parse_topology_dict(topology_dict())

@pytest.fixture
def release(tmp_path):
    return Release(tmp_path)

@pytest.fixture
def make_release(tmp_path):
    def factory(**kwargs):
        return Release(tmp_path, **kwargs)
    return factory

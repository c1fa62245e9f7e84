"""
Build stage - turns a source snapshot into exactly one stored artifact.
"""

import hashlib
import logging
import os
import shutil

from controller.src.errors import BuildFailure, StageError, UploadFailure
from controller.src.models.stage import Artifact, SourceSnapshot
from controller.src.models.topology import BuildSpec
from controller.src.permissions import BUILD_PRINCIPAL, GrantModel
from controller.src.permissions.grants import ARTIFACT_WRITE_ACTION
from controller.src.services.build_runner import BuildRunner
from controller.src.storage import ArtifactStore

logger = logging.getLogger(__name__)

class BuildStage:

    def __init__(
        self,
        runner: BuildRunner,
        store: ArtifactStore,
        spec: BuildSpec,
        grants: GrantModel,
        artifact_resource: str,
        workspace: str,
        artifact_name: str = "lambda.zip",
    ):
        self.runner = runner
        self.store = store
        self.spec = spec
        self.grants = grants
        self.artifact_resource = artifact_resource
        self.workspace = workspace
        self.artifact_name = artifact_name

    async def build(self, snapshot: SourceSnapshot, run_id: str) -> Artifact:
        """
        Build the snapshot and upload the package.
        Raises BuildFailure if the build exits non-zero or leaves no
        package, UploadFailure if the package cannot be stored.
        """
        self.grants.check(BUILD_PRINCIPAL, self.artifact_resource, ARTIFACT_WRITE_ACTION)

        workdir = os.path.join(self.workspace, run_id)
        try:
            outcome = await self.runner.run(run_id, snapshot, self.spec, workdir)
            if not outcome.succeeded:
                logger.error(f"Build of {snapshot.commit_sha} failed: {outcome.reason}")
                if outcome.logs:
                    logger.debug(outcome.logs)
                raise BuildFailure(outcome.reason or f"exit code {outcome.exit_code}")

            package_path = os.path.join(workdir, self.spec.package)
            if not os.path.isfile(package_path):
                raise BuildFailure(f"build did not produce {self.spec.package}")

            with open(package_path, "rb") as f:
                data = f.read()
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

        try:
            version = await self.store.put(self.artifact_name, data)
        except StageError:
            raise
        except Exception as e:
            raise UploadFailure(f"Failed to store {self.artifact_name}: {e}")

        artifact = Artifact(
            name=self.artifact_name,
            version=version,
            source_commit=snapshot.commit_sha,
            checksum=hashlib.sha256(data).hexdigest(),
            size=len(data),
        )
        logger.info(
            f"Built {artifact.name}@{artifact.version} from {snapshot.commit_sha} "
            f"({artifact.size} bytes)"
        )
        return artifact

"""
Pipeline scheduler - drives triggers through the fixed release pipeline.

Stages run strictly in STAGE_ORDER. A stage only starts when its
predecessor succeeded; the first failure ends the run and nothing that
already happened is rolled back. Runs go through a single lane: a
trigger that arrives while a run is in progress waits in a FIFO queue.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from functools import partial
from typing import Any, Dict, Optional, Protocol, Tuple

from controller.src.errors import StageError
from controller.src.models.stage import (
    PipelineRunResult,
    RunStatus,
    StageId,
    StageRun,
    StageStatus,
    Trigger,
)
from controller.src.services.build import BuildStage
from controller.src.services.code_update import CodeUpdateStage
from controller.src.services.migration import MigrationInvocationStage
from controller.src.services.source_fetcher import SourceFetcher

logger = logging.getLogger(__name__)

STAGE_ORDER: Tuple[StageId, ...] = (
    StageId.FETCH,
    StageId.BUILD,
    StageId.UPDATE_CODE_MIGRATION,
    StageId.INVOKE_MIGRATION,
    StageId.UPDATE_CODE_APPLICATION,
    StageId.UPDATE_CODE_CLEANUP,
)

CODE_UPDATE_UNITS: Dict[StageId, str] = {
    StageId.UPDATE_CODE_MIGRATION: "migration",
    StageId.UPDATE_CODE_APPLICATION: "application",
    StageId.UPDATE_CODE_CLEANUP: "cleanup",
}

MIGRATION_UNIT = "migration"

def next_stage(
    current: Optional[StageId], last_status: Optional[StageStatus]
) -> Optional[StageId]:
    """
    Transition function of the release pipeline.
    Returns the stage to run next, or None when the run is terminal.
    """
    if current is None:
        return STAGE_ORDER[0]

    if last_status != StageStatus.SUCCEEDED:
        return None

    index = STAGE_ORDER.index(current)
    if index + 1 >= len(STAGE_ORDER):
        return None
    return STAGE_ORDER[index + 1]

class StatusReporter(Protocol):
    def run_started(self, result: PipelineRunResult): ...
    def stage_started(self, run_id: str, stage_run: StageRun): ...
    def stage_finished(self, run_id: str, stage_run: StageRun): ...
    def run_finished(self, result: PipelineRunResult): ...

class PipelineScheduler:

    def __init__(
        self,
        fetcher: SourceFetcher,
        builder: BuildStage,
        code_updater: CodeUpdateStage,
        migrator: MigrationInvocationStage,
        reporter: Optional[StatusReporter] = None,
    ):
        self.fetcher = fetcher
        self.builder = builder
        self.code_updater = code_updater
        self.migrator = migrator
        self.reporter = reporter

        self._queue: Optional[asyncio.Queue] = None
        self._lane: Optional[asyncio.Task] = None
        self._current: Optional[PipelineRunResult] = None
        self._inflight: Optional[asyncio.Future] = None

        self._handlers = {
            StageId.FETCH: self._fetch,
            StageId.BUILD: self._build,
            StageId.INVOKE_MIGRATION: self._invoke_migration,
        }
        for stage, unit in CODE_UPDATE_UNITS.items():
            self._handlers[stage] = partial(self._update_code, unit)

    @property
    def current_run(self) -> Optional[PipelineRunResult]:
        """The run in progress, if any."""
        return self._current

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def submit(self, trigger: Trigger, run_id: Optional[str] = None) -> asyncio.Future:
        """Queue a trigger; the returned future resolves to its PipelineRunResult."""
        run_id = run_id or str(uuid.uuid4())
        future = asyncio.get_running_loop().create_future()

        self._ensure_lane()
        await self._queue.put((run_id, trigger, future))
        logger.info(
            f"Queued run {run_id} for {trigger.owner}/{trigger.repo}@"
            f"{trigger.commit_ref or trigger.branch} (queue depth {self._queue.qsize()})"
        )
        return future

    async def run(self, trigger: Trigger, run_id: Optional[str] = None) -> PipelineRunResult:
        """Queue a trigger and wait for its run to finish."""
        future = await self.submit(trigger, run_id)
        return await future

    async def close(self):
        """Stop the lane. The run in progress and runs still queued are cancelled."""
        inflight = self._inflight
        if self._lane is not None:
            self._lane.cancel()
            try:
                await self._lane
            except asyncio.CancelledError:
                pass
            self._lane = None

        if inflight is not None and not inflight.done():
            inflight.cancel()

        if self._queue is not None:
            while not self._queue.empty():
                _, _, future = self._queue.get_nowait()
                future.cancel()

    def _ensure_lane(self):
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._lane is None or self._lane.done():
            self._lane = asyncio.create_task(self._drain())

    async def _drain(self):
        while True:
            run_id, trigger, future = await self._queue.get()
            self._inflight = future
            try:
                result = await self.execute(run_id, trigger)
            except Exception as e:
                logger.exception(f"Run {run_id} aborted: {e}")
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._inflight = None
                self._queue.task_done()

    async def execute(self, run_id: str, trigger: Trigger) -> PipelineRunResult:
        """Run every stage of one pipeline run, stopping at the first failure."""
        result = PipelineRunResult(
            run_id=run_id,
            trigger=trigger,
            status=RunStatus.RUNNING,
            stages=[StageRun(stage=stage) for stage in STAGE_ORDER],
            started_at=datetime.utcnow(),
        )
        self._current = result

        try:
            logger.info(f"Starting run {run_id} with {len(STAGE_ORDER)} stages")
            self._report("run_started", result)

            stage = next_stage(None, None)
            while stage is not None:
                stage_run = result.stage(stage)
                await self._execute_stage(result, stage_run)
                stage = next_stage(stage, stage_run.status)

            if result.failed_stage is None:
                result.status = RunStatus.SUCCEEDED
            else:
                result.status = RunStatus.FAILED
            result.finished_at = datetime.utcnow()

            logger.info(f"Run {run_id} finished with status: {result.status.value}")
            self._report("run_finished", result)
            return result
        finally:
            self._current = None

    async def _execute_stage(self, result: PipelineRunResult, stage_run: StageRun):
        stage = stage_run.stage
        logger.info(f"Run {result.run_id}: executing stage {stage.value}")

        stage_run.status = StageStatus.RUNNING
        stage_run.started_at = datetime.utcnow()
        self._report("stage_started", result.run_id, stage_run)

        try:
            stage_run.output = await self._handlers[stage](result)
        except StageError as e:
            logger.error(f"Run {result.run_id}: stage {stage.value} failed: {e}")
            self._fail(result, stage_run, f"{type(e).__name__}: {e}")
        except Exception as e:
            logger.exception(f"Run {result.run_id}: stage {stage.value} failed with exception")
            self._fail(result, stage_run, f"{type(e).__name__}: {e}")
        else:
            stage_run.status = StageStatus.SUCCEEDED
            logger.info(f"Run {result.run_id}: stage {stage.value} succeeded")

        stage_run.finished_at = datetime.utcnow()
        self._report("stage_finished", result.run_id, stage_run)

    def _fail(self, result: PipelineRunResult, stage_run: StageRun, error: str):
        stage_run.status = StageStatus.FAILED
        stage_run.error = error
        result.failed_stage = stage_run.stage
        result.error = error

    def _report(self, event: str, *args):
        # A reporting failure never changes the outcome of a run
        if self.reporter is None:
            return
        try:
            getattr(self.reporter, event)(*args)
        except Exception:
            logger.exception(f"Status reporter failed on {event}")

    async def _fetch(self, result: PipelineRunResult) -> Dict[str, Any]:
        result.snapshot = await self.fetcher.fetch(result.trigger)
        return {"commit_sha": result.snapshot.commit_sha, "branch": result.snapshot.branch}

    async def _build(self, result: PipelineRunResult) -> Dict[str, Any]:
        result.artifact = await self.builder.build(result.snapshot, result.run_id)
        return result.artifact.model_dump()

    async def _update_code(self, unit: str, result: PipelineRunResult) -> Dict[str, Any]:
        # Every code update in a run uses the one artifact its build produced
        ack = await self.code_updater.update_code(unit, result.artifact)
        result.live_versions[unit] = ack.code_version
        return ack.model_dump()

    async def _invoke_migration(self, result: PipelineRunResult) -> Dict[str, Any]:
        invocation = await self.migrator.invoke(
            MIGRATION_UNIT,
            {"run_id": result.run_id, "artifact_version": result.artifact.version},
        )
        return invocation.model_dump(mode="json")

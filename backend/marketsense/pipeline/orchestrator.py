"""Pipeline orchestration: GenerateQueries -> Search -> Scrape -> Summarize -> Synthesize.

Each stage's rows are persisted before the next stage starts, so ``start`` on
an interrupted run picks up at the first stage that is not completed. Stages
select their work by status, so a re-invoked stage skips items it already
handled.
"""

import asyncio
import logging
from dataclasses import dataclass
from uuid import uuid4

from marketsense.storage import (
    LocalProgressCache,
    PipelineRun,
    ProgressStore,
    RunConflictError,
)

from .context import StageContext
from .stages import STAGE_CLASSES, StageResult, SummarizeStage
from .watcher import CompletionNotice, CompletionWatcher

logger = logging.getLogger(__name__)


@dataclass
class Attachment:
    """A cached run picked up on attach, plus the watcher polling for its completion."""

    run: PipelineRun
    watcher_task: "asyncio.Task[CompletionNotice | None]"


class PipelineOrchestrator:
    """Drives the five stages for one requirement at a time per requirement."""

    def __init__(
        self,
        ctx: StageContext,
        progress: ProgressStore,
        cache: LocalProgressCache,
        owner: str | None = None,
    ):
        self.ctx = ctx
        self.progress = progress
        self.cache = cache
        self.owner = owner or uuid4().hex
        self.stages = [cls(ctx) for cls in STAGE_CLASSES]
        self.watcher = CompletionWatcher(
            research=ctx.research,
            progress=progress,
            cache=cache,
            poll_interval_seconds=ctx.settings.watcher.poll_interval_seconds,
            sleep=ctx.sleep,
        )
        self._active: set[str] = set()

    # ========================================================================
    # Public API
    # ========================================================================

    async def start(
        self, requirement_id: str, restart: bool = False, **context: str
    ) -> PipelineRun:
        """Run or resume the pipeline until it completes or a stage fails.

        Returns the final run state. A failed run keeps its progress entry so
        the failed stage is visible and can be resumed.

        Raises:
            RunConflictError: another orchestrator holds a live lease on the run,
                or took it over mid-run.
        """
        if requirement_id in self._active:
            raise RunConflictError(
                requirement_id, f"Pipeline for {requirement_id} is already running here"
            )

        self._active.add(requirement_id)
        try:
            run = self._claim(requirement_id, restart)
            return await self._drive(run, context)
        finally:
            self._active.discard(requirement_id)

    def attach(self, requirement_id: str) -> Attachment | None:
        """Reload cached progress and start watching for completion.

        Must be called from a running event loop.
        """
        run = self.cache.load(requirement_id)
        if run is None:
            return None

        logger.info(
            f"Attached to cached run {run.run_id} for {requirement_id} "
            f"at step {run.current_step}"
        )
        task = asyncio.create_task(self.watcher.watch(requirement_id))
        return Attachment(run=run, watcher_task=task)

    def observe(self, requirement_id: str) -> PipelineRun | None:
        """Current run state: the Progress Store first, the local cache second."""
        return self.progress.read(requirement_id) or self.cache.load(requirement_id)

    # ========================================================================
    # Internals
    # ========================================================================

    def _claim(self, requirement_id: str, restart: bool) -> PipelineRun:
        existing = self.progress.read(requirement_id)
        lease = self.ctx.settings.orchestrator.lease_seconds

        if (
            existing is not None
            and existing.owner != self.owner
            and existing.is_processing
            and not existing.lease_expired(lease)
        ):
            raise RunConflictError(
                requirement_id,
                f"Run {existing.run_id} for {requirement_id} is held by another orchestrator",
            )

        if restart:
            logger.info(f"Restarting pipeline for {requirement_id} from scratch")
            self.ctx.research.clear_research(requirement_id)
            self.cache.clear(requirement_id)
            run = PipelineRun(requirement_id=requirement_id, owner=self.owner)
            run.version = existing.version if existing else 0

        elif existing is not None:
            run = existing
            if run.owner != self.owner:
                logger.info(f"Taking over run {run.run_id} for {requirement_id}")
                run.owner = self.owner

        else:
            run = PipelineRun(requirement_id=requirement_id, owner=self.owner)
            self.ctx.research.reset_analysis(requirement_id)
            cached = self.cache.load(requirement_id)
            if cached is not None:
                run.stages = cached.stages
                run.current_step = cached.current_step

        self._save(run)
        logger.info(
            f"Run {run.run_id} for {requirement_id} resumes at stage "
            f"{run.first_incomplete_index()}"
        )
        return run

    def _save(self, run: PipelineRun) -> None:
        self.progress.write(run, run.version)
        self.cache.save(run)

    async def _drive(self, run: PipelineRun, context: dict[str, str]) -> PipelineRun:
        requirement_id = run.requirement_id
        last_index = len(self.stages) - 1

        for index in range(run.first_incomplete_index(), len(self.stages)):
            stage = self.stages[index]
            run.mark_processing(index)
            self._refresh_counts(run, index)
            self._save(run)

            if isinstance(stage, SummarizeStage):
                result = await self._drain_summaries(run, index, context)
            else:
                result = await stage.execute(requirement_id, **context)
                self._refresh_counts(run, index)

            if not result.success:
                run.mark_failed(index, result.message)
                self._save(run)
                logger.error(
                    f"Pipeline for {requirement_id} halted at {stage.name}: {result.message}"
                )
                return run

            run.mark_completed(index, result.message)
            if index < last_index:
                self._save(run)

        self.progress.clear(requirement_id)
        self.cache.clear(requirement_id)
        logger.info(f"Pipeline for {requirement_id} completed")
        return run

    async def _drain_summaries(
        self, run: PipelineRun, index: int, context: dict[str, str]
    ) -> StageResult:
        stage = self.stages[index]
        config = self.ctx.settings.summarize
        result = StageResult(success=True, message="No pending summaries found", remaining=0)

        for batch in range(config.max_batches):
            if batch > 0:
                await self.ctx.sleep(config.batch_delay_seconds)

            result = await stage.execute(run.requirement_id, **context)
            self._refresh_counts(run, index)
            run.stages[index].message = result.message
            self._save(run)

            if not result.success or not result.remaining:
                return result

        return StageResult(
            success=False,
            message=(
                f"Summarization still had {result.remaining} items pending "
                f"after {config.max_batches} batches"
            ),
            remaining=result.remaining,
        )

    def _refresh_counts(self, run: PipelineRun, index: int) -> None:
        """Recompute current/total for the item stages from the research tables."""
        research = self.ctx.research
        requirement_id = run.requirement_id
        name = self.stages[index].name

        if name == "search":
            queries = research.list_queries(requirement_id)
            done = [q for q in queries if q.status != "pending"]
            run.set_counts(index, current=len(done), total=len(queries))
        elif name == "scrape":
            sources = research.list_sources(requirement_id)
            done = [s for s in sources if s.status in ("scraped", "error")]
            run.set_counts(index, current=len(done), total=len(sources))
        elif name == "summarize":
            contents = research.list_contents(requirement_id)
            done = [c for c in contents if c.status != "pending_summary"]
            run.set_counts(index, current=len(done), total=len(contents))

"""Completion detection for runs this process may not be driving.

The watcher polls the analysis record, not the progress entries: cached
progress only says a run was in flight when it was last seen here.
"""

import asyncio
import logging
from dataclasses import dataclass

from marketsense.services.remote.caller import SleepFn
from marketsense.storage import (
    LocalProgressCache,
    MarketAnalysisResult,
    PipelineRun,
    ProgressStore,
    ResearchStore,
)

logger = logging.getLogger(__name__)


@dataclass
class CompletionNotice:
    requirement_id: str
    analysis: MarketAnalysisResult
    run: PipelineRun | None = None


class CompletionWatcher:
    """Polls for a Completed analysis while a cached run exists."""

    def __init__(
        self,
        research: ResearchStore,
        progress: ProgressStore,
        cache: LocalProgressCache,
        poll_interval_seconds: float = 10.0,
        sleep: SleepFn | None = None,
    ):
        self.research = research
        self.progress = progress
        self.cache = cache
        self.poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep or asyncio.sleep

    def check(self, requirement_id: str) -> CompletionNotice | None:
        """One observation. On completion, marks cached stages done and clears progress."""
        analysis = self.research.get_analysis(requirement_id)
        if (
            analysis is None
            or analysis.status != "Completed"
            or not analysis.market_trends.strip()
        ):
            return None

        run = self.cache.load(requirement_id) or self.progress.read(requirement_id)
        if run is not None and analysis.updated_at < run.started_at:
            # Left over from an earlier run
            return None
        if run is not None:
            for stage in run.stages:
                stage.status = "completed"
            run.current_step = len(run.stages) - 1

        self.cache.clear(requirement_id)
        self.progress.clear(requirement_id)
        logger.info(f"Market analysis for {requirement_id} completed")
        return CompletionNotice(requirement_id=requirement_id, analysis=analysis, run=run)

    async def watch(
        self, requirement_id: str, max_polls: int | None = None
    ) -> CompletionNotice | None:
        """Poll until completion, the cache entry disappears, or ``max_polls`` runs out."""
        polls = 0
        while self.cache.exists(requirement_id):
            notice = self.check(requirement_id)
            if notice is not None:
                return notice

            polls += 1
            if max_polls is not None and polls >= max_polls:
                logger.info(f"Stopped watching {requirement_id} after {polls} polls")
                return None
            await self._sleep(self.poll_interval_seconds)

        logger.debug(f"No cached run for {requirement_id}; watcher stopped")
        return None

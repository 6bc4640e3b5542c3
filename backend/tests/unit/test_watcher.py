"""Tests for the completion watcher."""

from datetime import timedelta

import pytest

from marketsense.pipeline import CompletionWatcher
from marketsense.storage import PipelineRun
from tests.conftest import REQUIREMENT_ID


@pytest.fixture
def watcher(ctx, progress, cache, sleep):
    return CompletionWatcher(ctx.research, progress, cache, poll_interval_seconds=10.0, sleep=sleep)


def _cache_running(cache) -> PipelineRun:
    run = PipelineRun(requirement_id=REQUIREMENT_ID)
    run.mark_processing(0)
    cache.save(run)
    return run


class TestCompletionWatcher:
    def test_draft_analysis_is_not_completion(self, watcher, ctx, cache):
        _cache_running(cache)
        ctx.research.get_or_create_analysis(REQUIREMENT_ID)

        assert watcher.check(REQUIREMENT_ID) is None
        assert cache.exists(REQUIREMENT_ID)

    def test_completed_without_trends_is_not_completion(self, watcher, ctx, cache):
        _cache_running(cache)
        ctx.research.upsert_analysis(REQUIREMENT_ID, {"status": "Completed"})

        assert watcher.check(REQUIREMENT_ID) is None

    def test_completion_clears_cache_and_progress(self, watcher, ctx, cache, progress):
        run = _cache_running(cache)
        progress.write(run.model_copy(deep=True), 0)
        ctx.research.upsert_analysis(
            REQUIREMENT_ID, {"status": "Completed", "market_trends": "steady growth"}
        )

        notice = watcher.check(REQUIREMENT_ID)

        assert notice.requirement_id == REQUIREMENT_ID
        assert notice.run.is_completed
        assert not cache.exists(REQUIREMENT_ID)
        assert progress.read(REQUIREMENT_ID) is None

    def test_analysis_finished_before_run_started_is_ignored(
        self, watcher, ctx, cache, progress
    ):
        analysis = ctx.research.upsert_analysis(
            REQUIREMENT_ID, {"status": "Completed", "market_trends": "last quarter"}
        )
        run = PipelineRun(requirement_id=REQUIREMENT_ID)
        run.started_at = analysis.updated_at + timedelta(seconds=1)
        run.mark_processing(0)
        cache.save(run)
        progress.write(run.model_copy(deep=True), 0)

        assert watcher.check(REQUIREMENT_ID) is None
        assert cache.exists(REQUIREMENT_ID)
        assert progress.read(REQUIREMENT_ID).run_id == run.run_id

    @pytest.mark.asyncio
    async def test_watch_gives_up_after_max_polls(self, watcher, cache, sleep):
        _cache_running(cache)

        notice = await watcher.watch(REQUIREMENT_ID, max_polls=3)

        assert notice is None
        assert sleep.delays == [10.0, 10.0]
        assert cache.exists(REQUIREMENT_ID)

    @pytest.mark.asyncio
    async def test_watch_returns_when_analysis_completes(self, ctx, progress, cache):
        _cache_running(cache)
        polls = []

        async def complete_on_first_sleep(seconds):
            polls.append(seconds)
            ctx.research.upsert_analysis(
                REQUIREMENT_ID, {"status": "Completed", "market_trends": "finished"}
            )

        watcher = CompletionWatcher(
            ctx.research, progress, cache, poll_interval_seconds=4.0, sleep=complete_on_first_sleep
        )

        notice = await watcher.watch(REQUIREMENT_ID)

        assert polls == [4.0]
        assert notice.analysis.market_trends == "finished"
        assert not cache.exists(REQUIREMENT_ID)

    @pytest.mark.asyncio
    async def test_watch_stops_without_cached_run(self, watcher, sleep):
        assert await watcher.watch(REQUIREMENT_ID) is None
        assert sleep.delays == []

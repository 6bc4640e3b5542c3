"""Tests for batched summarization."""

import pytest

from marketsense.pipeline import SummarizeStage
from tests.conftest import REQUIREMENT_ID
from tests.helpers.fakes import seed_contents, seed_sources


class TestSummarizeStage:
    @pytest.mark.asyncio
    async def test_processes_one_batch_and_reports_remaining(self, ctx, generator, sleep):
        seed_contents(ctx.research, REQUIREMENT_ID, 10)

        result = await SummarizeStage(ctx).execute(REQUIREMENT_ID)

        assert result.success
        assert result.remaining == 7
        assert result.data == {
            "processed": 3,
            "summarized": 3,
            "errors": 0,
            "total_summarized": 3,
        }
        assert generator.count("summary") == 3
        assert sleep.delays == [3.0, 3.0]

    @pytest.mark.asyncio
    async def test_repeated_invocations_drain_to_zero(self, ctx, generator):
        seed_contents(ctx.research, REQUIREMENT_ID, 10)
        stage = SummarizeStage(ctx)

        remaining = []
        for _ in range(4):
            result = await stage.execute(REQUIREMENT_ID)
            remaining.append(result.remaining)

        assert remaining == [7, 4, 1, 0]
        assert generator.count("summary") == 10
        summarized = ctx.research.list_contents(REQUIREMENT_ID, status="summarized")
        assert len(summarized) == 10
        assert all(c.summary and c.summarized_at for c in summarized)

    @pytest.mark.asyncio
    async def test_item_failure_is_recorded_and_batch_continues(self, ctx, generator):
        contents = seed_contents(ctx.research, REQUIREMENT_ID, 3)
        generator.fail_summary_for = {contents[1].url}

        result = await SummarizeStage(ctx).execute(REQUIREMENT_ID)

        assert result.success
        assert result.data["errors"] == 1
        assert result.remaining == 0
        [errored] = ctx.research.list_contents(REQUIREMENT_ID, status="error")
        assert errored.id == contents[1].id
        assert errored.error_message == "model unavailable"

    @pytest.mark.asyncio
    async def test_batch_with_no_successes_still_succeeds(self, ctx, generator):
        contents = seed_contents(ctx.research, REQUIREMENT_ID, 4)
        generator.fail_summary_for = {c.url for c in contents[:3]}

        result = await SummarizeStage(ctx).execute(REQUIREMENT_ID)

        assert result.success
        assert result.remaining == 1
        assert result.data["summarized"] == 0
        assert result.data["errors"] == 3
        assert len(ctx.research.list_contents(REQUIREMENT_ID, status="error")) == 3
        [pending] = ctx.research.list_contents(REQUIREMENT_ID, status="pending_summary")
        assert pending.id == contents[3].id

    @pytest.mark.asyncio
    async def test_nothing_pending_succeeds_with_zero_remaining(self, ctx, generator):
        seed_contents(ctx.research, REQUIREMENT_ID, 2, status="summarized")

        result = await SummarizeStage(ctx).execute(REQUIREMENT_ID)

        assert result.success
        assert result.remaining == 0
        assert result.data["total_summarized"] == 2
        assert generator.count("summary") == 0

    @pytest.mark.asyncio
    async def test_long_content_is_truncated_before_generation(self, ctx, generator):
        ctx.settings.summarize.max_content_chars = 12
        [content] = seed_contents(ctx.research, REQUIREMENT_ID, 1)

        await SummarizeStage(ctx).execute(REQUIREMENT_ID)

        [(_, prompt)] = generator.calls
        assert content.content[:12] in prompt
        assert content.content not in prompt

    @pytest.mark.asyncio
    async def test_waits_for_scrape_to_finish(self, ctx, generator):
        seed_sources(ctx.research, REQUIREMENT_ID, ["https://example.com/unscraped"])

        result = await SummarizeStage(ctx).execute(REQUIREMENT_ID)

        assert not result.success
        assert generator.calls == []

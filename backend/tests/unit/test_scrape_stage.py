"""Tests for the batch scrape stage."""

import pytest

from marketsense.pipeline import ScrapeStage
from marketsense.pipeline.stages.scrape import has_valid_scheme
from tests.conftest import REQUIREMENT_ID
from tests.helpers.fakes import seed_sources

URLS = [
    "https://example.com/a",
    "https://example.com/b",
    "https://example.com/c",
]


def _status_by_url(ctx) -> dict[str, str]:
    return {s.url: s.status for s in ctx.research.list_sources(REQUIREMENT_ID)}


class TestScrapeStage:
    def test_scheme_check(self):
        assert has_valid_scheme("https://example.com")
        assert has_valid_scheme("http://example.com")
        assert not has_valid_scheme("ftp://example.com")
        assert not has_valid_scheme("example.com/page")

    @pytest.mark.asyncio
    async def test_scrapes_sources_into_pending_content(self, ctx, scraper):
        seed_sources(ctx.research, REQUIREMENT_ID, URLS)

        result = await ScrapeStage(ctx).execute(REQUIREMENT_ID)

        assert result.success
        assert result.data == {"scraped": 3, "errors": 0, "batches": 1}
        assert set(_status_by_url(ctx).values()) == {"scraped"}

        contents = ctx.research.list_contents(REQUIREMENT_ID)
        assert sorted(c.url for c in contents) == URLS
        assert all(c.status == "pending_summary" for c in contents)
        assert scraper.calls[0] == URLS

    @pytest.mark.asyncio
    async def test_invalid_urls_are_marked_without_submission(self, ctx, scraper):
        seed_sources(ctx.research, REQUIREMENT_ID, URLS + ["ftp://example.com/d", "not a url"])

        result = await ScrapeStage(ctx).execute(REQUIREMENT_ID)

        assert result.success
        assert scraper.submitted == URLS
        errored = ctx.research.list_sources(REQUIREMENT_ID, status="error")
        assert {s.url for s in errored} == {"ftp://example.com/d", "not a url"}
        assert all(s.error_message == "Invalid URL format" for s in errored)

    @pytest.mark.asyncio
    async def test_batch_failure_marks_every_source_error(self, ctx, scraper):
        scraper.fail = True
        seed_sources(ctx.research, REQUIREMENT_ID, URLS)

        result = await ScrapeStage(ctx).execute(REQUIREMENT_ID)

        assert not result.success
        assert set(_status_by_url(ctx).values()) == {"error"}
        assert ctx.research.list_contents(REQUIREMENT_ID) == []

    @pytest.mark.asyncio
    async def test_sources_are_chunked_by_batch_limit(self, ctx, scraper):
        ctx.settings.scrape.max_batch_urls = 2
        urls = [f"https://example.com/{i}" for i in range(5)]
        seed_sources(ctx.research, REQUIREMENT_ID, urls)

        result = await ScrapeStage(ctx).execute(REQUIREMENT_ID)

        assert result.success
        assert [len(batch) for batch in scraper.calls] == [2, 2, 1]
        assert len(ctx.research.list_contents(REQUIREMENT_ID)) == 5

    @pytest.mark.asyncio
    async def test_unsupported_urls_are_dropped_and_batch_resubmitted(self, ctx, scraper):
        scraper.unsupported = {URLS[1]}
        seed_sources(ctx.research, REQUIREMENT_ID, URLS)

        result = await ScrapeStage(ctx).execute(REQUIREMENT_ID)

        assert result.success
        assert scraper.calls == [URLS, [URLS[0], URLS[2]]]
        statuses = _status_by_url(ctx)
        assert statuses[URLS[1]] == "error"
        assert statuses[URLS[0]] == statuses[URLS[2]] == "scraped"
        assert result.data["errors"] == 1

    @pytest.mark.asyncio
    async def test_missing_page_marks_source_error(self, ctx, scraper):
        scraper.missing = {URLS[2]}
        seed_sources(ctx.research, REQUIREMENT_ID, URLS)

        await ScrapeStage(ctx).execute(REQUIREMENT_ID)

        [errored] = ctx.research.list_sources(REQUIREMENT_ID, status="error")
        assert errored.url == URLS[2]
        assert errored.error_message == "No content returned"

    @pytest.mark.asyncio
    async def test_waits_for_search_to_finish(self, ctx, scraper):
        ctx.research.add_queries(REQUIREMENT_ID, ["still pending"])

        result = await ScrapeStage(ctx).execute(REQUIREMENT_ID)

        assert not result.success
        assert scraper.calls == []

    @pytest.mark.asyncio
    async def test_nothing_to_scrape_succeeds(self, ctx, scraper):
        seed_sources(ctx.research, REQUIREMENT_ID, [])

        result = await ScrapeStage(ctx).execute(REQUIREMENT_ID)

        assert result.success
        assert scraper.calls == []

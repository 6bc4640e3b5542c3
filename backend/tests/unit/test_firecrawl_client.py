"""Tests for the Firecrawl client against a mocked HTTP transport."""

import json

import httpx
import pytest

from marketsense.services.firecrawl import (
    FirecrawlAPIError,
    FirecrawlAuthError,
    FirecrawlBatchError,
    FirecrawlClient,
    FirecrawlConfig,
    FirecrawlUnsupportedURLError,
)
from marketsense.services.remote import RemoteCaller, RemoteCallerConfig
from tests.helpers.fakes import RecordingSleep


def _client(handler, sleep: RecordingSleep, max_status_checks: int = 3) -> FirecrawlClient:
    return FirecrawlClient(
        api_key="fc-test",
        config=FirecrawlConfig(status_poll_interval_seconds=0.5, max_status_checks=max_status_checks),
        caller=RemoteCaller(RemoteCallerConfig(initial_backoff_seconds=1.0), sleep=sleep),
        sleep=sleep,
        transport=httpx.MockTransport(handler),
    )


class TestFirecrawlSearch:
    @pytest.mark.asyncio
    async def test_search_maps_results(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "data": [
                        {"title": "HR Tech Report", "url": "https://a.test/report", "description": "2025 trends"},
                        {"url": "https://b.test/blog"},
                    ],
                },
            )

        async with _client(handler, RecordingSleep()) as client:
            results = await client.search("hr tech trends", limit=2)

        assert [r.url for r in results] == ["https://a.test/report", "https://b.test/blog"]
        assert results[1].title == "No Title"
        assert results[0].description == "2025 trends"

        [request] = seen
        assert request.url.path == "/v1/search"
        assert request.headers["Authorization"] == "Bearer fc-test"
        assert json.loads(request.content) == {"query": "hr tech trends", "limit": 2}

    @pytest.mark.asyncio
    async def test_unsuccessful_payload_raises(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": "quota"})

        async with _client(handler, RecordingSleep()) as client:
            with pytest.raises(FirecrawlAPIError):
                await client.search("anything")

    @pytest.mark.asyncio
    async def test_unauthorized_raises_auth_error(self):
        def handler(request):
            return httpx.Response(401, json={"error": "Unauthorized"})

        async with _client(handler, RecordingSleep()) as client:
            with pytest.raises(FirecrawlAuthError) as exc_info:
                await client.search("anything")

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_rate_limited_search_is_retried(self):
        sleep = RecordingSleep()
        responses = [
            httpx.Response(429, text="Rate limit exceeded. Retry after 3s"),
            httpx.Response(200, json={"success": True, "data": []}),
        ]

        def handler(request):
            return responses.pop(0)

        async with _client(handler, sleep) as client:
            assert await client.search("anything") == []

        assert sleep.delays == [3.0]

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_on_enter(self):
        with pytest.raises(FirecrawlAuthError):
            async with FirecrawlClient(api_key=""):
                pass

    def test_client_outside_context_raises(self):
        with pytest.raises(RuntimeError):
            FirecrawlClient(api_key="fc-test").client


class TestFirecrawlBatchScrape:
    URLS = ["https://a.test/page", "https://b.test/Post/"]

    @pytest.mark.asyncio
    async def test_immediate_completion_maps_by_source_url(self):
        def handler(request):
            assert json.loads(request.content)["formats"] == ["markdown"]
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "status": "completed",
                    "data": [
                        {"markdown": "# B", "metadata": {"sourceURL": "https://B.test/Post"}},
                        {"markdown": "# A", "metadata": {"sourceURL": "https://a.test/page"}},
                    ],
                },
            )

        async with _client(handler, RecordingSleep()) as client:
            documents = await client.scrape(self.URLS)

        by_url = {d.url: d.markdown for d in documents}
        assert by_url == {"https://a.test/page": "# A", "https://b.test/Post/": "# B"}

    @pytest.mark.asyncio
    async def test_polls_job_until_completed(self):
        sleep = RecordingSleep()
        statuses = iter(["scraping", "completed"])

        def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json={"success": True, "id": "job-42"})
            assert request.url.path == "/v1/batch/scrape/job-42"
            status = next(statuses)
            data = [{"markdown": "# A"}, {"markdown": ""}] if status == "completed" else []
            return httpx.Response(200, json={"status": status, "data": data})

        async with _client(handler, sleep) as client:
            documents = await client.scrape(self.URLS)

        assert [(d.url, d.markdown) for d in documents] == [("https://a.test/page", "# A")]
        assert sleep.delays == [0.5]

    @pytest.mark.asyncio
    async def test_job_not_found_raises_batch_error(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json={"success": True, "id": "job-gone"})
            return httpx.Response(404, json={"error": "not found"})

        async with _client(handler, RecordingSleep()) as client:
            with pytest.raises(FirecrawlBatchError):
                await client.scrape(self.URLS)

    @pytest.mark.asyncio
    async def test_job_that_never_completes_raises(self):
        sleep = RecordingSleep()

        def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json={"success": True, "id": "job-slow"})
            return httpx.Response(200, json={"status": "scraping"})

        async with _client(handler, sleep, max_status_checks=2) as client:
            with pytest.raises(FirecrawlBatchError):
                await client.scrape(self.URLS)

        assert sleep.delays == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_unsupported_urls_are_reported_by_index(self):
        def handler(request):
            return httpx.Response(
                400,
                json={
                    "success": False,
                    "error": "Bad Request",
                    "details": [
                        {
                            "path": ["urls", 1],
                            "message": "This website is no longer supported, please reach out to help@firecrawl.com",
                        }
                    ],
                },
            )

        async with _client(handler, RecordingSleep()) as client:
            with pytest.raises(FirecrawlUnsupportedURLError) as exc_info:
                await client.scrape(self.URLS)

        assert exc_info.value.indexes == [1]

    @pytest.mark.asyncio
    async def test_other_client_errors_raise_api_error(self):
        def handler(request):
            return httpx.Response(422, json={"success": False, "error": "Invalid formats"})

        async with _client(handler, RecordingSleep()) as client:
            with pytest.raises(FirecrawlAPIError) as exc_info:
                await client.scrape(self.URLS, formats=["pdf"])

        assert not isinstance(exc_info.value, FirecrawlUnsupportedURLError)
        assert exc_info.value.status_code == 422

"""Async Firecrawl client for web search and batch scraping."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from marketsense.services.remote import RemoteCaller
from marketsense.services.remote.caller import SleepFn

from .config import FirecrawlConfig
from .exceptions import (
    FirecrawlAPIError,
    FirecrawlAuthError,
    FirecrawlBatchError,
    FirecrawlUnsupportedURLError,
)
from .models import ScrapedDocument, SearchResult

logger = logging.getLogger(__name__)

_UNSUPPORTED_MARKER = "website is no longer supported"


def _normalize_url(url: str) -> str:
    return url.strip().rstrip("/").lower()


class FirecrawlClient:
    """Firecrawl search + batch scrape, routed through the rate-limited caller."""

    def __init__(
        self,
        api_key: str,
        config: FirecrawlConfig | None = None,
        caller: RemoteCaller | None = None,
        sleep: SleepFn | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.config = config or FirecrawlConfig()
        self.caller = caller or RemoteCaller()
        self._sleep = sleep or asyncio.sleep
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        logger.info("Initialized FirecrawlClient")

    async def __aenter__(self) -> FirecrawlClient:
        if not self.api_key:
            raise FirecrawlAuthError("Firecrawl API key is missing")
        limits = httpx.Limits(
            max_connections=self.config.max_connections,
            max_keepalive_connections=self.config.max_keepalive_connections,
        )
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout_seconds,
            limits=limits,
            headers={"Authorization": f"Bearer {self.api_key}"},
            transport=self._transport,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any,
    ) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Closed FirecrawlClient")

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("FirecrawlClient must be used as async context manager")
        return self._client

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.status_code in (401, 403):
            raise FirecrawlAuthError(
                f"{operation}: authentication failed", status_code=response.status_code
            )
        if response.status_code >= 400:
            raise FirecrawlAPIError(
                f"{operation} failed with status {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )

    async def search(self, query: str, limit: int = 5) -> list[SearchResult]:
        """Search the web and return up to ``limit`` hits."""
        response = await self.caller.call(
            self.client, "POST", "search", {"query": query, "limit": limit}
        )
        self._raise_for_status(response, "search")

        payload = response.json()
        if not payload.get("success") or not isinstance(payload.get("data"), list):
            raise FirecrawlAPIError(f"Invalid search response for query: {query[:80]}")

        results = [
            SearchResult(
                title=item.get("title") or "No Title",
                url=item.get("url") or "",
                description=item.get("description"),
            )
            for item in payload["data"][:limit]
            if isinstance(item, dict)
        ]
        logger.debug(f"Search returned {len(results)} results for '{query[:60]}'")
        return results

    async def scrape(
        self, urls: list[str], formats: list[str] | None = None
    ) -> list[ScrapedDocument]:
        """Batch scrape ``urls`` and return documents keyed by the requested URL.

        Raises:
            FirecrawlUnsupportedURLError: the provider rejected specific URLs;
                ``indexes`` points into ``urls``.
            FirecrawlBatchError: the job failed or never completed.
        """
        response = await self.caller.call(
            self.client,
            "POST",
            "batch/scrape",
            {"urls": urls, "formats": formats or ["markdown"]},
        )

        if response.status_code >= 400:
            unsupported = self._unsupported_indexes(response)
            if unsupported:
                raise FirecrawlUnsupportedURLError(
                    f"{len(unsupported)} URLs are not supported by the scraper",
                    indexes=unsupported,
                    status_code=response.status_code,
                )
            self._raise_for_status(response, "batch scrape")

        payload = response.json()
        job_id = payload.get("id") or payload.get("jobId")

        if payload.get("status") == "completed" and isinstance(payload.get("data"), list):
            result = payload
        elif job_id:
            result = await self._wait_for_batch(job_id)
        else:
            raise FirecrawlBatchError("Invalid or incomplete response from batch scrape")

        return self._map_documents(urls, result["data"])

    async def _wait_for_batch(self, job_id: str) -> dict[str, Any]:
        """Poll a batch job until it completes."""
        for check in range(self.config.max_status_checks):
            response = await self.caller.call(self.client, "GET", f"batch/scrape/{job_id}")

            if response.status_code in (400, 404):
                raise FirecrawlBatchError(
                    f"Batch scrape {job_id} failed with status {response.status_code}",
                    status_code=response.status_code,
                )

            if response.status_code < 400:
                payload = response.json()
                status = payload.get("status")
                if status == "completed" and isinstance(payload.get("data"), list):
                    logger.info(f"Batch scrape {job_id} completed after {check + 1} checks")
                    return payload
                if status == "failed":
                    raise FirecrawlBatchError(f"Batch scrape {job_id} failed")
            else:
                logger.warning(
                    f"Batch status check for {job_id} returned {response.status_code}"
                )

            await self._sleep(self.config.status_poll_interval_seconds)

        raise FirecrawlBatchError(
            f"Batch job {job_id} did not complete after {self.config.max_status_checks} checks"
        )

    @staticmethod
    def _unsupported_indexes(response: httpx.Response) -> list[int]:
        try:
            details = response.json().get("details")
        except ValueError:
            return []
        if not isinstance(details, list):
            return []

        indexes = []
        for detail in details:
            if not isinstance(detail, dict):
                continue
            if _UNSUPPORTED_MARKER not in str(detail.get("message", "")):
                continue
            path = detail.get("path") or []
            if len(path) > 1 and isinstance(path[1], int):
                indexes.append(path[1])
        return sorted(set(indexes))

    @staticmethod
    def _map_documents(urls: list[str], items: list[Any]) -> list[ScrapedDocument]:
        """Match returned items to requested URLs by source URL, falling back to position."""
        by_normalized = {_normalize_url(url): url for url in urls}
        documents: dict[str, str] = {}

        for index, item in enumerate(items):
            if not isinstance(item, dict):
                continue
            markdown = item.get("markdown") or ""
            source_url = (item.get("metadata") or {}).get("sourceURL")

            if source_url:
                url = by_normalized.get(_normalize_url(source_url), source_url)
            elif markdown and index < len(urls):
                url = urls[index]
            else:
                logger.warning(f"No usable content for batch item at index {index}")
                continue

            if markdown:
                documents[url] = markdown

        return [ScrapedDocument(url=url, markdown=md) for url, md in documents.items()]

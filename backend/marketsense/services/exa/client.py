"""Async wrapper for Exa AI SDK search, routed through the rate-limited caller."""

import asyncio
import logging
from typing import Any

from exa_py import Exa

from marketsense.services.remote import RemoteCaller

from .config import ExaConfig
from .exceptions import ExaAPIError, ExaAuthError, ExaBadRequestError
from .models import ExaSearchResult

logger = logging.getLogger(__name__)


class ExaClient:
    """Async wrapper for the synchronous Exa SDK.

    SDK calls run in a worker thread. Rate limits (429) are retried by the
    shared ``RemoteCaller``; auth and bad-request failures are raised at once.
    """

    def __init__(
        self,
        api_key: str,
        config: ExaConfig | None = None,
        caller: RemoteCaller | None = None,
        sdk: Any = None,
    ):
        self.api_key = api_key
        self.config = config or ExaConfig()
        self.caller = caller or RemoteCaller()
        self._sdk = sdk
        self._client: Any = None
        logger.info("Initialized ExaClient")

    async def __aenter__(self) -> "ExaClient":
        """Context manager entry - create Exa client."""
        if self._sdk is not None:
            self._client = self._sdk
        else:
            if not self.api_key:
                raise ExaAuthError("Exa API key is missing")
            self._client = Exa(api_key=self.api_key)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - cleanup."""
        self._client = None
        logger.info("Closed ExaClient")

    @property
    def client(self) -> Any:
        """Get Exa client, raising if not in context."""
        if self._client is None:
            raise RuntimeError("ExaClient must be used as async context manager")
        return self._client

    async def search(self, query: str, limit: int = 5) -> list[ExaSearchResult]:
        """Search the web for ``query``.

        Args:
            query: Search query text
            limit: Maximum number of hits to return
        """

        async def _search():
            try:
                return await asyncio.to_thread(
                    self.client.search,
                    query,
                    num_results=limit,
                    type=self.config.search_type,
                    use_autoprompt=self.config.use_autoprompt,
                )
            except Exception as e:
                error_msg = str(e).lower()
                if "401" in error_msg or "unauthorized" in error_msg:
                    raise ExaAuthError("Authentication failed", status_code=401) from e
                if "400" in error_msg or "bad request" in error_msg:
                    raise ExaBadRequestError(f"Invalid request: {e}", status_code=400) from e
                raise

        response = await self.caller.run("exa search", _search)

        results = getattr(response, "results", None)
        if results is None:
            raise ExaAPIError(f"Invalid search response for query: {query[:80]}")

        return [
            ExaSearchResult(
                title=getattr(r, "title", None) or "No Title",
                url=r.url,
                description=getattr(r, "summary", None) or getattr(r, "text", None),
            )
            for r in results[:limit]
        ]

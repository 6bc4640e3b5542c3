"""Rate-limited remote caller with exponential backoff.

Wraps outbound calls to third-party APIs. HTTP 429 responses and network
failures are retried; the wait doubles after every retry and a server hint of
the form ``retry after {n}s`` (in the body) or a numeric ``Retry-After``
header takes precedence over the current backoff interval.

The caller holds no per-call state, so one instance can be shared by
concurrent operations.
"""

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, TypeVar

import httpx

from .config import RemoteCallerConfig
from .exceptions import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]

_RETRY_AFTER_PATTERN = re.compile(r"retry after (\d+(?:\.\d+)?)\s*s", re.IGNORECASE)
_NETWORK_ERRORS = (httpx.TransportError, ConnectionError, TimeoutError)


def parse_retry_after(text: str | None) -> float | None:
    """Extract the ``retry after {n}s`` hint from an error body."""
    if not text:
        return None
    match = _RETRY_AFTER_PATTERN.search(text)
    if match:
        return float(match.group(1))
    return None


def _response_retry_after(response: httpx.Response) -> float | None:
    try:
        body = response.text
    except httpx.ResponseNotRead:
        body = ""
    hint = parse_retry_after(body)
    if hint is not None:
        return hint

    header = response.headers.get("retry-after")
    if header and header.strip().isdigit():
        return float(header.strip())
    return None


def _is_rate_limit_error(exc: Exception) -> bool:
    """Rate limits raised as exceptions by SDKs (pydantic-ai, exa_py)."""
    if getattr(exc, "status_code", None) == 429:
        return True
    message = str(exc).lower()
    return "429" in message or "rate limit" in message


class RemoteCaller:
    """Retry wrapper for rate-limited third-party calls."""

    def __init__(
        self,
        config: RemoteCallerConfig | None = None,
        sleep: SleepFn | None = None,
    ):
        self.config = config or RemoteCallerConfig()
        self._sleep = sleep or asyncio.sleep

    async def call(
        self,
        client: httpx.AsyncClient,
        method: str,
        endpoint: str,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Issue an HTTP request, retrying on 429 and network failure.

        Non-429 responses are returned as-is; callers decide what an error
        status means for them.
        """

        async def _request() -> httpx.Response:
            return await client.request(method, endpoint, json=payload, params=params)

        return await self.run(f"{method} {endpoint}", _request)

    async def run(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` until it succeeds or the retry ceiling is hit.

        Raises:
            RetryExhaustedError: after ``max_retries`` retries, carrying the
                retry count and the last observed cause.
        """
        retries = 0
        backoff = self.config.initial_backoff_seconds

        while True:
            status_code: int | None = None
            try:
                result = await fn()

            except _NETWORK_ERRORS as e:
                last_cause = f"network error: {e}"
                wait_time = backoff

            except Exception as e:
                if not _is_rate_limit_error(e):
                    raise
                status_code = 429
                last_cause = f"rate limited: {e}"
                hint = parse_retry_after(str(e))
                wait_time = hint if hint is not None else backoff

            else:
                if not (isinstance(result, httpx.Response) and result.status_code == 429):
                    return result
                status_code = 429
                hint = _response_retry_after(result)
                last_cause = "rate limited (HTTP 429)"
                wait_time = hint if hint is not None else backoff

            if retries >= self.config.max_retries:
                logger.error(f"{operation}: maximum retries ({retries}) reached, giving up")
                raise RetryExhaustedError(
                    operation, retries, last_cause, status_code=status_code
                )

            logger.warning(
                f"{operation}: {last_cause}; waiting {wait_time:g}s "
                f"(retry {retries + 1}/{self.config.max_retries})"
            )
            await self._sleep(wait_time)
            retries += 1
            backoff *= 2

"""Firecrawl service integration."""

from .client import FirecrawlClient
from .config import FirecrawlConfig
from .exceptions import (
    FirecrawlAPIError,
    FirecrawlAuthError,
    FirecrawlBatchError,
    FirecrawlUnsupportedURLError,
)
from .models import ScrapedDocument, SearchResult

__all__ = [
    "FirecrawlClient",
    "FirecrawlConfig",
    "FirecrawlAPIError",
    "FirecrawlAuthError",
    "FirecrawlBatchError",
    "FirecrawlUnsupportedURLError",
    "ScrapedDocument",
    "SearchResult",
]

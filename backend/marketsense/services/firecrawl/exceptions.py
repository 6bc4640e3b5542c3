"""Custom exceptions for Firecrawl API errors."""


class FirecrawlAPIError(Exception):
    """Base exception for Firecrawl API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FirecrawlAuthError(FirecrawlAPIError):
    """Authentication failed (401/403)."""

    pass


class FirecrawlBatchError(FirecrawlAPIError):
    """Batch scrape job failed, timed out, or returned an unusable payload."""

    pass


class FirecrawlUnsupportedURLError(FirecrawlAPIError):
    """Some submitted URLs point at websites the provider refuses to scrape."""

    def __init__(self, message: str, indexes: list[int], status_code: int | None = None):
        super().__init__(message, status_code=status_code)
        self.indexes = indexes

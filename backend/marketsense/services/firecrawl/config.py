"""Configuration for the Firecrawl API client."""

from pydantic import BaseModel


class FirecrawlConfig(BaseModel):
    """Configuration for Firecrawl API client."""

    base_url: str = "https://api.firecrawl.dev/v1"
    timeout_seconds: float = 60.0
    max_connections: int = 20
    max_keepalive_connections: int = 10

    # Batch scrape job polling
    status_poll_interval_seconds: float = 5.0
    max_status_checks: int = 25

"""Configuration for the rate-limited remote caller."""

from pydantic import BaseModel


class RemoteCallerConfig(BaseModel):
    """Backoff policy for rate-limited calls."""

    initial_backoff_seconds: float = 2.0
    max_retries: int = 3

"""Rate-limited remote caller shared by every third-party integration."""

from .caller import RemoteCaller, parse_retry_after
from .config import RemoteCallerConfig
from .exceptions import RemoteCallError, RetryExhaustedError

__all__ = [
    "RemoteCaller",
    "parse_retry_after",
    "RemoteCallerConfig",
    "RemoteCallError",
    "RetryExhaustedError",
]

"""HTTP API for MarketSense."""

from .server import app

__all__ = ["app"]

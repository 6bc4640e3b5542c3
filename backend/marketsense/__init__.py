"""MarketSense: staged market research pipeline for product requirements."""

__version__ = "0.1.0"
__author__ = "MarketSense Team"

__all__ = ["__version__", "__author__"]

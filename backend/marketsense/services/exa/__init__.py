"""Exa AI service integration."""

from .client import ExaClient
from .config import ExaConfig
from .exceptions import ExaAPIError, ExaAuthError, ExaBadRequestError
from .models import ExaSearchResult

__all__ = [
    "ExaClient",
    "ExaConfig",
    "ExaAPIError",
    "ExaAuthError",
    "ExaBadRequestError",
    "ExaSearchResult",
]

"""Type-safe Pydantic models for Exa AI SDK responses."""

from pydantic import BaseModel


class ExaSearchResult(BaseModel):
    """Single web search hit."""

    title: str = "No Title"
    url: str
    description: str | None = None

"""Type-safe Pydantic models for Firecrawl API responses."""

from pydantic import BaseModel


class SearchResult(BaseModel):
    """One web search hit."""

    title: str = "No Title"
    url: str = ""
    description: str | None = None


class ScrapedDocument(BaseModel):
    """Extracted page content, keyed by the URL it was requested with."""

    url: str
    markdown: str

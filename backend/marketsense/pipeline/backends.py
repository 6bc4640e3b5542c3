"""Structural contracts for the remote collaborators the stages call."""

from typing import Protocol, Sequence


class SearchHit(Protocol):
    title: str
    url: str
    description: str | None


class ScrapedPage(Protocol):
    url: str
    markdown: str


class SearchBackend(Protocol):
    async def search(self, query: str, limit: int) -> Sequence[SearchHit]: ...


class ScrapeBackend(Protocol):
    async def scrape(self, urls: list[str], formats: list[str]) -> Sequence[ScrapedPage]: ...


class GenerationBackend(Protocol):
    async def generate(self, purpose: str, prompt: str) -> str: ...

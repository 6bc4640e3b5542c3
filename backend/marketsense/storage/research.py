"""Per-requirement research tables stored as JSON under data/research/{requirement_id}/.

Each table (queries, sources, scraped, analysis) is one JSON file that is
rewritten atomically on every change. Reads filter by equality on status, the
only query shape the stages need.
"""

import logging
from pathlib import Path
from typing import Iterable, TypeVar

from pydantic import BaseModel

from .files import (
    generate_analysis_id,
    generate_query_id,
    read_json,
    write_json_atomic,
)
from .records import (
    MarketAnalysisResult,
    Query,
    ResearchSource,
    ScrapedContent,
    utcnow,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

_QUERIES = "queries"
_SOURCES = "sources"
_SCRAPED = "scraped"
_ANALYSIS = "analysis"


class ResearchStore:
    """Row store for queries, sources, scraped content and the final analysis."""

    def __init__(self, data_dir: Path):
        self.root = data_dir / "research"

    # ========================================================================
    # Helpers
    # ========================================================================

    def _table_path(self, requirement_id: str, table: str) -> Path:
        return self.root / requirement_id / f"{table}.json"

    def _load(self, requirement_id: str, table: str, model: type[RecordT]) -> list[RecordT]:
        rows = read_json(self._table_path(requirement_id, table), default=[])
        return [model(**row) for row in rows]

    def _save(self, requirement_id: str, table: str, rows: Iterable[BaseModel]) -> None:
        write_json_atomic(
            self._table_path(requirement_id, table),
            [row.model_dump(mode="json") for row in rows],
        )

    def _update(
        self,
        requirement_id: str,
        table: str,
        model: type[RecordT],
        updated: Iterable[RecordT],
    ) -> None:
        changes = {row.id: row for row in updated}
        if not changes:
            return
        rows = self._load(requirement_id, table, model)
        merged = [changes.pop(row.id, row) for row in rows]
        if changes:
            raise KeyError(f"Unknown {table} rows: {sorted(changes)}")
        self._save(requirement_id, table, merged)

    @staticmethod
    def _filter(rows: list[RecordT], status: str | Iterable[str] | None) -> list[RecordT]:
        if status is None:
            return rows
        wanted = {status} if isinstance(status, str) else set(status)
        return [row for row in rows if row.status in wanted]

    # ========================================================================
    # Queries
    # ========================================================================

    def list_queries(
        self, requirement_id: str, status: str | Iterable[str] | None = None
    ) -> list[Query]:
        return self._filter(self._load(requirement_id, _QUERIES, Query), status)

    def add_queries(self, requirement_id: str, texts: list[str]) -> list[Query]:
        existing = self._load(requirement_id, _QUERIES, Query)
        new = [
            Query(id=generate_query_id(), requirement_id=requirement_id, query_text=text)
            for text in texts
        ]
        self._save(requirement_id, _QUERIES, existing + new)
        logger.info(f"Stored {len(new)} queries for {requirement_id}")
        return new

    def update_queries(self, requirement_id: str, queries: Iterable[Query]) -> None:
        self._update(requirement_id, _QUERIES, Query, queries)

    # ========================================================================
    # Sources
    # ========================================================================

    def list_sources(
        self, requirement_id: str, status: str | Iterable[str] | None = None
    ) -> list[ResearchSource]:
        return self._filter(self._load(requirement_id, _SOURCES, ResearchSource), status)

    def add_sources(self, requirement_id: str, sources: list[ResearchSource]) -> None:
        existing = self._load(requirement_id, _SOURCES, ResearchSource)
        self._save(requirement_id, _SOURCES, existing + sources)

    def update_sources(self, requirement_id: str, sources: Iterable[ResearchSource]) -> None:
        self._update(requirement_id, _SOURCES, ResearchSource, sources)

    # ========================================================================
    # Scraped content
    # ========================================================================

    def list_contents(
        self, requirement_id: str, status: str | Iterable[str] | None = None
    ) -> list[ScrapedContent]:
        return self._filter(self._load(requirement_id, _SCRAPED, ScrapedContent), status)

    def add_contents(self, requirement_id: str, contents: list[ScrapedContent]) -> None:
        existing = self._load(requirement_id, _SCRAPED, ScrapedContent)
        self._save(requirement_id, _SCRAPED, existing + contents)

    def update_contents(
        self, requirement_id: str, contents: Iterable[ScrapedContent]
    ) -> None:
        self._update(requirement_id, _SCRAPED, ScrapedContent, contents)

    # ========================================================================
    # Market analysis
    # ========================================================================

    def _analysis_path(self, requirement_id: str) -> Path:
        return self._table_path(requirement_id, _ANALYSIS)

    def get_analysis(self, requirement_id: str) -> MarketAnalysisResult | None:
        raw = read_json(self._analysis_path(requirement_id))
        if not raw:
            return None
        return MarketAnalysisResult(**raw)

    def get_or_create_analysis(self, requirement_id: str) -> MarketAnalysisResult:
        """Return the analysis, creating an empty Draft on first access."""
        analysis = self.get_analysis(requirement_id)
        if analysis is not None:
            return analysis

        analysis = MarketAnalysisResult(
            id=generate_analysis_id(), requirement_id=requirement_id
        )
        self.save_analysis(analysis)
        logger.info(f"Created draft market analysis for {requirement_id}")
        return analysis

    def save_analysis(self, analysis: MarketAnalysisResult) -> None:
        write_json_atomic(
            self._analysis_path(analysis.requirement_id), analysis.model_dump(mode="json")
        )

    def upsert_analysis(self, requirement_id: str, fields: dict) -> MarketAnalysisResult:
        """Insert or update the analysis keyed by requirement, keeping its record id."""
        existing = self.get_analysis(requirement_id)
        if existing is None:
            base = {"id": generate_analysis_id(), "created_at": utcnow()}
        else:
            base = existing.model_dump(exclude={"requirement_id", "updated_at"})

        analysis = MarketAnalysisResult(
            **{**base, **fields, "requirement_id": requirement_id, "updated_at": utcnow()}
        )
        self.save_analysis(analysis)
        return analysis

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def clear_research(self, requirement_id: str) -> None:
        """Drop queries, sources and scraped content; reset the analysis to Draft."""
        for table in (_QUERIES, _SOURCES, _SCRAPED):
            self._table_path(requirement_id, table).unlink(missing_ok=True)

        self.reset_analysis(requirement_id)
        logger.info(f"Cleared research tables for {requirement_id}")

    def reset_analysis(self, requirement_id: str) -> None:
        """Put a finished analysis back to Draft so a new run's completion is observable."""
        analysis = self.get_analysis(requirement_id)
        if analysis is not None and analysis.status != "Draft":
            analysis.status = "Draft"
            analysis.updated_at = utcnow()
            self.save_analysis(analysis)

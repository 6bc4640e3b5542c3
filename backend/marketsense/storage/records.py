"""Record models for requirements and research tables."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from .files import generate_requirement_id, read_yaml, write_yaml_atomic

logger = logging.getLogger(__name__)

QueryStatus = Literal["pending", "searched", "error"]
SourceStatus = Literal["found", "pending_scrape", "scraped", "error"]
ContentStatus = Literal["pending_summary", "summarized", "error"]
AnalysisStatus = Literal["Draft", "Completed"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RequirementNotFoundError(Exception):
    """No requirement record exists for the given ID."""

    def __init__(self, requirement_id: str):
        super().__init__(f"Requirement not found: {requirement_id}")
        self.requirement_id = requirement_id


# ============================================================================
# Pydantic Models
# ============================================================================


class Requirement(BaseModel):
    """Product requirement that market research runs against. Read-only to the pipeline."""

    id: str = Field(default_factory=generate_requirement_id)
    project_name: str = ""
    company_name: str = ""
    industry_type: str = ""
    problem_statement: str = ""
    proposed_solution: str = ""
    key_features: str = ""
    target_audience: str = ""
    created_at: datetime = Field(default_factory=utcnow)


class Query(BaseModel):
    """Generated search query."""

    id: str
    requirement_id: str
    query_text: str
    status: QueryStatus = "pending"
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class ResearchSource(BaseModel):
    """Candidate source discovered by a search query."""

    id: str
    requirement_id: str
    query_id: str
    title: str = "No Title"
    url: str
    snippet: str = ""
    status: SourceStatus = "found"
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class ScrapedContent(BaseModel):
    """Extracted page text for a source, later compressed into ``summary``."""

    id: str
    requirement_id: str
    source_id: str
    url: str
    content: str
    summary: str | None = None
    status: ContentStatus = "pending_summary"
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    summarized_at: datetime | None = None


class MarketAnalysisResult(BaseModel):
    """Synthesized market analysis for one requirement."""

    id: str
    requirement_id: str
    status: AnalysisStatus = "Draft"
    market_trends: str = ""
    demand_insights: str = ""
    top_competitors: str = ""
    market_gap_opportunity: str = ""
    swot_analysis: str = ""
    industry_benchmarks: str = ""
    confidence_score: int | None = None
    research_sources: list[str] = Field(default_factory=list)
    used_fallback: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator(
        "market_trends",
        "demand_insights",
        "top_competitors",
        "market_gap_opportunity",
        "swot_analysis",
        "industry_benchmarks",
        mode="before",
    )
    @classmethod
    def flatten_text(cls, v: Any) -> str:
        """Models sometimes return lists or objects where prose was asked for."""
        if v is None:
            return ""
        if isinstance(v, list):
            return "\n".join(f"- {item}" for item in v)
        if isinstance(v, dict):
            return json.dumps(v, ensure_ascii=False)
        return str(v)

    @field_validator("confidence_score", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> int | None:
        if v is None or v == "":
            return None
        return max(0, min(100, int(float(v))))


# ============================================================================
# Requirement storage
# ============================================================================


class RequirementStore:
    """Requirements as YAML files in data/requirements/{id}.yaml."""

    def __init__(self, data_dir: Path):
        self.root = data_dir / "requirements"

    def _path(self, requirement_id: str) -> Path:
        return self.root / f"{requirement_id}.yaml"

    def save(self, requirement: Requirement) -> Path:
        path = self._path(requirement.id)
        write_yaml_atomic(path, requirement.model_dump(mode="json"))
        logger.info(f"Saved requirement {requirement.id} to {path}")
        return path

    def get(self, requirement_id: str) -> Requirement:
        raw = read_yaml(self._path(requirement_id))
        if not raw:
            raise RequirementNotFoundError(requirement_id)
        return Requirement(**raw)

    def exists(self, requirement_id: str) -> bool:
        return self._path(requirement_id).exists()

    def list_ids(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(p.stem for p in self.root.glob("*.yaml"))

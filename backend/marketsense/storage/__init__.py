"""Storage layer for MarketSense - file-based persistence.

This package provides:
- Requirement records (data/requirements/{id}.yaml)
- Research tables per requirement (queries, sources, scraped content, analysis)
- Progress Store (data/progress/{id}.yaml) with versioned writes
- Local Progress Cache (client-side display mirror)

All operations use Pydantic models for type safety and atomic writes to prevent corruption.
"""

from .cache import LocalProgressCache
from .files import (
    generate_requirement_id,
    generate_run_id,
    get_data_dir,
)
from .progress import (
    STAGE_LABELS,
    STAGE_NAMES,
    PipelineRun,
    ProgressStore,
    RunConflictError,
    StageProgress,
)
from .records import (
    MarketAnalysisResult,
    Query,
    Requirement,
    RequirementNotFoundError,
    RequirementStore,
    ResearchSource,
    ScrapedContent,
)
from .research import ResearchStore

__all__ = [
    # Files
    "get_data_dir",
    "generate_requirement_id",
    "generate_run_id",
    # Records
    "Requirement",
    "RequirementStore",
    "RequirementNotFoundError",
    "Query",
    "ResearchSource",
    "ScrapedContent",
    "MarketAnalysisResult",
    "ResearchStore",
    # Progress
    "STAGE_NAMES",
    "STAGE_LABELS",
    "StageProgress",
    "PipelineRun",
    "ProgressStore",
    "RunConflictError",
    "LocalProgressCache",
]

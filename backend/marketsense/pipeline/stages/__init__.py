"""The five pipeline stages, in execution order."""

from .base import Stage, StageResult
from .queries import QUERY_COUNT, GenerateQueriesStage, normalize_queries
from .scrape import ScrapeStage
from .search import SearchStage
from .summarize import SummarizeStage
from .synthesize import SynthesizeStage

STAGE_CLASSES: list[type[Stage]] = [
    GenerateQueriesStage,
    SearchStage,
    ScrapeStage,
    SummarizeStage,
    SynthesizeStage,
]

__all__ = [
    "Stage",
    "StageResult",
    "QUERY_COUNT",
    "normalize_queries",
    "GenerateQueriesStage",
    "SearchStage",
    "ScrapeStage",
    "SummarizeStage",
    "SynthesizeStage",
    "STAGE_CLASSES",
]

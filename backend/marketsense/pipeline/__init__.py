"""Market research pipeline: stages, orchestration and completion watching."""

from .context import StageContext, open_stage_context
from .exceptions import PipelineError, StageExecutionError, StagePreconditionError
from .orchestrator import Attachment, PipelineOrchestrator
from .stages import (
    STAGE_CLASSES,
    GenerateQueriesStage,
    ScrapeStage,
    SearchStage,
    Stage,
    StageResult,
    SummarizeStage,
    SynthesizeStage,
)
from .watcher import CompletionNotice, CompletionWatcher

__all__ = [
    "StageContext",
    "open_stage_context",
    "PipelineError",
    "StageExecutionError",
    "StagePreconditionError",
    "PipelineOrchestrator",
    "Attachment",
    "CompletionWatcher",
    "CompletionNotice",
    "Stage",
    "StageResult",
    "STAGE_CLASSES",
    "GenerateQueriesStage",
    "SearchStage",
    "ScrapeStage",
    "SummarizeStage",
    "SynthesizeStage",
]

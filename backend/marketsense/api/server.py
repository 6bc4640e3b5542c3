"""FastAPI trigger surface for the MarketSense pipeline."""

import logging
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from marketsense import __version__
from marketsense.config import Settings, get_settings
from marketsense.pipeline import (
    GenerateQueriesStage,
    PipelineOrchestrator,
    ScrapeStage,
    SearchStage,
    Stage,
    StageContext,
    SummarizeStage,
    SynthesizeStage,
    open_stage_context,
)
from marketsense.storage import (
    LocalProgressCache,
    ProgressStore,
    Requirement,
    RequirementStore,
    ResearchStore,
    RunConflictError,
)

logger = logging.getLogger(__name__)

ContextFactory = Callable[[Settings], AbstractAsyncContextManager[StageContext]]

FUNCTION_STAGES: dict[str, type[Stage]] = {
    "generate-market-queries": GenerateQueriesStage,
    "process-market-queries": SearchStage,
    "scrape-research-urls": ScrapeStage,
    "summarize-research-content": SummarizeStage,
    "analyze-market": SynthesizeStage,
}

app = FastAPI(title="MarketSense API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Requirements with a pipeline task scheduled or running in this process
_running: set[str] = set()


# ============================================================================
# Request models
# ============================================================================


class FunctionRequest(BaseModel):
    """Stage invocation body: ``{requirementId, ...contextFields}``."""

    model_config = ConfigDict(populate_by_name=True)

    requirement_id: str = Field(alias="requirementId")
    project_name: str | None = Field(default=None, alias="projectName")
    company_name: str | None = Field(default=None, alias="companyName")
    industry_type: str | None = Field(default=None, alias="industryType")
    problem_statement: str | None = Field(default=None, alias="problemStatement")
    proposed_solution: str | None = Field(default=None, alias="proposedSolution")
    key_features: str | None = Field(default=None, alias="keyFeatures")
    target_audience: str | None = Field(default=None, alias="targetAudience")

    def context(self) -> dict[str, str]:
        return self.model_dump(exclude={"requirement_id"}, exclude_none=True)


class RequirementCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    project_name: str = Field(default="", alias="projectName")
    company_name: str = Field(default="", alias="companyName")
    industry_type: str = Field(default="", alias="industryType")
    problem_statement: str = Field(default="", alias="problemStatement")
    proposed_solution: str = Field(default="", alias="proposedSolution")
    key_features: str = Field(default="", alias="keyFeatures")
    target_audience: str = Field(default="", alias="targetAudience")


# ============================================================================
# Dependencies
# ============================================================================


def get_app_settings() -> Settings:
    return get_settings()


def get_context_factory() -> ContextFactory:
    return open_stage_context


def _require(settings: Settings, requirement_id: str) -> None:
    if not RequirementStore(settings.data_dir).exists(requirement_id):
        raise HTTPException(status_code=404, detail=f"Requirement not found: {requirement_id}")


async def _run_pipeline(
    settings: Settings, factory: ContextFactory, requirement_id: str, restart: bool
) -> None:
    try:
        async with factory(settings) as ctx:
            orchestrator = PipelineOrchestrator(
                ctx,
                ProgressStore(settings.data_dir),
                LocalProgressCache(settings.resolved_cache_dir),
            )
            run = await orchestrator.start(requirement_id, restart=restart)
            failed = run.failed_stage
            if failed is not None:
                logger.error(f"Pipeline for {requirement_id} failed at {failed.name}")
    except RunConflictError as e:
        logger.warning(f"Pipeline for {requirement_id} not run: {e}")
    finally:
        _running.discard(requirement_id)


# ============================================================================
# Routes
# ============================================================================


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


@app.post("/functions/{function_name}")
async def invoke_function(
    function_name: str,
    body: FunctionRequest,
    settings: Settings = Depends(get_app_settings),
    factory: ContextFactory = Depends(get_context_factory),
):
    """Run a single stage and report ``{success, message, remaining?, data?}``."""
    stage_cls = FUNCTION_STAGES.get(function_name)
    if stage_cls is None:
        raise HTTPException(status_code=404, detail=f"Unknown function: {function_name}")

    async with factory(settings) as ctx:
        result = await stage_cls(ctx).execute(body.requirement_id, **body.context())

    return JSONResponse(
        status_code=200 if result.success else 500,
        content=result.to_response(),
    )


@app.post("/requirements", status_code=201)
async def create_requirement(
    body: RequirementCreate, settings: Settings = Depends(get_app_settings)
):
    fields = body.model_dump(exclude_none=True)
    requirement = Requirement(**fields)
    RequirementStore(settings.data_dir).save(requirement)
    return requirement.model_dump(mode="json")


@app.post("/requirements/{requirement_id}/market-analysis", status_code=202)
async def start_market_analysis(
    requirement_id: str,
    background_tasks: BackgroundTasks,
    restart: bool = False,
    settings: Settings = Depends(get_app_settings),
    factory: ContextFactory = Depends(get_context_factory),
):
    """Start (or resume) the pipeline in the background."""
    _require(settings, requirement_id)

    existing = ProgressStore(settings.data_dir).read(requirement_id)
    live = (
        existing is not None
        and existing.is_processing
        and not existing.lease_expired(settings.orchestrator.lease_seconds)
    )
    if requirement_id in _running or live:
        raise HTTPException(
            status_code=409,
            detail=f"Market analysis for {requirement_id} is already in progress",
        )

    _running.add(requirement_id)
    background_tasks.add_task(_run_pipeline, settings, factory, requirement_id, restart)
    return {"success": True, "message": "Market analysis started", "requirementId": requirement_id}


@app.get("/requirements/{requirement_id}/market-analysis")
async def get_market_analysis(
    requirement_id: str, settings: Settings = Depends(get_app_settings)
) -> dict[str, Any]:
    """Return the analysis, creating a Draft on first access."""
    _require(settings, requirement_id)
    analysis = ResearchStore(settings.data_dir).get_or_create_analysis(requirement_id)
    return analysis.model_dump(mode="json")


@app.get("/requirements/{requirement_id}/progress")
async def get_progress(
    requirement_id: str, settings: Settings = Depends(get_app_settings)
) -> dict[str, Any]:
    run = ProgressStore(settings.data_dir).read(requirement_id)
    source = "store"
    if run is None:
        run = LocalProgressCache(settings.resolved_cache_dir).load(requirement_id)
        source = "cache"
    if run is None:
        raise HTTPException(status_code=404, detail=f"No run in progress for {requirement_id}")
    return {"source": source, **run.model_dump(mode="json")}

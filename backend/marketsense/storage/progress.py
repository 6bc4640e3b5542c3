"""Durable pipeline progress in data/progress/{requirement_id}.yaml.

A run has a single writer at a time. Every write carries the version the
writer last read; a mismatch means another orchestrator took over and the
write is rejected with ``RunConflictError``.
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field

from .files import generate_run_id, read_yaml, write_yaml_atomic
from .records import utcnow

logger = logging.getLogger(__name__)

StageStatus = Literal["pending", "processing", "completed", "failed"]

STAGE_NAMES: list[str] = [
    "generate_queries",
    "search",
    "scrape",
    "summarize",
    "synthesize",
]

STAGE_LABELS: dict[str, str] = {
    "generate_queries": "Generating search queries",
    "search": "Searching the web",
    "scrape": "Scraping content",
    "summarize": "Summarizing research",
    "synthesize": "Creating market analysis",
}


class RunConflictError(Exception):
    """Another orchestrator owns or has modified this run."""

    def __init__(self, requirement_id: str, message: str):
        super().__init__(message)
        self.requirement_id = requirement_id


# ============================================================================
# Pydantic Models
# ============================================================================


class StageProgress(BaseModel):
    """One step of a run. ``current``/``total`` only matter for item stages."""

    name: str
    label: str
    status: StageStatus = "pending"
    current: int | None = None
    total: int | None = None
    message: str | None = None


def _default_stages() -> list[StageProgress]:
    return [StageProgress(name=name, label=STAGE_LABELS[name]) for name in STAGE_NAMES]


class PipelineRun(BaseModel):
    """Logical state of one market-analysis attempt for a requirement."""

    requirement_id: str
    run_id: str = Field(default_factory=generate_run_id)
    owner: str = Field(default_factory=lambda: uuid4().hex)
    version: int = 0
    current_step: int = 0
    stages: list[StageProgress] = Field(default_factory=_default_stages)
    started_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # ------------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------------

    def stage(self, name: str) -> StageProgress:
        return self.stages[STAGE_NAMES.index(name)]

    @property
    def is_completed(self) -> bool:
        return all(s.status == "completed" for s in self.stages)

    @property
    def is_processing(self) -> bool:
        return any(s.status == "processing" for s in self.stages)

    @property
    def failed_stage(self) -> StageProgress | None:
        return next((s for s in self.stages if s.status == "failed"), None)

    def first_incomplete_index(self) -> int:
        """Index of the first stage that is not completed, or len(stages)."""
        for index, stage in enumerate(self.stages):
            if stage.status != "completed":
                return index
        return len(self.stages)

    def is_sequenced(self) -> bool:
        """True when no stage is active or done ahead of an unfinished predecessor."""
        for index in range(1, len(self.stages)):
            if (
                self.stages[index].status in ("processing", "completed")
                and self.stages[index - 1].status != "completed"
            ):
                return False
        return True

    def lease_expired(self, lease_seconds: int, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now - self.updated_at > timedelta(seconds=lease_seconds)

    # ------------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------------

    def mark_processing(self, index: int, message: str | None = None) -> None:
        if index > 0 and self.stages[index - 1].status != "completed":
            raise ValueError(
                f"Cannot start {self.stages[index].name}: "
                f"{self.stages[index - 1].name} is {self.stages[index - 1].status}"
            )
        stage = self.stages[index]
        stage.status = "processing"
        stage.message = message
        self.current_step = index

    def mark_completed(self, index: int, message: str | None = None) -> None:
        stage = self.stages[index]
        if stage.status != "processing":
            raise ValueError(f"Cannot complete {stage.name} from status {stage.status}")
        stage.status = "completed"
        stage.message = message
        self.current_step = min(index + 1, len(self.stages) - 1)

    def mark_failed(self, index: int, message: str | None = None) -> None:
        stage = self.stages[index]
        stage.status = "failed"
        stage.message = message
        self.current_step = index

    def set_counts(
        self, index: int, current: int | None = None, total: int | None = None
    ) -> None:
        stage = self.stages[index]
        if current is not None:
            stage.current = current
        if total is not None:
            stage.total = total


# ============================================================================
# Store
# ============================================================================


class ProgressStore:
    """Process-external record of pipeline runs, one YAML file per requirement."""

    def __init__(self, data_dir: Path):
        self.root = data_dir / "progress"

    def _path(self, requirement_id: str) -> Path:
        return self.root / f"{requirement_id}.yaml"

    def read(self, requirement_id: str) -> PipelineRun | None:
        raw = read_yaml(self._path(requirement_id))
        if not raw:
            return None
        return PipelineRun(**raw)

    def write(self, run: PipelineRun, expected_version: int) -> PipelineRun:
        """Persist ``run`` if the stored version still equals ``expected_version``.

        ``expected_version`` 0 means the run must not exist yet. On success the
        run's version is bumped in place and ``updated_at`` refreshed.

        Raises:
            RunConflictError: the stored version moved on.
        """
        stored = self.read(run.requirement_id)
        stored_version = stored.version if stored else 0

        if stored_version != expected_version:
            raise RunConflictError(
                run.requirement_id,
                f"Run for {run.requirement_id} changed underneath us "
                f"(expected version {expected_version}, found {stored_version})",
            )

        run.version = expected_version + 1
        run.updated_at = utcnow()
        write_yaml_atomic(self._path(run.requirement_id), run.model_dump(mode="json"))
        logger.debug(f"Wrote progress for {run.requirement_id} at version {run.version}")
        return run

    def clear(self, requirement_id: str) -> None:
        self._path(requirement_id).unlink(missing_ok=True)
        logger.debug(f"Cleared progress for {requirement_id}")

    def list_requirement_ids(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(p.stem for p in self.root.glob("*.yaml"))

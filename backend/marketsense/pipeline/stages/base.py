"""Common shape of a pipeline stage.

A stage takes a requirement ID (plus optional requirement context overrides),
does its remote work, persists its rows and reports a ``StageResult``. Stage
exceptions never escape ``execute``; they become ``success=False`` results so
the orchestrator can record the failure.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

import logfire

from marketsense.pipeline.context import StageContext
from marketsense.pipeline.exceptions import StagePreconditionError
from marketsense.storage import Requirement, RequirementNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class StageResult:
    success: bool
    message: str
    items_produced: int = 0
    remaining: int | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_response(self) -> dict[str, Any]:
        """Trigger-surface shape: ``{success, message, remaining?, data?}``."""
        response: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.remaining is not None:
            response["remaining"] = self.remaining
        if self.data:
            response["data"] = self.data
        return response


class Stage(ABC):
    """Base class for the five pipeline stages."""

    name: ClassVar[str]

    def __init__(self, ctx: StageContext):
        self.ctx = ctx

    async def execute(self, requirement_id: str, **context: str) -> StageResult:
        """Run the stage, converting any exception into a failed result."""
        start_time = time.time()
        with logfire.span(
            "stage {stage}", stage=self.name, requirement_id=requirement_id
        ):
            try:
                result = await self.run(requirement_id, **context)
            except Exception as e:
                logger.error(f"Stage {self.name} failed for {requirement_id}: {e}")
                result = StageResult(success=False, message=str(e))

        duration = time.time() - start_time
        level = logging.INFO if result.success else logging.WARNING
        logger.log(
            level,
            f"Stage {self.name} for {requirement_id} finished in {duration:.1f}s: "
            f"{result.message}",
        )
        return result

    @abstractmethod
    async def run(self, requirement_id: str, **context: str) -> StageResult:
        ...

    def load_requirement(self, requirement_id: str, **context: str) -> Requirement:
        """Stored requirement with non-empty ``context`` fields laid over it.

        A requirement that is not stored can still be described entirely by
        ``context``, which is how the trigger surface passes it.
        """
        overrides = {k: v for k, v in context.items() if v and k in Requirement.model_fields}
        try:
            requirement = self.ctx.requirements.get(requirement_id)
        except RequirementNotFoundError:
            if not overrides:
                raise
            return Requirement(id=requirement_id, **overrides)
        return requirement.model_copy(update=overrides)

    def precondition(self, ok: bool, message: str) -> None:
        if not ok:
            raise StagePreconditionError(self.name, message)

"""Client-local mirror of run progress, used only to redraw progress after a reload."""

import logging
from pathlib import Path

from .files import read_json, write_json_atomic
from .progress import PipelineRun

logger = logging.getLogger(__name__)


class LocalProgressCache:
    """Step list and current step per requirement, in <cache_dir>/progress/{id}.json.

    A display hint only: whether work is still happening is decided by the
    completion watcher against the analysis record.
    """

    def __init__(self, cache_dir: Path):
        self.root = cache_dir / "progress"

    def _path(self, requirement_id: str) -> Path:
        return self.root / f"{requirement_id}.json"

    def save(self, run: PipelineRun) -> None:
        write_json_atomic(self._path(run.requirement_id), run.model_dump(mode="json"))

    def load(self, requirement_id: str) -> PipelineRun | None:
        raw = read_json(self._path(requirement_id))
        if not raw:
            return None
        return PipelineRun(**raw)

    def exists(self, requirement_id: str) -> bool:
        return self._path(requirement_id).exists()

    def clear(self, requirement_id: str) -> None:
        self._path(requirement_id).unlink(missing_ok=True)
        logger.debug(f"Cleared cached progress for {requirement_id}")

"""Stage 4: compress scraped pages into research summaries, one bounded batch per call."""

import logging

from marketsense.agents.prompts import build_summary_prompt
from marketsense.storage import ScrapedContent
from marketsense.storage.records import utcnow

from .base import Stage, StageResult

logger = logging.getLogger(__name__)


class SummarizeStage(Stage):
    """Summarizes at most ``summarize.batch_size`` items per invocation.

    The result's ``remaining`` tells the caller whether another batch is due.
    Items whose summary fails are marked ``error``; the batch still succeeds.
    """

    name = "summarize"

    async def run(self, requirement_id: str, **context: str) -> StageResult:
        research = self.ctx.research
        config = self.ctx.settings.summarize

        self.precondition(
            bool(research.list_queries(requirement_id)),
            "No queries found; generate queries first",
        )
        self.precondition(
            not research.list_sources(requirement_id, status=("found", "pending_scrape")),
            "Scraping has not finished; sources are still waiting to be scraped",
        )

        pending = research.list_contents(requirement_id, status="pending_summary")
        if not pending:
            total = len(research.list_contents(requirement_id, status="summarized"))
            return StageResult(
                success=True,
                message="No pending summaries found",
                remaining=0,
                data={"processed": 0, "summarized": 0, "errors": 0, "total_summarized": total},
            )

        batch = pending[: config.batch_size]
        logger.info(f"Summarizing {len(batch)} of {len(pending)} pending items")

        summarized = 0
        errors = 0
        for index, item in enumerate(batch):
            if index > 0:
                await self.ctx.sleep(config.item_delay_seconds)
            if await self._summarize_item(requirement_id, item):
                summarized += 1
            else:
                errors += 1

        remaining = len(research.list_contents(requirement_id, status="pending_summary"))
        total = len(research.list_contents(requirement_id, status="summarized"))
        data = {
            "processed": len(batch),
            "summarized": summarized,
            "errors": errors,
            "total_summarized": total,
        }

        return StageResult(
            success=True,
            message=f"Processed {len(batch)} items: {summarized} summarized, {errors} errors",
            items_produced=summarized,
            remaining=remaining,
            data=data,
        )

    async def _summarize_item(self, requirement_id: str, item: ScrapedContent) -> bool:
        max_chars = self.ctx.settings.summarize.max_content_chars
        content = item.content
        if len(content) > max_chars:
            logger.debug(f"Truncating {item.url} from {len(content)} to {max_chars} chars")
            content = content[:max_chars]

        try:
            summary = await self.ctx.generator.generate(
                "summary", build_summary_prompt(item.url, content)
            )
            summary = summary.strip()
            if not summary:
                raise ValueError("Empty summary returned")
        except Exception as e:
            logger.warning(f"Failed to summarize {item.url}: {e}")
            self.ctx.research.update_contents(
                requirement_id,
                [item.model_copy(update={"status": "error", "error_message": str(e)})],
            )
            return False

        self.ctx.research.update_contents(
            requirement_id,
            [
                item.model_copy(
                    update={
                        "status": "summarized",
                        "summary": summary,
                        "summarized_at": utcnow(),
                    }
                )
            ],
        )
        return True

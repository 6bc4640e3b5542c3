"""Stage 2: run every pending query through the search backend."""

import asyncio
import logging

from marketsense.storage import Query, ResearchSource
from marketsense.storage.files import generate_source_id

from .base import Stage, StageResult

logger = logging.getLogger(__name__)


class SearchStage(Stage):
    name = "search"

    async def run(self, requirement_id: str, **context: str) -> StageResult:
        research = self.ctx.research
        config = self.ctx.settings.search

        self.precondition(
            bool(research.list_queries(requirement_id)),
            "No queries found; generate queries first",
        )

        pending = research.list_queries(requirement_id, status="pending")
        if not pending:
            return StageResult(success=True, message="No pending queries found")

        logger.info(f"Searching {len(pending)} pending queries for {requirement_id}")
        semaphore = asyncio.Semaphore(config.max_concurrency)

        async def _process(query: Query) -> int | None:
            async with semaphore:
                try:
                    hits = await self.ctx.search.search(
                        query.query_text, limit=config.results_per_query
                    )
                except Exception as e:
                    logger.warning(f"Search failed for query '{query.query_text}': {e}")
                    research.update_queries(
                        requirement_id,
                        [query.model_copy(update={"status": "error", "error_message": str(e)})],
                    )
                    return None

                known_urls = {s.url for s in research.list_sources(requirement_id)}
                sources = []
                for hit in hits[: config.results_per_query]:
                    if not hit.url or hit.url in known_urls:
                        continue
                    known_urls.add(hit.url)
                    sources.append(
                        ResearchSource(
                            id=generate_source_id(),
                            requirement_id=requirement_id,
                            query_id=query.id,
                            title=hit.title or "No Title",
                            url=hit.url,
                            snippet=hit.description or "",
                        )
                    )

                research.add_sources(requirement_id, sources)
                research.update_queries(
                    requirement_id, [query.model_copy(update={"status": "searched"})]
                )
                return len(sources)

        outcomes = await asyncio.gather(*(_process(q) for q in pending))

        searched = [n for n in outcomes if n is not None]
        errors = len(outcomes) - len(searched)
        saved = sum(searched)
        message = f"Processed {len(searched)} queries, saved {saved} sources, {errors} errors"

        if not searched:
            return StageResult(
                success=False,
                message=f"All {errors} queries failed to search",
                data={"processed": 0, "sources": 0, "errors": errors},
            )

        return StageResult(
            success=True,
            message=message,
            items_produced=saved,
            data={"processed": len(searched), "sources": saved, "errors": errors},
        )

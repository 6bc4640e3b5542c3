"""Stage 3: batch-scrape discovered sources into ScrapedContent rows."""

import logging
from dataclasses import dataclass

from marketsense.services.firecrawl import FirecrawlUnsupportedURLError
from marketsense.storage import ResearchSource, ScrapedContent
from marketsense.storage.files import generate_content_id

from .base import Stage, StageResult

logger = logging.getLogger(__name__)


@dataclass
class _BatchOutcome:
    scraped: int = 0
    errors: int = 0
    failed: bool = False


def has_valid_scheme(url: str) -> bool:
    return url.startswith(("http://", "https://"))


class ScrapeStage(Stage):
    name = "scrape"

    async def run(self, requirement_id: str, **context: str) -> StageResult:
        research = self.ctx.research
        config = self.ctx.settings.scrape

        self.precondition(
            bool(research.list_queries(requirement_id)),
            "No queries found; generate queries first",
        )
        self.precondition(
            not research.list_queries(requirement_id, status="pending"),
            "Search has not finished; pending queries remain",
        )

        found = research.list_sources(requirement_id, status="found")
        research.update_sources(
            requirement_id, [s.model_copy(update={"status": "pending_scrape"}) for s in found]
        )

        to_scrape = research.list_sources(requirement_id, status="pending_scrape")
        if not to_scrape:
            return StageResult(success=True, message="No sources need scraping")

        invalid = [s for s in to_scrape if not has_valid_scheme(s.url)]
        valid = [s for s in to_scrape if has_valid_scheme(s.url)]
        if invalid:
            logger.warning(f"Skipping {len(invalid)} sources with invalid URLs")
            self._mark_error(requirement_id, invalid, "Invalid URL format")

        batches = [
            valid[i : i + config.max_batch_urls]
            for i in range(0, len(valid), config.max_batch_urls)
        ]
        outcomes = [await self._scrape_batch(requirement_id, batch) for batch in batches]

        scraped = sum(o.scraped for o in outcomes)
        errors = len(invalid) + sum(o.errors for o in outcomes)
        data = {"scraped": scraped, "errors": errors, "batches": len(batches)}

        if batches and all(o.failed for o in outcomes):
            return StageResult(
                success=False,
                message=f"All {len(batches)} scrape batches failed",
                data=data,
            )

        return StageResult(
            success=True,
            message=f"Scraped {scraped} sources, {errors} errors",
            items_produced=scraped,
            data=data,
        )

    async def _scrape_batch(
        self,
        requirement_id: str,
        sources: list[ResearchSource],
        allow_resubmit: bool = True,
    ) -> _BatchOutcome:
        urls = [s.url for s in sources]
        logger.info(f"Submitting batch of {len(urls)} URLs for scraping")

        try:
            pages = await self.ctx.scraper.scrape(urls, self.ctx.settings.scrape.formats)

        except FirecrawlUnsupportedURLError as e:
            if not allow_resubmit:
                self._mark_error(requirement_id, sources, str(e))
                return _BatchOutcome(errors=len(sources), failed=True)

            rejected = set(e.indexes)
            unsupported = [s for i, s in enumerate(sources) if i in rejected]
            remaining = [s for i, s in enumerate(sources) if i not in rejected]
            logger.info(
                f"{len(unsupported)} URLs unsupported by scraper, "
                f"re-submitting {len(remaining)}"
            )
            self._mark_error(requirement_id, unsupported, "Website not supported by scraper")
            if not remaining:
                return _BatchOutcome(errors=len(unsupported), failed=True)

            outcome = await self._scrape_batch(requirement_id, remaining, allow_resubmit=False)
            outcome.errors += len(unsupported)
            return outcome

        except Exception as e:
            logger.error(f"Batch scrape failed: {e}")
            self._mark_error(requirement_id, sources, f"Batch scrape failed: {e}")
            return _BatchOutcome(errors=len(sources), failed=True)

        markdown_by_url = {page.url: page.markdown for page in pages if page.markdown}
        contents: list[ScrapedContent] = []
        updated: list[ResearchSource] = []

        for source in sources:
            markdown = markdown_by_url.get(source.url)
            if not markdown:
                updated.append(
                    source.model_copy(
                        update={"status": "error", "error_message": "No content returned"}
                    )
                )
                continue

            contents.append(
                ScrapedContent(
                    id=generate_content_id(),
                    requirement_id=requirement_id,
                    source_id=source.id,
                    url=source.url,
                    content=markdown,
                )
            )
            updated.append(source.model_copy(update={"status": "scraped"}))

        self.ctx.research.add_contents(requirement_id, contents)
        self.ctx.research.update_sources(requirement_id, updated)
        return _BatchOutcome(scraped=len(contents), errors=len(sources) - len(contents))

    def _mark_error(
        self, requirement_id: str, sources: list[ResearchSource], message: str
    ) -> None:
        self.ctx.research.update_sources(
            requirement_id,
            [s.model_copy(update={"status": "error", "error_message": message}) for s in sources],
        )

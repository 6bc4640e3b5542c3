"""Everything a stage needs to run, wired once per process or test."""

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator

from marketsense.agents import PydanticAIGenerator
from marketsense.config import Settings
from marketsense.services.exa import ExaClient
from marketsense.services.firecrawl import FirecrawlClient, FirecrawlConfig
from marketsense.services.remote import RemoteCaller
from marketsense.services.remote.caller import SleepFn
from marketsense.storage import ResearchStore, RequirementStore

from .backends import GenerationBackend, ScrapeBackend, SearchBackend

logger = logging.getLogger(__name__)


@dataclass
class StageContext:
    settings: Settings
    requirements: RequirementStore
    research: ResearchStore
    search: SearchBackend
    scraper: ScrapeBackend
    generator: GenerationBackend
    sleep: SleepFn = field(default=asyncio.sleep)


@asynccontextmanager
async def open_stage_context(
    settings: Settings, sleep: SleepFn | None = None
) -> AsyncIterator[StageContext]:
    """Open the configured remote clients and yield a ready StageContext."""
    sleep = sleep or asyncio.sleep
    caller = RemoteCaller(settings.retry, sleep=sleep)

    async with AsyncExitStack() as stack:
        firecrawl = await stack.enter_async_context(
            FirecrawlClient(
                api_key=settings.firecrawl_api_key,
                config=FirecrawlConfig(
                    status_poll_interval_seconds=settings.scrape.status_poll_interval_seconds,
                    max_status_checks=settings.scrape.max_status_checks,
                ),
                caller=caller,
                sleep=sleep,
            )
        )

        search: SearchBackend = firecrawl
        if settings.search.provider == "exa":
            search = await stack.enter_async_context(
                ExaClient(api_key=settings.exa_api_key, caller=caller)
            )
        logger.info(f"Search provider: {settings.search.provider}")

        yield StageContext(
            settings=settings,
            requirements=RequirementStore(settings.data_dir),
            research=ResearchStore(settings.data_dir),
            search=search,
            scraper=firecrawl,
            generator=PydanticAIGenerator(settings, caller=caller),
            sleep=sleep,
        )

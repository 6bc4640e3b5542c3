"""Logfire tracing for pipeline runs.

Stage executions open their own ``stage {stage}`` spans (see
``pipeline/stages/base.py``); this module wires the exporters and the
library instrumentation those spans nest over: the generation agents and
the Firecrawl HTTP traffic.
"""

import logging

import logfire

from marketsense import __version__
from marketsense.config import Settings

logger = logging.getLogger(__name__)

# Request fields that carry provider credentials in Firecrawl and Exa calls
_SCRUB_PATTERNS = ["x-api-key", "firecrawl_api_key", "exa_api_key"]


def initialize_logfire(settings: Settings) -> bool:
    """Configure Logfire once per process. Returns whether tracing is enabled.

    Tracing is optional: a missing token or a configuration error leaves
    the pipeline running with plain logging.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set; pipeline runs will not be traced")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="marketsense",
            service_version=__version__,
            scrubbing=logfire.ScrubbingOptions(extra_patterns=_SCRUB_PATTERNS),
        )

        # Query, summary and synthesis agent runs
        logfire.instrument_pydantic_ai()
        # Firecrawl search/batch-scrape requests and job polling
        logfire.instrument_httpx()

        logging.getLogger().addHandler(logfire.LogfireLoggingHandler())
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False

    logger.info("Logfire tracing enabled for pipeline stages")
    return True

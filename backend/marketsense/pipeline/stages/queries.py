"""Stage 1: generate exactly five search queries for a requirement."""

import logging

from marketsense.agents.parsing import extract_json_array
from marketsense.agents.prompts import build_query_prompt
from marketsense.storage import Requirement

from .base import Stage, StageResult

logger = logging.getLogger(__name__)

QUERY_COUNT = 5


def generic_queries(requirement: Requirement) -> list[str]:
    industry = requirement.industry_type.strip()
    return [
        f"{industry or 'industry'} market size and growth trends",
        f"{industry or 'industry'} leading competitors and market share",
        f"{industry or 'product'} customer pain points and needs",
        f"{industry or 'product'} feature comparison and gaps",
        f"{industry or 'industry'} future trends and innovations",
    ]


def normalize_queries(queries: list[str], requirement: Requirement) -> list[str]:
    """Truncate or pad ``queries`` to exactly QUERY_COUNT.

    Padding takes the generic query at the position being filled, so the
    result is deterministic for a given requirement and input length.
    """
    if len(queries) > QUERY_COUNT:
        logger.info(f"Backend returned {len(queries)} queries, truncating to {QUERY_COUNT}")
        return queries[:QUERY_COUNT]

    padded = list(queries)
    if len(padded) < QUERY_COUNT:
        logger.info(f"Backend returned only {len(padded)} queries, padding to {QUERY_COUNT}")
    generic = generic_queries(requirement)
    while len(padded) < QUERY_COUNT:
        index = len(padded)
        if index < len(generic):
            padded.append(generic[index])
        else:
            padded.append(f"{requirement.industry_type or 'market'} research query {index + 1}")
    return padded


class GenerateQueriesStage(Stage):
    name = "generate_queries"

    async def run(self, requirement_id: str, **context: str) -> StageResult:
        research = self.ctx.research

        existing = research.list_queries(requirement_id)
        if existing:
            return StageResult(
                success=True,
                message=f"Queries already generated ({len(existing)})",
                data={"queries": [q.query_text for q in existing]},
            )

        requirement = self.load_requirement(requirement_id, **context)
        response = await self.ctx.generator.generate("queries", build_query_prompt(requirement))
        queries = normalize_queries(extract_json_array(response), requirement)

        stored = research.add_queries(requirement_id, queries)
        return StageResult(
            success=True,
            message=f"Generated and stored {len(stored)} search queries",
            items_produced=len(stored),
            data={"queries": [q.query_text for q in stored]},
        )

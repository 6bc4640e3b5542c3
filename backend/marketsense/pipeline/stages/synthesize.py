"""Stage 5: synthesize summarized research into the final market analysis."""

import logging
from typing import Any

from marketsense.agents.parsing import GenerationParseError, parse_json_object
from marketsense.agents.prompts import build_fallback_research, build_synthesis_prompt
from marketsense.storage import ScrapedContent

from .base import Stage, StageResult

logger = logging.getLogger(__name__)

ANALYSIS_TEXT_FIELDS = (
    "market_trends",
    "demand_insights",
    "top_competitors",
    "market_gap_opportunity",
    "swot_analysis",
    "industry_benchmarks",
)


def coerce_score(value: Any, default: int) -> int:
    try:
        return max(0, min(100, int(float(value))))
    except (TypeError, ValueError):
        return default


def build_research_context(contents: list[ScrapedContent], max_chars: int) -> str:
    """Numbered summaries with their source URLs, cut at ``max_chars``."""
    sections = [
        f"[{index}] Source: {item.url}\n{item.summary}"
        for index, item in enumerate(contents, start=1)
    ]
    research = "\n\n".join(sections)
    if len(research) > max_chars:
        research = research[:max_chars]
    return research


class SynthesizeStage(Stage):
    name = "synthesize"

    async def run(self, requirement_id: str, **context: str) -> StageResult:
        research = self.ctx.research
        config = self.ctx.settings.synthesis

        self.precondition(
            not research.list_contents(requirement_id, status="pending_summary"),
            "Summarization has not finished; content is still pending summary",
        )

        requirement = self.load_requirement(requirement_id, **context)
        summarized = [
            c for c in research.list_contents(requirement_id, status="summarized") if c.summary
        ]

        used_fallback = not summarized
        if used_fallback:
            logger.warning(
                f"No summarized research for {requirement_id}; using general industry knowledge"
            )
            research_text = build_fallback_research(requirement)
        else:
            research_text = build_research_context(summarized, config.max_research_chars)

        response = await self.ctx.generator.generate(
            "synthesis", build_synthesis_prompt(requirement, research_text)
        )

        fields: dict[str, Any] = {name: "" for name in ANALYSIS_TEXT_FIELDS}
        try:
            parsed = parse_json_object(response)
            fields.update({k: v for k, v in parsed.items() if k in ANALYSIS_TEXT_FIELDS})
            score = coerce_score(parsed.get("confidence_score"), config.parse_failure_confidence)
            parse_failed = False
        except GenerationParseError as e:
            logger.warning(f"Could not parse synthesis output for {requirement_id}: {e}")
            fields["market_trends"] = (
                "Generated analysis could not be properly formatted. "
                f"Raw content: {response[:100]}..."
            )
            score = config.parse_failure_confidence
            parse_failed = True

        # Fallback scores stay strictly below every research-backed score
        if used_fallback:
            score = min(
                int(score * config.fallback_confidence_factor), config.fallback_confidence_cap
            )
        else:
            score = max(score, config.fallback_confidence_cap + 1)

        fields.update(
            {
                "status": "Completed",
                "confidence_score": score,
                "research_sources": [c.url for c in summarized],
                "used_fallback": used_fallback,
            }
        )
        analysis = research.upsert_analysis(requirement_id, fields)

        message = "Market analysis generated successfully"
        if parse_failed:
            message = "Market analysis saved with degraded formatting"
        return StageResult(
            success=True,
            message=message,
            items_produced=1,
            data={
                "analysis_id": analysis.id,
                "confidence_score": score,
                "used_fallback": used_fallback,
                "sources": len(summarized),
            },
        )

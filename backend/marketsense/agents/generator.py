"""Generation backend built on pydantic-ai agents.

One text-output agent per purpose (queries, summary, synthesis), each bound to
the model configured for it. Calls go through the shared ``RemoteCaller`` so
provider rate limits are retried with backoff.
"""

import logging
from typing import Literal

from pydantic_ai import Agent
from pydantic_ai.models import Model

from marketsense.config import Settings
from marketsense.llm_providers import get_model_string
from marketsense.services.remote import RemoteCaller

from .agent_factory import AgentFactory
from .prompts import QUERY_SYSTEM_PROMPT, SUMMARY_SYSTEM_PROMPT, SYNTHESIS_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

Purpose = Literal["queries", "summary", "synthesis"]

_SYSTEM_PROMPTS: dict[str, str] = {
    "queries": QUERY_SYSTEM_PROMPT,
    "summary": SUMMARY_SYSTEM_PROMPT,
    "synthesis": SYNTHESIS_SYSTEM_PROMPT,
}


class PydanticAIGenerator:
    """Text generation for every LLM-backed stage."""

    def __init__(
        self,
        settings: Settings,
        caller: RemoteCaller | None = None,
        model: Model | str | None = None,
    ):
        """
        Args:
            settings: Provides model selection, temperatures and API keys
            caller: Retry wrapper; defaults to one built from ``settings.retry``
            model: Overrides the configured model for every purpose
        """
        self.settings = settings
        self.caller = caller or RemoteCaller(settings.retry)
        self._model_override = model
        self._factories: dict[str, AgentFactory[None, str]] = {
            purpose: AgentFactory(purpose, self._creator(purpose), settings=settings)
            for purpose in _SYSTEM_PROMPTS
        }

    def _model_for(self, purpose: str) -> Model | str:
        if self._model_override is not None:
            return self._model_override
        llm = self.settings.llm
        model = {
            "queries": llm.query_model,
            "summary": llm.summary_model,
            "synthesis": llm.synthesis_model,
        }[purpose]
        return get_model_string(model)

    def _creator(self, purpose: str):
        def _create() -> Agent[None, str]:
            return Agent(
                model=self._model_for(purpose),
                output_type=str,
                system_prompt=_SYSTEM_PROMPTS[purpose],
            )

        return _create

    def _temperature_for(self, purpose: str) -> float:
        if purpose == "summary":
            return self.settings.llm.summary_temperature
        return self.settings.llm.temperature

    async def generate(self, purpose: Purpose, prompt: str) -> str:
        """Run the agent for ``purpose`` and return its text output."""
        if purpose not in self._factories:
            raise ValueError(f"Unknown generation purpose: {purpose}")

        agent = self._factories[purpose].get_agent()
        temperature = self._temperature_for(purpose)

        async def _run():
            return await agent.run(prompt, model_settings={"temperature": temperature})

        result = await self.caller.run(f"generate {purpose}", _run)
        logger.debug(f"Generated {len(result.output)} chars for {purpose}")
        return result.output

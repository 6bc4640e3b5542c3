"""Lazily built generation agents, one per prompt purpose."""

import logging
import os
from typing import Callable, Generic, TypeVar

from pydantic_ai import Agent

from marketsense.config import Settings, get_settings

logger = logging.getLogger(__name__)

DepsT = TypeVar("DepsT")
OutputT = TypeVar("OutputT")

# Settings attribute -> environment variable read by the pydantic-ai provider
_PROVIDER_KEYS = {
    "openai_api_key": "OPENAI_API_KEY",
    "anthropic_api_key": "ANTHROPIC_API_KEY",
}


class AgentFactory(Generic[DepsT, OutputT]):
    """Builds the agent for one purpose (queries, summary, synthesis) on first use.

    Provider keys are exported only when the first agent is built, so a
    pipeline run that never reaches a generation stage needs no model keys.
    """

    def __init__(
        self,
        purpose: str,
        create_fn: Callable[[], Agent[DepsT, OutputT]],
        settings: Settings | None = None,
    ):
        self.purpose = purpose
        self._create_fn = create_fn
        self._settings = settings
        self._agent: Agent[DepsT, OutputT] | None = None

    def get_agent(self) -> Agent[DepsT, OutputT]:
        if self._agent is None:
            self._export_provider_keys()
            self._agent = self._create_fn()
            logger.debug(f"Created {self.purpose} agent ({self._agent.model})")
        return self._agent

    def _export_provider_keys(self) -> None:
        settings = self._settings or get_settings()
        for attribute, variable in _PROVIDER_KEYS.items():
            value = getattr(settings, attribute)
            if value:
                os.environ[variable] = value

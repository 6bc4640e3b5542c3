"""Tests for the pydantic-ai generation backend, driven by FunctionModel."""

import pytest
from pydantic_ai.exceptions import ModelHTTPError
from pydantic_ai.messages import ModelMessage, ModelResponse, SystemPromptPart, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from marketsense.agents import PydanticAIGenerator
from marketsense.agents.prompts import QUERY_SYSTEM_PROMPT, SUMMARY_SYSTEM_PROMPT
from marketsense.services.remote import RemoteCaller
from tests.helpers.fakes import RecordingSleep


def _system_prompt(messages: list[ModelMessage]) -> str:
    return "".join(
        part.content
        for message in messages
        for part in getattr(message, "parts", [])
        if isinstance(part, SystemPromptPart)
    )


class TestPydanticAIGenerator:
    @pytest.mark.asyncio
    async def test_each_purpose_uses_its_system_prompt(self, settings):
        seen: list[str] = []

        def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            seen.append(_system_prompt(messages))
            return ModelResponse(parts=[TextPart('["q1", "q2"]')])

        generator = PydanticAIGenerator(settings, model=FunctionModel(respond))

        assert await generator.generate("queries", "Industry: HR Tech") == '["q1", "q2"]'
        await generator.generate("summary", "Summarize this")

        assert seen == [QUERY_SYSTEM_PROMPT, SUMMARY_SYSTEM_PROMPT]

    @pytest.mark.asyncio
    async def test_summary_uses_its_own_temperature(self, settings):
        settings.llm.temperature = 0.7
        settings.llm.summary_temperature = 0.2
        temperatures: list[float] = []

        def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            temperatures.append((info.model_settings or {}).get("temperature"))
            return ModelResponse(parts=[TextPart("ok")])

        generator = PydanticAIGenerator(settings, model=FunctionModel(respond))
        await generator.generate("summary", "text")
        await generator.generate("synthesis", "text")

        assert temperatures == [0.2, 0.7]

    @pytest.mark.asyncio
    async def test_rate_limited_model_is_retried(self, settings):
        sleep = RecordingSleep()
        attempts: list[int] = []

        def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            attempts.append(1)
            if len(attempts) == 1:
                raise ModelHTTPError(status_code=429, model_name="function", body="rate limited")
            return ModelResponse(parts=[TextPart("Summary")])

        generator = PydanticAIGenerator(
            settings,
            caller=RemoteCaller(settings.retry, sleep=sleep),
            model=FunctionModel(respond),
        )

        assert await generator.generate("summary", "text") == "Summary"
        assert len(attempts) == 2
        assert sleep.delays == [settings.retry.initial_backoff_seconds]

    @pytest.mark.asyncio
    async def test_unknown_purpose_raises(self, settings):
        generator = PydanticAIGenerator(settings, model=FunctionModel(lambda m, i: ModelResponse(parts=[])))

        with pytest.raises(ValueError):
            await generator.generate("poetry", "text")

"""LLM Provider and Model Enums for the generation backend.

Each pipeline prompt (query generation, summarization, synthesis) is bound to
one of these models through configuration, so models can be swapped without
touching stage code.
"""

from enum import StrEnum


class OpenAIModel(StrEnum):
    """OpenAI models available via API."""

    GPT_4O = "gpt-4o"
    GPT_4O_MINI = "gpt-4o-mini"
    GPT_5_MINI = "gpt-5-mini"
    GPT_5_NANO = "gpt-5-nano"


class AnthropicModel(StrEnum):
    """Anthropic Claude models available via API."""

    CLAUDE_SONNET_4_5 = "claude-sonnet-4-5"
    CLAUDE_HAIKU_4_5 = "claude-haiku-4-5"


# =============================================================================
# Helper Functions
# =============================================================================


def get_model_string(model: OpenAIModel | AnthropicModel) -> str:
    """Get the pydantic-ai model string for any supported model."""
    if isinstance(model, OpenAIModel):
        return f"openai:{model.value}"
    elif isinstance(model, AnthropicModel):
        return f"anthropic:{model.value}"
    return model.value

"""LLM generation backend for MarketSense.

Agents:
- Query generation: five search queries per requirement
- Summarization: compresses scraped pages into research summaries
- Synthesis: produces the final market analysis JSON
"""

from .generator import PydanticAIGenerator
from .parsing import (
    GenerationParseError,
    extract_json_array,
    parse_json_object,
    unwrap_code_fence,
)

__all__ = [
    "PydanticAIGenerator",
    "GenerationParseError",
    "extract_json_array",
    "parse_json_object",
    "unwrap_code_fence",
]

"""Configuration for Exa AI client."""

from pydantic import BaseModel


class ExaConfig(BaseModel):
    """Configuration for Exa AI client."""

    search_type: str = "auto"  # or "neural", "keyword"
    use_autoprompt: bool = False

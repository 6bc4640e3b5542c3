"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from marketsense.llm_providers import AnthropicModel, OpenAIModel
from marketsense.services.remote.config import RemoteCallerConfig

logger = logging.getLogger(__name__)


class SearchConfig(BaseModel):
    """Web search stage parameters."""

    provider: Literal["firecrawl", "exa"] = "firecrawl"
    results_per_query: int = 5
    max_concurrency: int = 2


class ScrapeConfig(BaseModel):
    """Batch scrape stage parameters."""

    formats: list[str] = Field(default_factory=lambda: ["markdown"])
    max_batch_urls: int = 20
    status_poll_interval_seconds: float = 5.0
    max_status_checks: int = 25


class SummarizeConfig(BaseModel):
    """Summarization throttling. The delays exist only to stay under provider rate limits."""

    batch_size: int = 3
    item_delay_seconds: float = 3.0
    batch_delay_seconds: float = 2.0
    max_batches: int = 50
    max_content_chars: int = 60000


class SynthesisConfig(BaseModel):
    """Final market analysis parameters."""

    fallback_confidence_factor: float = 0.5
    fallback_confidence_cap: int = 40
    parse_failure_confidence: int = 50
    max_research_chars: int = 24000


class WatcherConfig(BaseModel):
    """Completion watcher polling."""

    poll_interval_seconds: float = 10.0


class OrchestratorConfig(BaseModel):
    """Run ownership."""

    lease_seconds: int = 900  # a processing run untouched this long may be taken over


class LLMConfig(BaseModel):
    """Model selection per prompt."""

    query_model: OpenAIModel | AnthropicModel = OpenAIModel.GPT_4O_MINI
    summary_model: OpenAIModel | AnthropicModel = OpenAIModel.GPT_4O_MINI
    synthesis_model: OpenAIModel | AnthropicModel = OpenAIModel.GPT_4O_MINI
    temperature: float = 0.7
    summary_temperature: float = 0.3


_YAML_SECTIONS = [
    "retry",
    "search",
    "scrape",
    "summarize",
    "synthesis",
    "watcher",
    "orchestrator",
    "llm",
]


class Settings(BaseSettings):
    """Main configuration class."""

    # Paths
    data_dir: Path = Path("data")
    cache_dir: Path | None = None  # defaults to <data_dir>/.cache

    # API Keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    firecrawl_api_key: str = ""
    exa_api_key: str = ""
    logfire_token: str = ""

    # Nested configuration sections
    retry: RemoteCallerConfig = Field(default_factory=RemoteCallerConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    scrape: ScrapeConfig = Field(default_factory=ScrapeConfig)
    summarize: SummarizeConfig = Field(default_factory=SummarizeConfig)
    synthesis: SynthesisConfig = Field(default_factory=SynthesisConfig)
    watcher: WatcherConfig = Field(default_factory=WatcherConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    @property
    def resolved_cache_dir(self) -> Path:
        """Client-local cache root."""
        if self.cache_dir is not None:
            return self.cache_dir.resolve()
        return self.data_dir / ".cache"

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.warning(
                f"Config file not found: {config_path}. "
                "Using defaults. Run 'python -m marketsense init' to create it."
            )
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in _YAML_SECTIONS:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    yaml_section = yaml_config[section_name] or {}

                    section_dict = section.model_dump()
                    section_dict.update(yaml_section)

                    new_section = section.__class__(**section_dict)
                    setattr(self, section_name, new_section)

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings

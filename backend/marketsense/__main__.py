"""MarketSense CLI entry point."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from marketsense import __version__
from marketsense.config import get_settings
from marketsense.pipeline import (
    STAGE_CLASSES,
    CompletionWatcher,
    PipelineOrchestrator,
    open_stage_context,
)
from marketsense.storage import (
    LocalProgressCache,
    PipelineRun,
    ProgressStore,
    Requirement,
    RequirementStore,
    ResearchStore,
    RunConflictError,
    get_data_dir,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

STAGES_BY_NAME = {cls.name: cls for cls in STAGE_CLASSES}

CONFIG_TEMPLATE = """# MarketSense Configuration
# Operational parameters for the market research pipeline.
# API keys and secrets should be stored in .env file, not here.

retry:
  initial_backoff_seconds: 2.0
  max_retries: 3

search:
  provider: firecrawl  # or exa
  results_per_query: 5
  max_concurrency: 2

scrape:
  formats: [markdown]
  max_batch_urls: 20
  status_poll_interval_seconds: 5.0
  max_status_checks: 25

summarize:
  batch_size: 3
  item_delay_seconds: 3.0
  batch_delay_seconds: 2.0
  max_batches: 50
  max_content_chars: 60000

synthesis:
  fallback_confidence_factor: 0.5
  fallback_confidence_cap: 40
  parse_failure_confidence: 50
  max_research_chars: 24000

watcher:
  poll_interval_seconds: 10.0

orchestrator:
  lease_seconds: 900

llm:
  query_model: gpt-4o-mini
  summary_model: gpt-4o-mini
  synthesis_model: gpt-4o-mini
  temperature: 0.7
  summary_temperature: 0.3
"""


def _init_logfire() -> None:
    """Initialize Logfire if available, without failing commands."""
    try:
        from marketsense.observability import initialize_logfire

        initialize_logfire(get_settings())
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


def _print_run(run: PipelineRun) -> None:
    markers = {"pending": "·", "processing": "…", "completed": "✓", "failed": "✗"}
    for index, stage in enumerate(run.stages, 1):
        counts = ""
        if stage.total is not None:
            counts = f" ({stage.current or 0}/{stage.total})"
        line = f"  {markers[stage.status]} {index}. {stage.label}{counts}"
        if stage.message:
            line += f" - {stage.message}"
        print(line)
    print()


def _build_orchestrator(ctx, settings) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        ctx,
        ProgressStore(settings.data_dir),
        LocalProgressCache(settings.resolved_cache_dir),
    )


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize data directory structure and configuration files."""
    data_dir = Path("data").resolve()

    try:
        data_dir.mkdir(exist_ok=True)
        logger.info(f"Created data directory: {data_dir}")

        for subdir in ["requirements", "research", "progress", ".cache/progress"]:
            (data_dir / subdir).mkdir(parents=True, exist_ok=True)

        logger.info("Created all subdirectories")

        config_path = data_dir / "config.yaml"
        if not config_path.exists():
            config_path.write_text(CONFIG_TEMPLATE)
            logger.info(f"Created config template: {config_path}")
        else:
            logger.info(f"Config file already exists: {config_path}")

        print(f"\n✓ Data directory initialized at {data_dir}")
        print("\nNext steps:")
        print("1. Copy .env.example to .env and add your API keys")
        print("2. Review and customize data/config.yaml if needed")
        print("3. Run 'python -m marketsense add-requirement ...' to register a requirement")
        print("4. Run 'python -m marketsense run --requirement-id <id>' to analyze it\n")

        return 0

    except Exception as e:
        logger.error(f"Failed to initialize: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== MarketSense Configuration ===\n")
        print(f"Data Directory: {settings.data_dir}")
        print(f"Cache Directory: {settings.resolved_cache_dir}\n")

        print("Retry:")
        print(f"  Initial Backoff: {settings.retry.initial_backoff_seconds}s")
        print(f"  Max Retries: {settings.retry.max_retries}\n")

        print("Search:")
        print(f"  Provider: {settings.search.provider}")
        print(f"  Results per Query: {settings.search.results_per_query}")
        print(f"  Max Concurrency: {settings.search.max_concurrency}\n")

        print("Scrape:")
        print(f"  Max Batch URLs: {settings.scrape.max_batch_urls}")
        print(f"  Status Poll Interval: {settings.scrape.status_poll_interval_seconds}s")
        print(f"  Max Status Checks: {settings.scrape.max_status_checks}\n")

        print("Summarize:")
        print(f"  Batch Size: {settings.summarize.batch_size}")
        print(f"  Item Delay: {settings.summarize.item_delay_seconds}s")
        print(f"  Max Batches: {settings.summarize.max_batches}\n")

        print("Models:")
        print(f"  Queries: {settings.llm.query_model}")
        print(f"  Summaries: {settings.llm.summary_model}")
        print(f"  Synthesis: {settings.llm.synthesis_model}\n")

        print("API Keys:")
        print(f"  OpenAI: {'✓ Set' if settings.openai_api_key else '✗ Not set'}")
        print(f"  Anthropic: {'✓ Set' if settings.anthropic_api_key else '✗ Not set'}")
        print(f"  Firecrawl: {'✓ Set' if settings.firecrawl_api_key else '✗ Not set'}")
        print(f"  Exa AI: {'✓ Set' if settings.exa_api_key else '✗ Not set'}")
        print(f"  Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")

        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        print(f"\n❌ Failed to load configuration: {e}\n")
        return 1


def cmd_add_requirement(args: argparse.Namespace) -> int:
    """Register a requirement, from flags or a YAML file."""
    try:
        settings = get_settings()
        fields: dict = {}
        if args.file:
            with open(args.file, "r", encoding="utf-8") as f:
                fields.update(yaml.safe_load(f) or {})

        for name in [
            "project_name",
            "company_name",
            "industry_type",
            "problem_statement",
            "proposed_solution",
            "key_features",
            "target_audience",
        ]:
            value = getattr(args, name)
            if value:
                fields[name] = value
        if args.id:
            fields["id"] = args.id

        requirement = Requirement(**fields)
        path = RequirementStore(get_data_dir(settings)).save(requirement)

        print(f"\n✓ Requirement {requirement.id} saved to {path}\n")
        return 0

    except Exception as e:
        logger.error(f"Failed to add requirement: {e}")
        print(f"\n❌ Failed to add requirement: {e}\n")
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Run (or resume) the full market analysis pipeline."""
    _init_logfire()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    async def _run() -> PipelineRun:
        settings = get_settings()
        async with open_stage_context(settings) as ctx:
            orchestrator = _build_orchestrator(ctx, settings)
            return await orchestrator.start(args.requirement_id, restart=args.restart)

    try:
        print(f"\n=== MarketSense Pipeline ===\n")
        print(f"Requirement: {args.requirement_id}\n")

        run = asyncio.run(_run())
        _print_run(run)

        failed = run.failed_stage
        if failed is not None:
            print(f"❌ Pipeline halted at '{failed.label}': {failed.message}")
            print("Re-run the same command to resume from this stage.\n")
            return 1

        analysis = ResearchStore(get_settings().data_dir).get_analysis(args.requirement_id)
        print("✓ Market analysis complete")
        if analysis is not None:
            print(f"Confidence: {analysis.confidence_score}")
            if analysis.used_fallback:
                print("Note: no web research was available; analysis uses general knowledge")
        print()
        return 0

    except RunConflictError as e:
        print(f"\n❌ {e}\n")
        return 1
    except KeyboardInterrupt:
        print("\n\nInterrupted. Progress is saved; re-run to resume.\n")
        return 1
    except Exception as e:
        logger.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"\n❌ Pipeline failed: {e}\n")
        return 1


def cmd_stage(args: argparse.Namespace) -> int:
    """Invoke a single stage manually."""
    _init_logfire()

    async def _run():
        settings = get_settings()
        async with open_stage_context(settings) as ctx:
            stage = STAGES_BY_NAME[args.name](ctx)
            return await stage.execute(args.requirement_id)

    try:
        result = asyncio.run(_run())
        marker = "✓" if result.success else "❌"
        print(f"\n{marker} {args.name}: {result.message}")
        if result.remaining is not None:
            print(f"Remaining: {result.remaining}")
        print()
        return 0 if result.success else 1

    except Exception as e:
        logger.error(f"Stage {args.name} failed: {e}", exc_info=True)
        print(f"\n❌ Stage {args.name} failed: {e}\n")
        return 1


def cmd_status(args: argparse.Namespace) -> int:
    """Display pipeline progress and analysis status for a requirement."""
    try:
        settings = get_settings()
        progress = ProgressStore(get_data_dir(settings))
        requirement_id = args.requirement_id

        if requirement_id is None:
            in_flight = progress.list_requirement_ids()
            print(f"\n=== MarketSense Runs In Progress ({len(in_flight)}) ===\n")
            for listed_id in in_flight:
                run = progress.read(listed_id)
                if run is None:
                    continue
                stage = run.stages[run.current_step]
                print(f"  {listed_id}: {stage.label} [{stage.status}]")
            print()
            return 0

        print(f"\n=== MarketSense Status: {requirement_id} ===\n")

        run = progress.read(requirement_id)
        if run is None:
            run = LocalProgressCache(settings.resolved_cache_dir).load(requirement_id)
        if run is None:
            print("No run in progress.\n")
        else:
            print(f"Run: {run.run_id} (version {run.version}, updated {run.updated_at})")
            _print_run(run)

        analysis = ResearchStore(settings.data_dir).get_analysis(requirement_id)
        if analysis is None:
            print("Market analysis: none yet\n")
        else:
            print(f"Market analysis: {analysis.status} (confidence {analysis.confidence_score})\n")

        return 0

    except Exception as e:
        logger.error(f"Failed to read status: {e}")
        print(f"\n❌ Failed to read status: {e}\n")
        return 1


def cmd_watch(args: argparse.Namespace) -> int:
    """Wait for an in-flight analysis to complete, from this or another process."""
    settings = get_settings()
    cache = LocalProgressCache(settings.resolved_cache_dir)
    watcher = CompletionWatcher(
        research=ResearchStore(settings.data_dir),
        progress=ProgressStore(settings.data_dir),
        cache=cache,
        poll_interval_seconds=settings.watcher.poll_interval_seconds,
    )

    try:
        run = cache.load(args.requirement_id)
        if run is None:
            print(f"\nNo cached run for {args.requirement_id}.\n")
            return 1

        print(f"\nWatching {args.requirement_id} (polling every {watcher.poll_interval_seconds:g}s)\n")
        _print_run(run)

        notice = asyncio.run(watcher.watch(args.requirement_id))
        if notice is None:
            print("Watcher stopped before completion.\n")
            return 1

        print(f"✓ Market analysis completed (confidence {notice.analysis.confidence_score})\n")
        return 0

    except KeyboardInterrupt:
        print("\n\nStopped watching.\n")
        return 0
    except Exception as e:
        logger.error(f"Watch failed: {e}", exc_info=True)
        print(f"\n❌ Watch failed: {e}\n")
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    _init_logfire()
    uvicorn.run("marketsense.api.server:app", host=args.host, port=args.port)
    return 0


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="MarketSense: multi-stage market research pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"MarketSense {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser(
        "init",
        help="Initialize data directory and configuration files",
    )
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_add = subparsers.add_parser(
        "add-requirement",
        help="Register a requirement to analyze",
    )
    parser_add.add_argument("--file", help="YAML file with requirement fields")
    parser_add.add_argument("--id", help="Requirement ID (generated if omitted)")
    parser_add.add_argument("--project-name", dest="project_name")
    parser_add.add_argument("--company-name", dest="company_name")
    parser_add.add_argument("--industry-type", dest="industry_type")
    parser_add.add_argument("--problem-statement", dest="problem_statement")
    parser_add.add_argument("--proposed-solution", dest="proposed_solution")
    parser_add.add_argument("--key-features", dest="key_features")
    parser_add.add_argument("--target-audience", dest="target_audience")
    parser_add.set_defaults(func=cmd_add_requirement)

    parser_run = subparsers.add_parser(
        "run",
        help="Run or resume the market analysis pipeline",
    )
    parser_run.add_argument("--requirement-id", required=True, help="Requirement to analyze")
    parser_run.add_argument(
        "--restart",
        action="store_true",
        help="Discard previous research and start from query generation",
    )
    parser_run.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser_run.set_defaults(func=cmd_run)

    parser_stage = subparsers.add_parser(
        "stage",
        help="Run a single pipeline stage manually",
    )
    parser_stage.add_argument("name", choices=list(STAGES_BY_NAME))
    parser_stage.add_argument("--requirement-id", required=True)
    parser_stage.set_defaults(func=cmd_stage)

    parser_status = subparsers.add_parser(
        "status",
        help="Display pipeline progress for a requirement",
    )
    parser_status.add_argument(
        "--requirement-id",
        help="Requirement to inspect (lists every run in progress if omitted)",
    )
    parser_status.set_defaults(func=cmd_status)

    parser_watch = subparsers.add_parser(
        "watch",
        help="Wait for an in-flight analysis to complete",
    )
    parser_watch.add_argument("--requirement-id", required=True)
    parser_watch.set_defaults(func=cmd_watch)

    parser_serve = subparsers.add_parser(
        "serve",
        help="Serve the HTTP API",
    )
    parser_serve.add_argument("--host", default="127.0.0.1")
    parser_serve.add_argument("--port", type=int, default=8000)
    parser_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

"""Shared fixtures: isolated data directories and fake backends."""

import pytest

from marketsense.pipeline import PipelineOrchestrator
from marketsense.storage import (
    LocalProgressCache,
    ProgressStore,
    Requirement,
    RequirementStore,
)
from tests.helpers.fakes import (
    FakeGenerator,
    FakeScraper,
    FakeSearch,
    RecordingSleep,
    make_context,
    make_settings,
)

REQUIREMENT_ID = "req_test0001"


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def search():
    return FakeSearch()


@pytest.fixture
def scraper():
    return FakeScraper()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def ctx(settings, search, scraper, generator, sleep):
    return make_context(settings, search, scraper, generator, sleep)


@pytest.fixture
def requirement(settings) -> Requirement:
    requirement = Requirement(
        id=REQUIREMENT_ID,
        project_name="TeamPulse",
        company_name="Pulse Labs",
        industry_type="HR Tech",
        problem_statement="Managers cannot see team burnout early",
        proposed_solution="Weekly pulse surveys with trend alerts",
        key_features="Anonymous surveys, burnout score, Slack integration",
        target_audience="Engineering managers",
    )
    RequirementStore(settings.data_dir).save(requirement)
    return requirement


@pytest.fixture
def progress(settings):
    return ProgressStore(settings.data_dir)


@pytest.fixture
def cache(settings):
    return LocalProgressCache(settings.resolved_cache_dir)


@pytest.fixture
def orchestrator(ctx, progress, cache):
    return PipelineOrchestrator(ctx, progress, cache)

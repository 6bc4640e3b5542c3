"""Tests for query generation."""

import pytest

from marketsense.pipeline import GenerateQueriesStage
from marketsense.pipeline.stages.queries import QUERY_COUNT, generic_queries, normalize_queries
from marketsense.storage import Requirement
from tests.conftest import REQUIREMENT_ID


class TestNormalizeQueries:
    def test_truncates_extra_queries(self, requirement):
        queries = [f"q{i}" for i in range(7)]
        assert normalize_queries(queries, requirement) == queries[:5]

    def test_pads_by_position_with_generic_queries(self, requirement):
        padded = normalize_queries(["a", "b", "c"], requirement)

        generic = generic_queries(requirement)
        assert padded == ["a", "b", "c", generic[3], generic[4]]

    def test_padding_is_deterministic(self, requirement):
        assert normalize_queries([], requirement) == normalize_queries([], requirement)

    def test_empty_industry_still_yields_queries(self):
        padded = normalize_queries([], Requirement(id="req_1"))
        assert len(padded) == QUERY_COUNT
        assert all(padded)


class TestGenerateQueriesStage:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("returned", [0, 3, 5, 7])
    async def test_always_stores_exactly_five(self, ctx, generator, requirement, returned):
        generator.queries = [f"backend query {i}" for i in range(returned)]

        result = await GenerateQueriesStage(ctx).execute(REQUIREMENT_ID)

        assert result.success
        stored = ctx.research.list_queries(REQUIREMENT_ID)
        assert len(stored) == QUERY_COUNT
        assert all(q.status == "pending" for q in stored)
        assert result.data["queries"] == [q.query_text for q in stored]

    @pytest.mark.asyncio
    async def test_unparseable_response_fails_without_storing(self, ctx, generator, requirement):
        generator.queries = "I am unable to produce queries right now."

        result = await GenerateQueriesStage(ctx).execute(REQUIREMENT_ID)

        assert not result.success
        assert ctx.research.list_queries(REQUIREMENT_ID) == []

    @pytest.mark.asyncio
    async def test_existing_queries_are_not_regenerated(self, ctx, generator, requirement):
        ctx.research.add_queries(REQUIREMENT_ID, ["one", "two", "three", "four", "five"])

        result = await GenerateQueriesStage(ctx).execute(REQUIREMENT_ID)

        assert result.success
        assert generator.count("queries") == 0
        assert len(ctx.research.list_queries(REQUIREMENT_ID)) == 5

    @pytest.mark.asyncio
    async def test_context_fields_describe_unstored_requirement(self, ctx, generator):
        result = await GenerateQueriesStage(ctx).execute(
            "req_adhoc", industry_type="Maritime Logistics"
        )

        assert result.success
        [(_, prompt)] = generator.calls
        assert "Industry: Maritime Logistics" in prompt

    @pytest.mark.asyncio
    async def test_context_overrides_stored_fields(self, ctx, generator, requirement):
        await GenerateQueriesStage(ctx).execute(REQUIREMENT_ID, industry_type="EdTech")

        [(_, prompt)] = generator.calls
        assert "Industry: EdTech" in prompt
        assert requirement.problem_statement in prompt

    @pytest.mark.asyncio
    async def test_unknown_requirement_without_context_fails(self, ctx):
        result = await GenerateQueriesStage(ctx).execute("req_nowhere")

        assert not result.success
        assert "req_nowhere" in result.message

"""Tests for the recursive research tree and its orchestrator."""

import pytest

from agent_errors import LLMError, PlanningFailed
from research import ResearchPipeline, ResearchRequest, run_research
from research.concurrency import CancellationToken
from research.schemas import SerpLearnings, SerpQuery, SerpQueryList
from research.adapters import Generation
from stubs import InFlightCounter, StubLLM, StubSearch


class RecordingPipeline(ResearchPipeline):
    """Records the (level, breadth, depth) of every branch that starts."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.branches = []

    async def _research_branch(self, topic, prior_learnings, breadth, depth, level):
        self.branches.append((level, breadth, depth))
        return await super()._research_branch(topic, prior_learnings, breadth, depth, level)


def assert_unique(values):
    assert len(values) == len(set(values))


@pytest.mark.anyio
async def test_single_level_scenario():
    llm, search = StubLLM(learnings_per_query=2), StubSearch()

    result = await run_research("impact of soil pH on blueberry yield", breadth=2, depth=1, llm=llm, search=search)

    assert sorted(search.queries) == ["q0", "q1"]
    assert llm.plan_calls == 1
    assert llm.extract_calls == 2
    assert len(result.learnings) == 4
    assert len(result.learnings) <= 2 * 3
    assert len(result.visited_urls) <= 2 * 3
    assert "https://example.com/shared" in result.visited_urls
    assert_unique(result.learnings)
    assert_unique(result.visited_urls)


@pytest.mark.anyio
async def test_one_failing_search_keeps_siblings_and_their_children():
    llm, search = StubLLM(learnings_per_query=2, follow_ups=1), StubSearch(fail_on={"q1"})

    result = await run_research("topic", breadth=4, depth=2, llm=llm, search=search)

    assert not any(l.startswith("q1 ") for l in result.learnings)
    for q in ("q0", "q2", "q3"):
        assert f"{q} learning 0" in result.learnings
        assert f"{q} learning 1" in result.learnings
    # Three surviving level-1 queries spawn three children of breadth 2.
    assert llm.plan_calls == 4
    assert len(result.learnings) == 3 * 2 + 3 * 2 * 2
    assert not any("/q1/" in url for url in result.visited_urls)
    assert_unique(result.learnings)
    assert_unique(result.visited_urls)


@pytest.mark.anyio
async def test_recursion_stops_at_depth():
    llm, search = StubLLM(learnings_per_query=1, follow_ups=1), StubSearch()
    engine = RecordingPipeline(ResearchRequest("topic", breadth=2, depth=3), llm=llm, search=search)

    await engine.run()

    assert max(level for level, _, _ in engine.branches) == 3
    assert min(depth for _, _, depth in engine.branches) == 1
    assert sorted(engine.branches) == [(1, 2, 3), (2, 1, 2), (2, 1, 2), (3, 1, 1), (3, 1, 1)]
    assert llm.plan_calls == 5


@pytest.mark.anyio
async def test_all_searches_failing_yields_empty_findings():
    llm, search = StubLLM(), StubSearch(fail_all=True)

    result = await run_research("topic", breadth=3, depth=2, llm=llm, search=search)

    assert result.learnings == ()
    assert result.visited_urls == ()
    assert llm.plan_calls == 1
    assert llm.extract_calls == 0


@pytest.mark.anyio
async def test_limiter_caps_in_flight_calls_across_tree():
    counter = InFlightCounter()
    llm, search = StubLLM(counter=counter), StubSearch(counter=counter)
    engine = ResearchPipeline(ResearchRequest("topic", breadth=4, depth=2), llm=llm, search=search, concurrency=2)

    await engine.run()

    assert counter.peak == 2
    assert engine.limiter.peak <= 2
    assert engine.limiter.in_flight == 0


@pytest.mark.anyio
async def test_root_planning_failure_propagates():
    with pytest.raises(PlanningFailed):
        await run_research("topic", breadth=2, depth=2, llm=StubLLM(fail_planning=True), search=StubSearch())


class ChildPlanningFails(StubLLM):
    async def generate(self, prompt, schema, system=None):
        if schema is SerpQueryList and self.plan_calls >= 1:
            self.plan_calls += 1
            raise LLMError("planner down")
        return await super().generate(prompt, schema, system)


@pytest.mark.anyio
async def test_child_planning_failure_degrades_to_parent_findings():
    llm, search = ChildPlanningFails(learnings_per_query=2), StubSearch()

    result = await run_research("topic", breadth=2, depth=2, llm=llm, search=search)

    assert llm.plan_calls == 3
    assert set(result.learnings) == {"q0 learning 0", "q0 learning 1", "q1 learning 0", "q1 learning 1"}


@pytest.mark.anyio
async def test_extraction_retried_once_then_succeeds():
    llm = StubLLM(learnings_per_query=2, fail_extraction=1)

    result = await run_research("topic", breadth=1, depth=1, llm=llm, search=StubSearch())

    assert llm.extract_calls == 2
    assert result.learnings == ("q0 learning 0", "q0 learning 1")


@pytest.mark.anyio
async def test_extraction_failure_keeps_urls_and_session_alive():
    llm = StubLLM(fail_extraction=2)

    result = await run_research("topic", breadth=1, depth=2, llm=llm, search=StubSearch())

    assert llm.extract_calls == 2
    assert result.learnings == ()
    assert "https://example.com/q0/0" in result.visited_urls
    # No follow-ups, so no children.
    assert llm.plan_calls == 1


class CancelDuringExtraction(StubLLM):
    def __init__(self, token, **kwargs):
        super().__init__(**kwargs)
        self.token = token

    async def generate(self, prompt, schema, system=None):
        if schema is SerpLearnings:
            self.token.cancel()
        return await super().generate(prompt, schema, system)


@pytest.mark.anyio
async def test_cancellation_returns_partial_result():
    token = CancellationToken()
    llm = CancelDuringExtraction(token, learnings_per_query=2)

    result = await run_research("topic", breadth=2, depth=3, llm=llm, search=StubSearch(), cancel_token=token)

    assert llm.plan_calls == 1
    assert len(result.learnings) == 4
    assert len(result.visited_urls) == 5


@pytest.mark.anyio
async def test_expired_deadline_returns_prior_learnings():
    llm = StubLLM()

    result = await run_research("topic", prior_learnings=["known fact"], timeout=0, llm=llm, search=StubSearch())

    assert result.learnings == ("known fact",)
    assert llm.plan_calls == 0


@pytest.mark.anyio
async def test_prior_learnings_reach_planner_and_result():
    llm = StubLLM(learnings_per_query=1)

    result = await run_research("topic", breadth=1, depth=1, prior_learnings=["known fact"], llm=llm, search=StubSearch())

    assert "known fact" in llm.prompts[0]
    assert result.learnings == ("known fact", "q0 learning 0")


class SameLearningEverywhere(StubLLM):
    async def generate(self, prompt, schema, system=None):
        generation = await super().generate(prompt, schema, system)
        if schema is SerpLearnings:
            value = generation.value
            return Generation(SerpLearnings(learnings=["common fact", *value.learnings], follow_up_questions=value.follow_up_questions), generation.usage)
        return generation


@pytest.mark.anyio
async def test_learnings_deduplicated_across_branches():
    llm = SameLearningEverywhere(learnings_per_query=1)

    result = await run_research("topic", breadth=2, depth=2, llm=llm, search=StubSearch())

    assert result.learnings.count("common fact") == 1
    assert_unique(result.learnings)
    assert result.visited_urls.count("https://example.com/shared") == 1


class RepeatingPlanner(StubLLM):
    async def generate(self, prompt, schema, system=None):
        if schema is SerpQueryList:
            self.plan_calls += 1
            return Generation(SerpQueryList(queries=[SerpQuery(query="alpha"), SerpQuery(query="Beta ")]))
        return await super().generate(prompt, schema, system)


@pytest.mark.anyio
async def test_queries_never_repeat_within_session():
    llm, search = RepeatingPlanner(), StubSearch()

    await run_research("topic", breadth=2, depth=2, llm=llm, search=search)

    assert sorted(search.queries) == ["Beta", "alpha"]
    assert llm.plan_calls == 3


@pytest.mark.anyio
async def test_request_parameters_are_clamped():
    llm = StubLLM(learnings_per_query=1, follow_ups=0)
    engine = RecordingPipeline(ResearchRequest("topic", breadth=50, depth=0), llm=llm, search=StubSearch())

    await engine.run()

    assert engine.branches == [(1, 10, 1)]
    assert llm.extract_calls == 10

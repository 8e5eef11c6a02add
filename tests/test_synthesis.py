"""Tests for the feedback generator and the report synthesizer."""

import pytest

from agent_errors import FeedbackFailed, LLMError, SynthesisFailed
from research import get_feedback_questions, synthesize_report
from stubs import StubLLM


class FailingLLM:
    async def generate(self, prompt, schema, system=None):
        raise LLMError("model down")


@pytest.mark.anyio
async def test_feedback_questions_keep_order():
    llm = StubLLM(feedback=["Which regions?", "Which time period?", "How technical?"])

    questions = await get_feedback_questions("quantum computing", num_questions=3, llm=llm)

    assert questions == ["Which regions?", "Which time period?", "How technical?"]
    assert "<query>quantum computing</query>" in llm.prompts[0]


@pytest.mark.anyio
async def test_feedback_questions_are_capped():
    llm = StubLLM(feedback=["one?", "", "two?", "three?"])

    assert await get_feedback_questions("topic", num_questions=2, llm=llm) == ["one?", "two?"]


@pytest.mark.anyio
async def test_feedback_failure_is_fatal():
    with pytest.raises(FeedbackFailed):
        await get_feedback_questions("topic", llm=FailingLLM())


@pytest.mark.anyio
async def test_report_embeds_learnings_and_appends_sources():
    llm = StubLLM(report="# Blueberries\n\nSoil matters.")
    urls = ["https://example.com/a", "https://example.com/b"]

    report = await synthesize_report("blueberry yield", ["pH 4.5 is optimal"], urls, llm=llm)

    assert report.markdown.startswith("# Blueberries\n\nSoil matters.")
    assert report.markdown.endswith("## Sources\n\n- https://example.com/a\n- https://example.com/b\n")
    assert "pH 4.5 is optimal" in llm.prompts[0]
    assert "https://example.com/b" in llm.prompts[0]
    assert report.usage.total_tokens == 15


@pytest.mark.anyio
async def test_report_replaces_model_written_sources():
    llm = StubLLM(report="# Report\n\nBody.\n\n## References\n\n- made up link")

    report = await synthesize_report("p", ["l"], ["https://example.com/real"], llm=llm)

    assert "made up link" not in report.markdown
    assert report.markdown.count("## Sources") == 1


@pytest.mark.anyio
async def test_report_is_deterministic():
    args = ("prompt", ["a", "b"], ["https://example.com/x"])

    first = await synthesize_report(*args, llm=StubLLM())
    second = await synthesize_report(*args, llm=StubLLM())

    assert first.markdown == second.markdown


@pytest.mark.anyio
async def test_synthesis_failure_is_fatal():
    with pytest.raises(SynthesisFailed):
        await synthesize_report("p", ["l"], [], llm=FailingLLM())

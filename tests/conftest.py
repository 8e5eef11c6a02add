"""Stub adapters and fixtures shared by the research engine tests."""

import pytest

from agent_config import Settings
from stubs import StubLLM, StubSearch


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    monkeypatch.setattr(Settings, "EXTRACTION_BACKOFF", 0.0)
    monkeypatch.setattr(Settings, "BREADTH_DECAY", "halve")
    monkeypatch.setattr(Settings, "LEARNINGS_PER_QUERY", 3)


@pytest.fixture
def stub_llm():
    return StubLLM()


@pytest.fixture
def stub_search():
    return StubSearch()

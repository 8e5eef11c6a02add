# research/state.py
import asyncio
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from agent_config import Settings
from agent_helpers import normalize_query


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


def next_breadth(breadth: int, policy: Optional[str] = None) -> int:
    """Breadth for the next recursion level. Never increases and never drops below 1."""
    policy = policy or Settings.BREADTH_DECAY
    if policy == "decrement":
        return max(1, breadth - 1)
    if policy == "halve":
        return max(1, math.ceil(breadth / 2))
    raise ValueError(f"Unknown breadth decay policy: {policy!r}")


@dataclass(frozen=True)
class ResearchRequest:
    """
    Parameters of one research session.

    Breadth and depth are clamped to their allowed ranges on construction,
    so a request is always valid once it exists.
    """
    topic: str
    breadth: int = Settings.DEFAULT_BREADTH
    depth: int = Settings.DEFAULT_DEPTH
    prior_learnings: Tuple[str, ...] = ()
    search_provider_key: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "breadth", _clamp(self.breadth, 1, Settings.MAX_BREADTH))
        object.__setattr__(self, "depth", _clamp(self.depth, 1, Settings.MAX_DEPTH))
        object.__setattr__(self, "prior_learnings", tuple(self.prior_learnings or ()))


@dataclass(frozen=True)
class SubQuery:
    text: str
    research_goal: str = ""


@dataclass(frozen=True)
class SearchResult:
    url: str
    title: str
    content: str


@dataclass
class Findings:
    """Learnings and URLs gathered by one branch, in discovery order."""
    learnings: List[str] = field(default_factory=list)
    visited_urls: List[str] = field(default_factory=list)

    def add(self, learnings: Iterable[str] = (), urls: Iterable[str] = ()):
        for learning in learnings:
            if learning and learning not in self.learnings:
                self.learnings.append(learning)
        for url in urls:
            if url and url not in self.visited_urls:
                self.visited_urls.append(url)

    def update(self, other: "Findings"):
        self.add(other.learnings, other.visited_urls)


@dataclass(frozen=True)
class ResearchResult:
    learnings: Tuple[str, ...] = ()
    visited_urls: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Usage:
    model: Optional[str] = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @property
    def cost(self) -> float:
        """Estimated cost in USD using the configured per-1k token prices."""
        return (self.prompt_tokens * Settings.PROMPT_COST_PER_1K + self.completion_tokens * Settings.COMPLETION_COST_PER_1K) / 1000

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            model=self.model or other.model,
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass(frozen=True)
class Report:
    markdown: str
    usage: Usage = field(default_factory=Usage)


class ResearchAccumulator:
    """
    Session-wide store of learnings, visited URLs and issued query texts.

    Branches never touch the underlying collections. They submit their local
    findings through `merge` and reserve query texts through `claim_queries`,
    both serialized by a single lock. Dicts keep insertion order so reports
    list learnings in discovery order.
    """
    def __init__(self, prior_learnings: Iterable[str] = ()):
        self._learnings: Dict[str, None] = dict.fromkeys(l for l in prior_learnings if l)
        self._urls: Dict[str, None] = {}
        self._queries: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def merge(self, findings: Findings):
        async with self._lock:
            for learning in findings.learnings:
                self._learnings.setdefault(learning, None)
            for url in findings.visited_urls:
                self._urls.setdefault(url, None)

    async def claim_queries(self, sub_queries: Iterable[SubQuery]) -> List[SubQuery]:
        """Records the given queries and returns only those not issued before in this session."""
        claimed = []
        async with self._lock:
            for sq in sub_queries:
                key = normalize_query(sq.text)
                if not key or key in self._queries: continue
                self._queries[key] = sq.text
                claimed.append(sq)
        return claimed

    @property
    def issued_queries(self) -> List[str]:
        return list(self._queries.values())

    async def snapshot(self) -> ResearchResult:
        async with self._lock:
            return ResearchResult(learnings=tuple(self._learnings), visited_urls=tuple(self._urls))

# research/pipeline.py
import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from agent_config import SCRIPT_VERSION, Settings
from agent_errors import ExtractionFailed, ResearchError
from agent_helpers import hash_txt
from research.actions import ActionComponent
from research.adapters import LanguageModel, SearchProvider, build_search_provider
from research.analysis import LearningExtractor
from research.concurrency import CancellationToken, ConcurrencyLimiter
from research.planning import QueryPlanner
from research.state import (Findings, ResearchAccumulator, ResearchRequest,
                            ResearchResult, SearchResult, SubQuery,
                            next_breadth)
from research.ui import UIMonitor


class ResearchPipeline:
    """
    The orchestrator for one research session.

    Owns the session's accumulator and concurrency limiter and drives the
    recursive research tree. Each branch plans sub-queries, searches them
    concurrently, extracts learnings and follow-ups from the results, then
    spawns one child branch per sub-query that produced follow-ups, with
    decayed breadth and one less depth. Branches submit their own findings to
    the accumulator once; only a failure of the root branch's planning step
    reaches the caller.
    """
    def __init__(self, request: ResearchRequest, llm: Optional[LanguageModel] = None, search: Optional[SearchProvider] = None,
                 concurrency: Optional[int] = None, ui: Optional[UIMonitor] = None, cancel_token: Optional[CancellationToken] = None):
        self.request = request
        self.logger = logging.getLogger(f"deep-research.{hash_txt(request.topic)[:6]}")
        self.llm = llm or LanguageModel(logger=self.logger)
        self.search = search or build_search_provider(request.search_provider_key)
        self.limiter = ConcurrencyLimiter(concurrency or Settings.CONCURRENCY_LIMIT)
        self.accumulator = ResearchAccumulator(request.prior_learnings)
        self.cancel_token = cancel_token or CancellationToken()
        self.ui = ui

        # Initialize components
        self.planning = QueryPlanner(self.llm, self.limiter, self.logger)
        self.actions = ActionComponent(self.search, self.limiter, self.logger)
        self.extraction = LearningExtractor(self.llm, self.limiter, self.logger)

        self.logger.info(f"--- Research-Engine v{SCRIPT_VERSION} initialized for query: '{request.topic}' (breadth={request.breadth}, depth={request.depth}) ---")

    async def run(self) -> ResearchResult:
        """Researches the request's topic and returns everything learned. Raises PlanningFailed if the root cannot plan."""
        self.logger.info("--- Starting Research Pipeline ---")
        if self.ui: self.ui.start(self.request.topic, self.request.breadth, self.request.depth)

        if self.cancel_token.cancelled:
            self.logger.warning("Session was cancelled before it started. Returning prior learnings only.")
        else:
            await self._research_branch(self.request.topic, self.request.prior_learnings, self.request.breadth, self.request.depth, level=1)

        result = await self.accumulator.snapshot()
        self.logger.info(f"--- Research finished: {len(result.learnings)} learnings, {len(result.visited_urls)} URLs, peak concurrency {self.limiter.peak}/{self.limiter.capacity} ---")
        if self.ui: self.ui.show_result(list(result.learnings), list(result.visited_urls))
        return result

    async def _research_branch(self, topic: str, prior_learnings: Sequence[str], breadth: int, depth: int, level: int) -> Findings:
        # Planning
        planned = await self.planning.plan(topic, prior_learnings, breadth, self.accumulator.issued_queries)
        sub_queries = await self.accumulator.claim_queries(planned)
        if not sub_queries:
            self.logger.info(f"Level {level}: no new queries planned. Branch is terminal.")
            return Findings()
        if self.ui: self.ui.show_queries(level, depth, [sq.text for sq in sub_queries])

        # Searching
        searched = await self.actions.act(sub_queries)
        findings = Findings()
        for _, results, ok in searched:
            if ok: findings.add(urls=[r.url for r in results])

        # Extracting
        num_follow_ups = next_breadth(breadth)
        extracted = await asyncio.gather(*(self._extract(sq, results, num_follow_ups) for sq, results, _ in searched))
        child_topics = []
        for (sub_query, results, _), (learnings, follow_ups) in zip(searched, extracted):
            findings.add(learnings=learnings)
            if self.ui: self.ui.query_done(sub_query.text, len(results), len(learnings))
            if follow_ups:
                child_topics.append(self._child_topic(sub_query, follow_ups))
        await self.accumulator.merge(findings)

        # Recursing
        if depth - 1 <= 0:
            self.logger.info(f"Level {level}: depth exhausted with {len(findings.learnings)} learnings. Branch is terminal.")
            return findings
        if not child_topics:
            return findings
        if self.cancel_token.cancelled:
            self.logger.warning(f"Level {level}: session cancelled, not spawning {len(child_topics)} child branches.")
            return findings

        child_learnings = list(dict.fromkeys([*prior_learnings, *findings.learnings]))
        child_breadth, child_depth = next_breadth(breadth), depth - 1
        self.logger.info(f"Level {level}: spawning {len(child_topics)} child branches (breadth={child_breadth}, depth={child_depth}).")
        child_findings = await asyncio.gather(*(self._spawn_child(t, child_learnings, child_breadth, child_depth, level + 1) for t in child_topics))

        combined = Findings()
        combined.update(findings)
        for child in child_findings:
            combined.update(child)
        return combined

    async def _spawn_child(self, topic: str, prior_learnings: Sequence[str], breadth: int, depth: int, level: int) -> Findings:
        if self.cancel_token.cancelled:
            self.logger.warning(f"Level {level}: session cancelled, skipping branch '{topic[:80]}'.")
            return Findings()
        try:
            return await self._research_branch(topic, prior_learnings, breadth, depth, level)
        except ResearchError as e:
            self.logger.warning(f"Level {level}: branch '{topic[:80]}' aborted ({e}). Continuing with sibling branches.")
            return Findings()

    async def _extract(self, sub_query: SubQuery, results: List[SearchResult], num_follow_ups: int) -> Tuple[List[str], List[str]]:
        if not results:
            return [], []
        try:
            return await self.extraction.extract(sub_query, results, num_learnings=Settings.LEARNINGS_PER_QUERY, num_follow_ups=num_follow_ups)
        except ExtractionFailed as e:
            self.logger.warning(f"{e}. Query contributes no learnings.")
            return [], []

    @staticmethod
    def _child_topic(sub_query: SubQuery, follow_ups: Sequence[str]) -> str:
        goal = sub_query.research_goal or sub_query.text
        directions = "\n".join(f"- {f}" for f in follow_ups)
        return f"Previous research goal: {goal}\nFollow-up research directions:\n{directions}"


async def run_research(topic: str, breadth: int = Settings.DEFAULT_BREADTH, depth: int = Settings.DEFAULT_DEPTH, prior_learnings: Sequence[str] = (),
                       search_provider_key: Optional[str] = None, *, timeout: Optional[float] = None, llm: Optional[LanguageModel] = None,
                       search: Optional[SearchProvider] = None, concurrency: Optional[int] = None, ui: Optional[UIMonitor] = None,
                       cancel_token: Optional[CancellationToken] = None) -> ResearchResult:
    """
    Public API function to run one research session.

    `timeout` (seconds) or `cancel_token` stop the session from spawning new
    branches; whatever was learned so far is still returned.
    """
    request = ResearchRequest(topic=topic, breadth=breadth, depth=depth, prior_learnings=tuple(prior_learnings), search_provider_key=search_provider_key)
    token = cancel_token or CancellationToken(timeout=timeout)
    engine = ResearchPipeline(request, llm=llm, search=search, concurrency=concurrency, ui=ui, cancel_token=token)
    return await engine.run()

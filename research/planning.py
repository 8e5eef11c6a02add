# research/planning.py
import json
import logging
from typing import List, Sequence

from agent_config import PROMPTS
from agent_errors import LLMError, PlanningFailed
from agent_helpers import normalize_query
from research.concurrency import ConcurrencyLimiter
from research.schemas import SerpQueryList
from research.state import SubQuery


class QueryPlanner:
    """
    Turns a topic plus accumulated learnings into a bounded set of sub-queries.

    The planner is shown the session's previously issued queries and also drops
    any repeats itself, so every returned text is new to the session at the
    time of planning.
    """
    def __init__(self, llm, limiter: ConcurrencyLimiter, logger: logging.Logger):
        self.llm = llm
        self.limiter = limiter
        self.logger = logger

    def _build_prompt(self, topic: str, prior_learnings: Sequence[str], breadth: int, previous_queries: Sequence[str]) -> str:
        prompt = PROMPTS.SERP_QUERIES.format(count=breadth, topic=topic)
        if prior_learnings:
            learnings = "\n".join(prior_learnings)
            prompt += f"\n\nHere are some learnings from previous research, use them to generate more specific queries:\n{learnings}"
        if previous_queries:
            prompt += f"\n\nThese queries were already executed, do NOT repeat them or create very similar ones:\n{json.dumps(list(previous_queries), indent=2)}"
        return prompt

    async def plan(self, topic: str, prior_learnings: Sequence[str], breadth: int, previous_queries: Sequence[str] = ()) -> List[SubQuery]:
        self.logger.info(f"--- Planning up to {breadth} queries for: '{topic[:120]}' ---")
        prompt = self._build_prompt(topic, prior_learnings, breadth, previous_queries)
        try:
            async with self.limiter:
                generation = await self.llm.generate(prompt, SerpQueryList)
        except LLMError as e:
            self.logger.error(f"Query planning failed for '{topic[:120]}': {e}")
            raise PlanningFailed(f"Could not plan queries for '{topic[:120]}': {e}") from e

        seen = {normalize_query(q) for q in previous_queries}
        sub_queries = []
        for item in generation.value.queries:
            key = normalize_query(item.query)
            if not key or key in seen:
                self.logger.debug(f"Dropping empty or repeated query: '{item.query}'")
                continue
            seen.add(key)
            sub_queries.append(SubQuery(text=item.query.strip(), research_goal=item.research_goal.strip()))
            if len(sub_queries) >= breadth: break

        self.logger.info(f"Planned {len(sub_queries)} queries: {[sq.text for sq in sub_queries]}")
        return sub_queries

# research/analysis.py
import asyncio
import logging
from typing import List, Sequence, Tuple

from agent_config import PROMPTS, Settings
from agent_errors import ExtractionFailed, LLMError
from research.concurrency import ConcurrencyLimiter
from research.schemas import SerpLearnings
from research.state import SearchResult, SubQuery


class LearningExtractor:
    """
    Turns the search results of one sub-query into learnings and follow-up directions.

    A failed model call is retried with exponential backoff. The limiter permit
    is released while waiting between attempts.
    """
    def __init__(self, llm, limiter: ConcurrencyLimiter, logger: logging.Logger):
        self.llm = llm
        self.limiter = limiter
        self.logger = logger

    def _build_prompt(self, sub_query: SubQuery, results: Sequence[SearchResult], num_learnings: int, num_follow_ups: int) -> str:
        contents = "\n".join(f"<content url=\"{r.url}\">\n{r.content}\n</content>" for r in results)
        return PROMPTS.SERP_LEARNINGS.format(query=sub_query.text, num_learnings=num_learnings, num_follow_ups=num_follow_ups,
                                             research_goal=sub_query.research_goal or "N/A", contents=contents)

    async def extract(self, sub_query: SubQuery, results: Sequence[SearchResult], num_learnings: int = Settings.LEARNINGS_PER_QUERY, num_follow_ups: int = Settings.LEARNINGS_PER_QUERY) -> Tuple[List[str], List[str]]:
        prompt = self._build_prompt(sub_query, results, num_learnings, num_follow_ups)
        attempts = 1 + Settings.EXTRACTION_RETRIES
        for attempt in range(attempts):
            try:
                async with self.limiter:
                    generation = await self.llm.generate(prompt, SerpLearnings)
                break
            except LLMError as e:
                if attempt + 1 >= attempts:
                    raise ExtractionFailed(sub_query.text, attempts, str(e)) from e
                delay = Settings.EXTRACTION_BACKOFF * (2 ** attempt)
                self.logger.warning(f"Extraction for '{sub_query.text}' failed ({e}). Retrying in {delay:.1f}s.")
                await asyncio.sleep(delay)

        value: SerpLearnings = generation.value
        learnings = [l.strip() for l in value.learnings if l and l.strip()][:num_learnings]
        follow_ups = [f.strip() for f in value.follow_up_questions if f and f.strip()][:num_follow_ups]
        self.logger.info(f"Extracted {len(learnings)} learnings and {len(follow_ups)} follow-ups for '{sub_query.text}'.")
        return learnings, follow_ups

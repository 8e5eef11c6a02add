# research/actions.py
import asyncio
import logging
from typing import List, Sequence, Tuple

from agent_errors import SearchFailed, SearchProviderError
from research.concurrency import ConcurrencyLimiter
from research.state import SearchResult, SubQuery


class ActionComponent:
    """
    Executes the searches of one branch.

    All sub-queries are searched concurrently, each behind the session's
    limiter. A failing search only empties its own result set, so one bad
    query never aborts its siblings.
    """
    def __init__(self, search, limiter: ConcurrencyLimiter, logger: logging.Logger):
        self.search = search
        self.limiter = limiter
        self.logger = logger

    async def _run_search(self, sub_query: SubQuery) -> List[SearchResult]:
        try:
            async with self.limiter:
                return list(await self.search.search(sub_query.text))
        except (SearchProviderError, asyncio.TimeoutError) as e:
            raise SearchFailed(sub_query.text, str(e) or type(e).__name__) from e

    async def _search_one(self, sub_query: SubQuery) -> Tuple[List[SearchResult], bool]:
        try:
            results = await self._run_search(sub_query)
        except SearchFailed as e:
            self.logger.warning(f"{e}. Treating as zero results.")
            return [], False
        self.logger.info(f"Search for '{sub_query.text}' returned {len(results)} results.")
        return results, True

    async def act(self, sub_queries: Sequence[SubQuery]) -> List[Tuple[SubQuery, List[SearchResult], bool]]:
        """
        Searches every sub-query.

        Returns one (sub_query, results, succeeded) tuple per sub-query, in input order.
        """
        self.logger.info(f"--- Agent Step: Searching {len(sub_queries)} queries ---")
        outcomes = await asyncio.gather(*(self._search_one(sq) for sq in sub_queries))
        return [(sq, results, ok) for sq, (results, ok) in zip(sub_queries, outcomes)]

# agent_errors.py


# --------------------------------------------------------------------------- #
#  Adapter errors
# --------------------------------------------------------------------------- #
class LLMError(Exception):
    """The language model could not produce a usable structured response."""


class SearchProviderError(Exception):
    """The search provider failed, timed out or returned an unusable payload."""


# --------------------------------------------------------------------------- #
#  Research errors
# --------------------------------------------------------------------------- #
class ResearchError(Exception):
    """Base class for errors raised by the research components."""


class PlanningFailed(ResearchError):
    """No sub-queries could be planned. Fatal for the branch it occurs in."""


class SearchFailed(ResearchError):
    """A single sub-query's search failed. Degrades to an empty result set."""

    def __init__(self, query: str, reason: str):
        super().__init__(f"Search failed for '{query}': {reason}")
        self.query = query
        self.reason = reason


class ExtractionFailed(ResearchError):
    """Learnings could not be extracted after retrying. Degrades to no learnings."""

    def __init__(self, query: str, attempts: int, reason: str):
        super().__init__(f"Extraction failed for '{query}' after {attempts} attempt(s): {reason}")
        self.query = query
        self.attempts = attempts


class FeedbackFailed(ResearchError):
    pass


class SynthesisFailed(ResearchError):
    pass

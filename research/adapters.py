# research/adapters.py
import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from agent_config import PROMPTS, Settings, log
from agent_errors import LLMError, SearchProviderError
from agent_helpers import (a_chat, extract_json_from_response, fetch_clean,
                           firecrawl_search, searx_search, trim_text)
from research.state import SearchResult, Usage

T = TypeVar("T", bound=BaseModel)


# --------------------------------------------------------------------------- #
#  Language Model Adapter
# --------------------------------------------------------------------------- #
@dataclass
class Generation:
    value: Any
    usage: Usage = field(default_factory=Usage)


def system_prompt() -> str:
    return PROMPTS.SYSTEM.format(today=date.today().isoformat())


class LanguageModel:
    """
    Structured text generation on top of the chat completion client.

    Every call asks the model for one JSON object matching `schema` and returns
    the validated pydantic instance. Token usage is summed in `total_usage`.
    """
    def __init__(self, model: Optional[str] = None, temp: float = 0.5, max_tokens: int = 4096, logger: Optional[logging.Logger] = None):
        self.model = model
        self.temp = temp
        self.max_tokens = max_tokens
        self.logger = logger or log
        self.total_usage = Usage()

    async def generate(self, prompt: str, schema: Type[T], system: Optional[str] = None) -> Generation:
        json_hint = PROMPTS.JSON_INSTRUCTIONS.format(schema=json.dumps(schema.model_json_schema()))
        messages = [{"role": "system", "content": f"{system or system_prompt()}\n\n{json_hint}"},
                    {"role": "user", "content": prompt}]
        raw, raw_usage = await a_chat(messages, model=self.model, temp=self.temp, max_tokens=self.max_tokens, json_mode=True)
        usage = Usage(**raw_usage)
        self.total_usage = self.total_usage + usage

        json_to_parse = extract_json_from_response(raw)
        if not json_to_parse:
            raise LLMError(f"No JSON object found in language model response for {schema.__name__}.")
        try:
            value = schema.model_validate_json(json_to_parse)
        except ValidationError as e:
            self.logger.debug(f"Invalid {schema.__name__} payload: >>>{json_to_parse}<<<")
            raise LLMError(f"Language model response does not match {schema.__name__}: {e}") from e
        return Generation(value=value, usage=usage)


# --------------------------------------------------------------------------- #
#  Search Provider Adapter
# --------------------------------------------------------------------------- #
class SearchProvider:
    """Uniform search-and-extract interface. Implementations raise SearchProviderError."""
    name = "base"

    def __init__(self, limit: int = Settings.SEARCH_RESULTS):
        self.limit = limit

    async def search(self, query: str) -> List[SearchResult]:
        raise NotImplementedError


class SearxSearchProvider(SearchProvider):
    """SearXNG for discovery, then each hit is fetched and cleaned locally."""
    name = "searx"

    async def search(self, query: str) -> List[SearchResult]:
        hits = await searx_search(query, limit=self.limit)
        hits = [h for h in hits if isinstance(h, dict) and h.get("url")]
        contents = await asyncio.gather(*(fetch_clean(h["url"]) for h in hits))
        results = []
        for hit, content in zip(hits, contents):
            text = content or hit.get("snippet", "")
            if not text: continue
            results.append(SearchResult(url=hit["url"], title=hit.get("title") or "Untitled", content=trim_text(text)))
        return results


class FirecrawlSearchProvider(SearchProvider):
    """Firecrawl search with markdown scraping of every hit."""
    name = "firecrawl"

    def __init__(self, api_key: Optional[str] = None, limit: int = Settings.SEARCH_RESULTS, timeout: float = Settings.SEARCH_TIMEOUT):
        super().__init__(limit)
        self.api_key = api_key or Settings.FIRECRAWL_KEY
        self.timeout = timeout

    async def search(self, query: str) -> List[SearchResult]:
        items = await firecrawl_search(query, self.api_key, limit=self.limit, timeout=self.timeout)
        results = []
        for item in items:
            if not isinstance(item, dict):
                log.debug(f"Skipping malformed Firecrawl item: {item!r:.80}")
                continue
            url = item.get("url")
            content = item.get("markdown") or item.get("description") or ""
            if not url or not isinstance(url, str) or not isinstance(content, str) or not content: continue
            metadata = item.get("metadata")
            if not isinstance(metadata, dict): metadata = {}
            title = item.get("title") or metadata.get("title") or "Untitled"
            results.append(SearchResult(url=url, title=title, content=trim_text(content)))
        return results


def build_search_provider(api_key: Optional[str] = None) -> SearchProvider:
    """A per-request key always selects Firecrawl, otherwise SEARCH_PROVIDER decides."""
    if api_key or Settings.SEARCH_PROVIDER == "firecrawl":
        provider: SearchProvider = FirecrawlSearchProvider(api_key=api_key)
    elif Settings.SEARCH_PROVIDER == "searx":
        provider = SearxSearchProvider()
    else:
        raise SearchProviderError(f"Unknown search provider: {Settings.SEARCH_PROVIDER!r}")
    log.info(f"Using search provider '{provider.name}' (limit={provider.limit}).")
    return provider

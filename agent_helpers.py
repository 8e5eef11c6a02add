# agent_helpers.py
import asyncio
import hashlib
import json
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote_plus

import aiohttp
import fitz
from bs4 import BeautifulSoup
from curl_cffi.requests import AsyncSession
from openai import AsyncAzureOpenAI, AsyncOpenAI, OpenAIError, Timeout

from agent_config import Settings, log
from agent_errors import LLMError, SearchProviderError

# --------------------------------------------------------------------------- #
# 1.  API Clients & Wrappers
# --------------------------------------------------------------------------- #
_chat_client: Optional[AsyncOpenAI] = None

def get_chat_client() -> AsyncOpenAI:
    global _chat_client
    if _chat_client is None:
        if Settings.AZURE_CHAT_ENDPOINT:
            log.debug("Initializing Azure Chat Client...")
            _chat_client = AsyncAzureOpenAI(api_key=Settings.AZURE_CHAT_API_KEY, api_version=Settings.AZURE_API_VERSION, azure_endpoint=Settings.AZURE_CHAT_ENDPOINT, timeout=Timeout(Settings.CLIENT_TIMEOUT), max_retries=Settings.CLIENT_MAX_RETRIES)
        else:
            log.debug("Initializing OpenAI Chat Client...")
            _chat_client = AsyncOpenAI(api_key=Settings.OPENAI_API_KEY, base_url=Settings.OPENAI_ENDPOINT or None, timeout=Timeout(Settings.CLIENT_TIMEOUT), max_retries=Settings.CLIENT_MAX_RETRIES)
    return _chat_client

def default_model() -> str:
    return Settings.AZURE_DEPLOYMENT if Settings.AZURE_CHAT_ENDPOINT else Settings.OPENAI_MODEL

async def a_chat(messages: List[Dict[str, Any]], model: Optional[str] = None, temp: float = 0.5, max_tokens: int = 2048, json_mode: bool = False) -> Tuple[str, Dict[str, Any]]:
    """Sends a chat completion request and returns the reply text with its token usage.

    Raises LLMError on any client failure or empty reply.
    """
    model = model or default_model()
    log.debug(f"Sending chat request to model '{model}' with {len(messages)} messages. Max tokens: {max_tokens}")
    kwargs: Dict[str, Any] = {"model": model, "temperature": temp, "max_tokens": max_tokens, "messages": messages}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    try:
        rsp = await get_chat_client().chat.completions.create(**kwargs)
    except OpenAIError as e:
        log.error(f"Chat request failed: {e}")
        raise LLMError(f"Could not get response from language model. {e}") from e
    content = rsp.choices[0].message.content if rsp.choices else None
    if not content or not content.strip():
        raise LLMError("Language model returned an empty response.")
    usage = {
        "model": getattr(rsp, "model", None) or model,
        "prompt_tokens": rsp.usage.prompt_tokens if rsp.usage else 0,
        "completion_tokens": rsp.usage.completion_tokens if rsp.usage else 0,
        "total_tokens": rsp.usage.total_tokens if rsp.usage else 0,
    }
    log.debug(f"Chat request successful. Tokens used: {usage['total_tokens']}")
    return content.strip(), usage

# --------------------------------------------------------------------------- #
# 2.  Content Fetching & Parsing
# --------------------------------------------------------------------------- #
async def parse_pdf_bytes(pdf_bytes: bytes) -> str:
    def parse_fitz():
        text = ""
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            for page in doc: text += page.get_text()
        return text
    try:
        text = await asyncio.to_thread(parse_fitz)
    except Exception as e:
        log.warning(f"PyMuPDF (fitz) failed to parse PDF. Error: {e}")
        return ""
    if len(text) < Settings.PDF_MIN_TEXT_LENGTH:
        log.info(f"PyMuPDF extracted only {len(text)} chars (threshold: {Settings.PDF_MIN_TEXT_LENGTH}). This might be a scanned PDF.")
    else:
        log.debug(f"PyMuPDF successfully extracted {len(text)} characters.")
    return text

def clean_html(content: str) -> str:
    soup = BeautifulSoup(content, "html.parser")
    for bad in soup(["script", "style", "nav", "header", "footer", "aside", "form"]): bad.decompose()
    return re.sub(r"\s+", " ", soup.get_text(" ", strip=True))

async def fetch_clean(url: str) -> str:
    """Fetches a page and returns its visible text. Returns an empty string on failure."""
    if not url: return ""
    TOUGH_DOMAINS = ['sciencedirect.com', 'onlinelibrary.wiley.com', 'mdpi.com', 'ieee.org', 'acs.org', 'researchgate.net']
    use_impersonation = any(domain in url for domain in TOUGH_DOMAINS)
    try:
        if use_impersonation:
            log.debug(f"Using impersonation (curl_cffi) for tough domain: {url[:80]}...")
            async with AsyncSession(impersonate="chrome110", timeout=Settings.FETCH_TIMEOUT) as ses:
                resp = await ses.get(url)
                resp.raise_for_status()
                content_type = resp.headers.get('Content-Type', '').lower()
                if 'application/pdf' in content_type: return trim_text(await parse_pdf_bytes(resp.content))
                content = resp.text
        else:
            log.debug(f"Using standard fetch (aiohttp) for: {url[:80]}...")
            headers = {'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8','User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) Gecko/20100101 Firefox/115.0'}
            async with aiohttp.ClientSession(headers=headers) as ses:
                async with ses.get(url, timeout=aiohttp.ClientTimeout(total=Settings.FETCH_TIMEOUT), allow_redirects=True) as resp:
                    resp.raise_for_status()
                    content_type = resp.headers.get('Content-Type', '').lower()
                    if 'application/pdf' in content_type: return trim_text(await parse_pdf_bytes(await resp.read()))
                    content = await resp.text()
        text = clean_html(content)
        log.info(f"Successfully fetched and cleaned URL. Content length: {len(text)}. URL: {url[:80]}...")
        return trim_text(text)
    except Exception as e:
        log.warning(f"Fetch/Parse error for {url[:80]}... ({e})")
        return ""

# --------------------------------------------------------------------------- #
# 3.  Search Providers
# --------------------------------------------------------------------------- #
async def searx_search(query: str, limit: int = Settings.SEARCH_RESULTS) -> List[Dict[str, str]]:
    url = Settings.SEARX_URL + quote_plus(query) + "&format=json"
    log.debug(f"Sending search request to SearXNG for query: '{query}'")
    try:
        async with aiohttp.ClientSession() as ses:
            async with ses.get(url, timeout=aiohttp.ClientTimeout(total=Settings.SEARCH_TIMEOUT)) as r:
                r.raise_for_status()
                j = await r.json()
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        log.error(f"SearXNG search failed for query '{query}': {e}")
        raise SearchProviderError(f"SearXNG search failed: {e}") from e
    hits = j.get("results") if isinstance(j, dict) else None
    if not isinstance(hits, list):
        raise SearchProviderError(f"SearXNG returned an unexpected payload: {type(j).__name__}")
    results = [{"title": res.get("title", ""), "url": res.get("url", ""), "snippet": res.get("content", "")} for res in hits if isinstance(res, dict)][:limit]
    log.debug(f"SearXNG returned {len(results)} results.")
    return results

async def firecrawl_search(query: str, api_key: Optional[str], limit: int = Settings.SEARCH_RESULTS, timeout: float = Settings.SEARCH_TIMEOUT) -> List[Dict[str, Any]]:
    if not api_key:
        raise SearchProviderError("No Firecrawl API key configured.")
    headers = {"Authorization": f"Bearer {api_key}", "Accept": "application/json", "Content-Type": "application/json"}
    payload = {"query": query, "limit": limit, "timeout": int(timeout * 1000), "scrapeOptions": {"formats": ["markdown"]}}
    log.debug(f"Sending search request to Firecrawl for query: '{query}' (limit={limit})")
    try:
        async with aiohttp.ClientSession(headers=headers) as ses:
            async with ses.post(f"{Settings.FIRECRAWL_BASE_URL}/v1/search", json=payload, timeout=aiohttp.ClientTimeout(total=timeout + 5)) as r:
                if r.status != 200:
                    raise SearchProviderError(f"Firecrawl search failed with status {r.status}")
                j = await r.json()
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        log.error(f"Firecrawl search failed for query '{query}': {e}")
        raise SearchProviderError(f"Firecrawl search failed: {e}") from e
    data = j.get("data") if isinstance(j, dict) else None
    if not isinstance(data, list):
        raise SearchProviderError(f"Firecrawl returned an unexpected payload: {type(j).__name__}")
    data = [item for item in data if isinstance(item, dict)]
    log.debug(f"Firecrawl returned {len(data)} results.")
    return data[:limit]

# --------------------------------------------------------------------------- #
# 4.  Utilities
# --------------------------------------------------------------------------- #
def hash_txt(txt: str) -> str: return hashlib.sha1(txt.encode()).hexdigest()

def trim_text(text: str, max_chars: int = Settings.MAX_CONTENT_CHARS) -> str:
    if not text or len(text) <= max_chars: return text or ""
    cut = text[:max_chars]
    # Prefer ending on a paragraph or sentence boundary in the last fifth of the window.
    for sep in ("\n\n", "\n", ". "):
        idx = cut.rfind(sep)
        if idx >= max_chars * 0.8:
            return cut[:idx + len(sep)].rstrip()
    return cut

def normalize_query(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip().casefold()

def extract_json_from_response(raw_response: str) -> Optional[str]:
    """Extracts a JSON string from an LLM response, handling markdown and other noise."""
    # 1. The entire response is the JSON (json_mode replies). String values may hold ``` fences.
    potential_json_str = raw_response.strip()
    try:
        json.loads(potential_json_str)
        log.debug("Identified raw LLM response as JSON.")
        return potential_json_str
    except json.JSONDecodeError:
        log.debug("Raw LLM response is not direct JSON, looking for a markdown block.")

    # 2. Check for ```json ... ``` markdown block
    markdown_match = re.search(r"```(?:json)?\s*(.*?)\s*```", raw_response, re.DOTALL | re.IGNORECASE)
    if markdown_match:
        log.debug("Extracted JSON from markdown block.")
        return markdown_match.group(1).strip()

    # 3. Greedy regex for an embedded object
    object_match = re.search(r'(\{.*\})', raw_response, re.DOTALL) # Greedy
    if object_match:
        log.debug("Extracted JSON object using greedy regex.")
        return object_match.group(1).strip()

    log.warning(f"Could not extract a JSON string from response. Raw: {raw_response}")
    return None

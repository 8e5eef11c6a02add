# agent_config.py
import os
import logging
import dotenv

dotenv.load_dotenv()

# --------------------------------------------------------------------------- #
#  Configuration
# --------------------------------------------------------------------------- #
class Settings:
    # --- MODEL & API ---
    OPENAI_API_KEY             = os.getenv("OPENAI_API_KEY")
    OPENAI_ENDPOINT            = os.getenv("OPENAI_ENDPOINT")
    OPENAI_MODEL               = os.getenv("OPENAI_MODEL", "gpt-4o")
    AZURE_CHAT_ENDPOINT        = os.getenv("AZURE_CHAT_ENDPOINT")
    AZURE_CHAT_API_KEY         = os.getenv("AZURE_CHAT_API_KEY")
    AZURE_DEPLOYMENT           = os.getenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4o")
    AZURE_API_VERSION          = os.getenv("AZURE_OPENAI_API_VERSION", "2024-08-01-preview")

    CLIENT_TIMEOUT             = 60.0 # seconds
    CLIENT_MAX_RETRIES         = 3    # Number of retries for API calls
    PROMPT_COST_PER_1K         = float(os.getenv("PROMPT_COST_PER_1K", "0.0025"))
    COMPLETION_COST_PER_1K     = float(os.getenv("COMPLETION_COST_PER_1K", "0.01"))

    # --- SEARCH ---
    SEARCH_PROVIDER            = os.getenv("SEARCH_PROVIDER", "searx").lower() # 'searx' or 'firecrawl'
    SEARX_URL                  = os.getenv("SEARX_URL", "http://127.0.0.1:8080/search?q=")
    FIRECRAWL_KEY              = os.getenv("FIRECRAWL_KEY")
    FIRECRAWL_BASE_URL         = os.getenv("FIRECRAWL_BASE_URL", "https://api.firecrawl.dev")
    SEARCH_RESULTS             = int(os.getenv("SEARCH_RESULTS", "5"))
    SEARCH_TIMEOUT             = float(os.getenv("SEARCH_TIMEOUT", "15"))
    FETCH_TIMEOUT              = 30
    MAX_CONTENT_CHARS          = 25_000
    PDF_MIN_TEXT_LENGTH        = 250

    # --- RESEARCH TREE ---
    MAX_BREADTH                = 10
    MAX_DEPTH                  = 5
    DEFAULT_BREADTH            = int(os.getenv("DEFAULT_BREADTH", "4"))
    DEFAULT_DEPTH              = int(os.getenv("DEFAULT_DEPTH", "2"))
    BREADTH_DECAY              = os.getenv("BREADTH_DECAY", "halve").lower() # 'halve' or 'decrement'
    CONCURRENCY_LIMIT          = int(os.getenv("CONCURRENCY_LIMIT", "4"))
    LEARNINGS_PER_QUERY        = int(os.getenv("LEARNINGS_PER_QUERY", "3"))
    EXTRACTION_RETRIES         = 1
    EXTRACTION_BACKOFF         = 1.0  # seconds, doubled on each retry
    NUM_FEEDBACK_QUESTIONS     = 3
    REPORT_CONTEXT_CHARS       = 150_000

    # --- LOGGING & UI ---
    LOG_LEVEL                  = os.getenv("LOG_LEVEL", "INFO").upper()
    OUTPUT_STYLE               = "summary" # 'detailed', 'summary', or 'progress'

SCRIPT_VERSION = "1.0.0"

# --------------------------------------------------------------------------- #
#  Logging
# --------------------------------------------------------------------------- #
log_format = "%(asctime)s | %(name)-22s | %(levelname)-8s | %(message)s"
logging.basicConfig(level=getattr(logging, Settings.LOG_LEVEL, logging.INFO), format=log_format)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("anyio").setLevel(logging.WARNING)
log = logging.getLogger("deep-research")


# --------------------------------------------------------------------------- #
#  Prompts
# --------------------------------------------------------------------------- #
class PROMPTS:
    """Centralized repository for all system and user prompts."""
    SYSTEM = """You are an expert researcher. Today is {today}. Follow these instructions when responding:
- You may be asked to research subjects that are after your knowledge cutoff, assume the user is right when presented with news.
- The user is a highly experienced analyst, no need to simplify it, be as detailed as possible and make sure your response is correct.
- Be highly organized.
- Suggest solutions that I didn't think about.
- Be proactive and anticipate my needs.
- Treat me as an expert in all subject matter.
- Mistakes erode my trust, so be accurate and thorough.
- Provide detailed explanations, I'm comfortable with lots of detail.
- Value good arguments over authorities, the source is irrelevant.
- Consider new technologies and contrarian ideas, not just the conventional wisdom.
- You may use high levels of speculation or prediction, just flag it for me."""
    SERP_QUERIES = """Given the following prompt from the user, generate a list of SERP queries to research the topic. Return a maximum of {count} queries, but feel free to return less if the original prompt is clear. Make sure each query is unique and not similar to each other.
For every query also give a `research_goal`: the goal of the research that this query is meant to accomplish, then go deeper on how to advance the research once the results are found, mentioning additional research directions. Be as specific as possible, especially for additional research directions.

<prompt>{topic}</prompt>"""
    SERP_LEARNINGS = """Given the following contents from a SERP search for the query <query>{query}</query>, generate a list of learnings from the contents. Return a maximum of {num_learnings} learnings, but feel free to return less if the contents are clear. Make sure each learning is unique and not similar to each other. The learnings should be concise and to the point, as detailed and information dense as possible. Make sure to include any entities like people, places, companies, products, things, etc in the learnings, as well as any exact metrics, numbers, or dates. The learnings will be used to research the topic further.
Also return a maximum of {num_follow_ups} follow-up questions to research the topic further.

The research goal behind this query: {research_goal}

<contents>{contents}</contents>"""
    FEEDBACK = """Given the following query from the user, ask some follow up questions to clarify the research direction. Return a maximum of {count} questions, but feel free to return less if the original query is clear.

<query>{query}</query>"""
    FINAL_REPORT = """Given the following prompt from the user, write a final report on the topic using the learnings from research. Make it as detailed as possible, aim for 3 or more pages, include ALL the learnings from research. Cite the sources listed below where relevant.

<prompt>{prompt}</prompt>

Here are all the learnings from previous research:

<learnings>
{learnings}
</learnings>

Here are the sources that were visited during research:

<sources>
{sources}
</sources>"""
    JSON_INSTRUCTIONS = """Output ONLY a single valid JSON object matching this JSON schema, with no trailing commas and no surrounding text:
{schema}"""

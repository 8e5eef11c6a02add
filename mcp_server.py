# mcp_server.py
from typing import List

from mcp.server.fastmcp import FastMCP
from pydantic import BaseModel, Field

from agent_config import Settings
from research import get_feedback_questions, run_research, synthesize_report

mcp = FastMCP("DeepResearchMCP")

class ResearchResponse(BaseModel):
    learnings: List[str] = Field(description="Learnings collected during research")
    visited_urls: List[str] = Field(description="Every URL visited during research")

class Report(BaseModel):
    report_markdown: str = Field(description="Full research report in Markdown")
    total_tokens: int = Field(default=0, description="Tokens used to write the report")
    cost: float = Field(default=0.0, description="Estimated cost of writing the report in USD")

class FeedbackResponse(BaseModel):
    questions: List[str] = Field(description="Clarifying questions about the research topic")

@mcp.tool()
async def deep_research(query: str, breadth: int = Settings.DEFAULT_BREADTH, depth: int = Settings.DEFAULT_DEPTH) -> ResearchResponse:
    """
    Recursive web research. Returns the collected learnings and visited URLs.
    breadth: queries per level (1-10), depth: research levels (1-5)
    """
    result = await run_research(query, breadth, depth)
    return ResearchResponse(learnings=list(result.learnings), visited_urls=list(result.visited_urls))

@mcp.tool()
async def write_report(prompt: str, learnings: List[str], visited_urls: List[str]) -> Report:
    """Writes a Markdown report from research learnings, listing the visited URLs as sources."""
    report = await synthesize_report(prompt, learnings, visited_urls)
    return Report(report_markdown=report.markdown, total_tokens=report.usage.total_tokens, cost=report.usage.cost)

@mcp.tool()
async def feedback_questions(query: str, num_questions: int = Settings.NUM_FEEDBACK_QUESTIONS) -> FeedbackResponse:
    """Clarifying questions to ask the user before researching a topic."""
    return FeedbackResponse(questions=await get_feedback_questions(query, num_questions))

@mcp.tool()
async def deep_research_report(query: str, breadth: int = Settings.DEFAULT_BREADTH, depth: int = Settings.DEFAULT_DEPTH) -> Report:
    """
    Multi-hop web research followed by report writing. Returns Markdown.
    breadth: queries per level (1-10), depth: research levels (1-5)
    """
    result = await run_research(query, breadth, depth)
    report = await synthesize_report(query, result.learnings, result.visited_urls)
    return Report(report_markdown=report.markdown, total_tokens=report.usage.total_tokens, cost=report.usage.cost)

if __name__ == "__main__":
    # stdio is what mcpo wraps by default
    mcp.run()

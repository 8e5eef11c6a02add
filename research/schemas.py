# research/schemas.py
"""Output shapes requested from the language model, one per calling component."""
from typing import List

from pydantic import BaseModel, Field


class SerpQuery(BaseModel):
    query: str = Field(description="The SERP query")
    research_goal: str = Field(default="", description="The goal of the research that this query is meant to accomplish, plus further research directions")


class SerpQueryList(BaseModel):
    queries: List[SerpQuery] = Field(default_factory=list, description="List of SERP queries")


class SerpLearnings(BaseModel):
    learnings: List[str] = Field(default_factory=list, description="List of learnings")
    follow_up_questions: List[str] = Field(default_factory=list, description="List of follow-up questions to research the topic further")


class FeedbackQuestions(BaseModel):
    questions: List[str] = Field(default_factory=list, description="Follow up questions to clarify the research direction")


class FinalReport(BaseModel):
    report_markdown: str = Field(description="Final report on the topic in Markdown")

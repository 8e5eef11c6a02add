# research/__init__.py
from .feedback import get_feedback_questions
from .pipeline import ResearchPipeline, run_research
from .state import Report, ResearchRequest, ResearchResult, Usage
from .synthesis import synthesize_report

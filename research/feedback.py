# research/feedback.py
import logging
from typing import List, Optional

from agent_config import PROMPTS, Settings, log
from agent_errors import FeedbackFailed, LLMError
from research.adapters import LanguageModel
from research.schemas import FeedbackQuestions


class FeedbackGenerator:
    """Asks the model for clarifying questions about a topic before research starts."""
    def __init__(self, llm, logger: logging.Logger = log):
        self.llm = llm
        self.logger = logger

    async def feedback(self, topic: str, num_questions: int = Settings.NUM_FEEDBACK_QUESTIONS) -> List[str]:
        prompt = PROMPTS.FEEDBACK.format(count=num_questions, query=topic)
        try:
            generation = await self.llm.generate(prompt, FeedbackQuestions)
        except LLMError as e:
            self.logger.error(f"Feedback generation failed for '{topic}': {e}")
            raise FeedbackFailed(f"Could not generate feedback questions: {e}") from e
        questions = [q.strip() for q in generation.value.questions if q and q.strip()][:num_questions]
        self.logger.info(f"Generated {len(questions)} feedback questions.")
        return questions


async def get_feedback_questions(topic: str, num_questions: int = Settings.NUM_FEEDBACK_QUESTIONS, llm: Optional[LanguageModel] = None) -> List[str]:
    return await FeedbackGenerator(llm or LanguageModel()).feedback(topic, num_questions)

# research/synthesis.py
import logging
import re
from typing import Optional, Sequence

from agent_config import PROMPTS, Settings, log
from agent_errors import LLMError, SynthesisFailed
from agent_helpers import trim_text
from research.adapters import LanguageModel
from research.schemas import FinalReport
from research.state import Report


class ReportSynthesizer:
    """
    Writes the final Markdown report from a set of learnings.

    The visited URLs are both given to the model as context and appended as a
    `## Sources` section, so every report lists its sources even when the model
    does not cite them.
    """
    def __init__(self, llm, logger: logging.Logger = log):
        self.llm = llm
        self.logger = logger

    def _clean_report_text(self, text: str) -> str:
        """Removes a sources section written by the model, the canonical one is appended afterwards."""
        cleaned_text = re.sub(
            r'\n\s*((?:\*\*|##+)?\s*(?:Sources|References|Bibliography|Works Cited)\s*(?:\*\*)?:?)\s*\n[\s\S]*',
            '',
            text,
            flags=re.IGNORECASE
        )
        if len(cleaned_text) < len(text):
            self.logger.info("Removed a model-written sources section from the report.")
        return cleaned_text.strip()

    def _make_sources(self, visited_urls: Sequence[str]) -> str:
        if not visited_urls: return "## Sources\n\nNo sources were visited during research."
        return "## Sources\n\n" + "\n".join(f"- {url}" for url in visited_urls)

    async def synthesize(self, prompt: str, learnings: Sequence[str], visited_urls: Sequence[str]) -> Report:
        self.logger.info(f"Synthesizing report from {len(learnings)} learnings and {len(visited_urls)} sources.")
        learnings_str = trim_text("\n".join(f"<learning>\n{l}\n</learning>" for l in learnings), Settings.REPORT_CONTEXT_CHARS)
        sources_str = "\n".join(visited_urls)
        llm_prompt = PROMPTS.FINAL_REPORT.format(prompt=prompt, learnings=learnings_str, sources=sources_str)
        try:
            generation = await self.llm.generate(llm_prompt, FinalReport)
        except LLMError as e:
            self.logger.error(f"Report synthesis failed: {e}")
            raise SynthesisFailed(f"Could not write the final report: {e}") from e

        body = self._clean_report_text(generation.value.report_markdown)
        markdown = f"{body}\n\n{self._make_sources(visited_urls)}\n"
        return Report(markdown=markdown, usage=generation.usage)


async def synthesize_report(prompt: str, learnings: Sequence[str], visited_urls: Sequence[str], llm: Optional[LanguageModel] = None) -> Report:
    return await ReportSynthesizer(llm or LanguageModel()).synthesize(prompt, list(learnings), list(visited_urls))

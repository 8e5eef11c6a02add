# main.py
import argparse
import asyncio
import logging
import re
from pathlib import Path
from typing import List

from rich.console import Console

from agent_config import SCRIPT_VERSION, Settings, log
from agent_errors import FeedbackFailed, PlanningFailed, SynthesisFailed
from agent_helpers import hash_txt
from research import get_feedback_questions, run_research, synthesize_report
from research.adapters import LanguageModel
from research.ui import UIMonitor


def combine_query(question: str, questions: List[str], answers: List[str]) -> str:
    """Folds the clarifying answers into the research topic."""
    answered = [(q, a) for q, a in zip(questions, answers) if a]
    if not answered:
        return question
    qa = "\n".join(f"Q: {q}\nA: {a}" for q, a in answered)
    return f"Initial Query: {question}\nFollow-up Questions and Answers:\n{qa}"


def report_path_for(question: str) -> Path:
    report_filename_base = re.sub(r'[^\w\s-]', '', question.lower())
    report_filename_base = re.sub(r'[-\s]+', '_', report_filename_base)[:50]
    return Path(f"report_{report_filename_base}_{hash_txt(question)[:8]}.md")


async def main_cli():
    """The main command-line interface function."""
    parser = argparse.ArgumentParser(description=f"Deep-Research Agent v{SCRIPT_VERSION}", formatter_class=argparse.RawTextHelpFormatter)
    parser.add_argument("question", nargs="+", help="Your research prompt")
    parser.add_argument("-b", "--breadth", type=int, default=Settings.DEFAULT_BREADTH, help=f"Queries per research level, 1-{Settings.MAX_BREADTH} (default: %(default)s)")
    parser.add_argument("-d", "--depth", type=int, default=Settings.DEFAULT_DEPTH, help=f"Research levels, 1-{Settings.MAX_DEPTH} (default: %(default)s)")
    parser.add_argument("-t", "--timeout", type=float, default=None, help="Stop spawning new research branches after this many seconds")
    parser.add_argument("--no-feedback", action="store_true", help="Skip the clarifying questions")
    parser.add_argument("-s", "--output-style", choices=["detailed", "summary", "progress"], default="summary", help="""Choose the output style:
  - detailed: Show all verbose logs.
  - summary: Show per-level queries and results (default).
  - progress: Show a minimal progress bar.""")
    args = parser.parse_args()

    Settings.OUTPUT_STYLE = args.output_style
    if Settings.OUTPUT_STYLE == "detailed":
        logging.getLogger().setLevel(Settings.LOG_LEVEL)
        log.setLevel(Settings.LOG_LEVEL)
    else:
        logging.getLogger().setLevel(logging.CRITICAL + 10)
        log.setLevel(logging.INFO)

    question = " ".join(args.question).strip()
    ui = UIMonitor(Settings.OUTPUT_STYLE)
    llm = LanguageModel()

    topic = question
    if not args.no_feedback:
        try:
            questions = await get_feedback_questions(question, llm=llm)
        except FeedbackFailed as e:
            log.warning(f"Skipping clarifying questions: {e}")
            questions = []
        if questions:
            ui.show_feedback_questions(questions)
            answers = [ui.console.input(f"[bold]{i}. {q}[/bold]\nYour answer: ").strip() for i, q in enumerate(questions, 1)]
            topic = combine_query(question, questions, answers)

    try:
        result = await run_research(topic, args.breadth, args.depth, timeout=args.timeout, llm=llm, ui=ui)
    except PlanningFailed as e:
        ui.console.print(f"[bold red]Research could not start: {e}[/bold red]")
        return

    ui.start_synthesis()
    try:
        report = await synthesize_report(topic, result.learnings, result.visited_urls, llm=llm)
    except SynthesisFailed as e:
        ui.console.print(f"[bold red]Report synthesis failed: {e}[/bold red]")
        return

    report_path = report_path_for(question)
    try:
        report_path.write_text(report.markdown, encoding="utf-8")
    except OSError as e:
        log.error(f"Failed to write report to {report_path}: {e}")
        report_path = Path(f"report_fallback_{hash_txt(question)[:8]}.md")
        report_path.write_text(report.markdown, encoding="utf-8")
        log.info(f"Report saved to fallback path: {report_path.resolve()}")

    usage = llm.total_usage
    log.info(f"Session used {usage.total_tokens} tokens (estimated cost ${usage.cost:.4f}).")
    if Settings.OUTPUT_STYLE == 'detailed':
        log.info("--- FINAL REPORT ---")
        print("\n" + ("="*80) + "\nFINAL REPORT\n" + ("="*80) + "\n")
        print(report.markdown)
        print("\n" + ("="*80))
        print(f"\n[INFO] Full report saved to: {report_path.resolve()}")
    else:
        ui.end(report_path)


def cli():
    try:
        asyncio.run(main_cli())
    except KeyboardInterrupt:
        print("\n--- Process interrupted by user. Shutting down. ---")
        console = Console()
        console.show_cursor(True)
    except Exception as e:
        log.error("--- A critical error occurred in the main process ---", exc_info=True)
        console = Console()
        console.print(f"\n[bold red]A critical error occurred: {e}. Please check the logs.[/bold red]")
        console.print_exception(show_locals=True)


if __name__ == "__main__":
    cli()

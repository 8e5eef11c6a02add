# research/ui.py
from pathlib import Path
from typing import List, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from agent_config import SCRIPT_VERSION


class UIMonitor:
    """Handles all user-facing, non-detailed logging using the `rich` library."""
    def __init__(self, output_style: str, console: Console = None):
        self.style = output_style
        self.console = console or Console()
        self.progress = None
        self._query_task = None

    def _is_active(self) -> bool:
        return self.style in ["summary", "progress"]

    def start(self, topic: str, breadth: int, depth: int):
        if not self._is_active(): return
        self.console.print(Panel(
            f"[bold magenta]🔬 Starting Deep Research[/bold magenta]\n[cyan]Query:[/] \"{topic}\"\n[cyan]Breadth:[/] {breadth}   [cyan]Depth:[/] {depth}",
            title=f"[bold green]Research Engine v{SCRIPT_VERSION}[/bold green]",
            border_style="green"
        ))
        if self.style == "progress":
            self.progress = Progress(SpinnerColumn(), TextColumn("[bold blue]Queries"), BarColumn(), TextColumn("{task.completed}/{task.total}"), console=self.console)
            self.progress.start()
            self._query_task = self.progress.add_task("queries", total=0)

    def show_feedback_questions(self, questions: Sequence[str]):
        if not self._is_active() or not questions: return
        self.console.print(Panel("\n".join(f"{i}. {q}" for i, q in enumerate(questions, 1)),
                                 title="[bold yellow]❓ To focus the research, please answer these questions[/bold yellow]", border_style="yellow"))

    def show_queries(self, level: int, depth: int, queries: Sequence[str]):
        if self.progress:
            self.progress.update(self._query_task, total=self.progress.tasks[0].total + len(queries))
        if self.style != 'summary' or not queries: return
        self.console.print(f"\n[bold]🔄 Level {level} (depth left {depth}): {len(queries)} new queries[/bold]")
        for q in queries:
            self.console.print(f"  [dim]•[/dim] {q}")

    def query_done(self, query: str, num_results: int, num_learnings: int):
        if self.progress:
            self.progress.update(self._query_task, advance=1)
        if self.style == 'summary':
            marker = "[green]✔[/green]" if num_results else "[yellow]⚠️[/yellow]"
            self.console.print(f"  {marker} \"{query}\": {num_results} results, {num_learnings} learnings")

    def show_result(self, learnings: List[str], visited_urls: List[str]):
        if self.progress:
            self.progress.stop()
            self.progress = None
        if not self._is_active(): return
        table = Table(title=f"[bold green]📚 Collected {len(learnings)} learnings from {len(visited_urls)} source(s)[/bold green]", show_header=True, header_style="bold cyan")
        table.add_column("#", style="dim", width=4)
        table.add_column("Learning")
        for i, learning in enumerate(learnings[:10], 1):
            table.add_row(str(i), learning)
        if len(learnings) > 10:
            table.add_row("…", f"and {len(learnings) - 10} more")
        self.console.print(table)

    def start_synthesis(self):
        if not self._is_active(): return
        self.console.print(Panel("[bold blue]✍️ Research complete. Synthesizing final report...[/bold blue]", border_style="blue"))

    def end(self, report_path: Path):
        if not self._is_active(): return
        self.console.print(Panel(
            f"[bold green]🎉 Report Finished![/bold green]\n[cyan]Full report saved to:[/] {report_path.resolve()}",
            title="[bold green]Synthesis Complete[/bold green]",
            border_style="green"
        ))

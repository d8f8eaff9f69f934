"""Rich terminal renderer for pipeline run reports.

Color scheme
------------
- green     : PASSED
- red       : FAILED
- yellow    : RUNNING
- dim       : NOT_STARTED / SKIPPED
- cyan      : HALTED
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from storybook_publisher.models.phases import PhaseState, PipelineReport

_STATE_STYLES: dict[PhaseState, str] = {
    PhaseState.PASSED: "bold green",
    PhaseState.FAILED: "bold red",
    PhaseState.RUNNING: "bold yellow",
    PhaseState.NOT_STARTED: "dim",
    PhaseState.SKIPPED: "dim",
    PhaseState.HALTED: "bold cyan",
}

_STATE_LABELS: dict[PhaseState, str] = {
    PhaseState.PASSED: "[green]PASSED[/green]",
    PhaseState.FAILED: "[bold red]FAILED[/bold red]",
    PhaseState.RUNNING: "[yellow]RUNNING[/yellow]",
    PhaseState.NOT_STARTED: "[dim]NOT STARTED[/dim]",
    PhaseState.SKIPPED: "[dim]SKIPPED[/dim]",
    PhaseState.HALTED: "[cyan]HALTED[/cyan]",
}


class ReportRenderer:
    """Renders ``PipelineReport`` as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render(self, report: PipelineReport) -> Panel:
        """Render a report as a Panel containing the phase table and summary."""
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=3, justify="right")
        table.add_column("Phase", min_width=20)
        table.add_column("State", min_width=12, justify="center")
        table.add_column("Details", min_width=20)
        table.add_column("Time", justify="right", width=8)

        for i, phase in enumerate(report.phases):
            style = _STATE_STYLES.get(phase.state, "")
            duration = (
                f"{phase.duration_seconds:.1f}s" if phase.duration_seconds else "[dim]-[/dim]"
            )
            table.add_row(
                str(i),
                f"[{style}]{escape(phase.display_name)}[/{style}]",
                _STATE_LABELS.get(phase.state, phase.state.value),
                escape(phase.detail) if phase.detail else "[dim]-[/dim]",
                duration,
            )

        summary_parts = [f"[bold]Commit:[/bold] {escape(report.commit or '-')}"]
        if report.halted:
            summary_parts.append(f"[cyan]{escape(report.halt_reason)}[/cyan]")
        elif report.commit_index_url:
            summary_parts.append(f"[bold]Index:[/bold] {escape(report.commit_index_url)}")

        return Panel(
            Group(table, Text(""), Text.from_markup("  |  ".join(summary_parts))),
            title="[bold]Storybook Publisher[/bold]",
            border_style="blue",
            padding=(1, 2),
        )

    def print_report(self, report: PipelineReport) -> None:
        self.console.print(self.render(report))

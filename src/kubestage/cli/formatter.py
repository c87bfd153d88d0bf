# src/kubestage/cli/formatter.py
from typing import Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from kubestage.core.models import ReconcileResult, RequestIdentity, Stage
from kubestage.manifests.decoder import SUPPORTED_KINDS
from kubestage.stages.stepper import ReadinessStepper

console = Console()


class StageFormatter:
    """
    StageFormatter: renders stage plans and reconcile outcomes.
    """

    def __init__(self, out: Optional[Console] = None):
        self.console = out or console

    def print_plan(self, stages: Sequence[Stage]):
        table = Table(title="KubeStage Apply Plan", show_lines=True, header_style="bold magenta")
        table.add_column("Stage", style="cyan")
        table.add_column("#", justify="right")
        table.add_column("Kind", style="white")
        table.add_column("Name")
        table.add_column("Namespace", style="dim")

        for stage in stages:
            for idx, (kind, name) in enumerate(stage.entries, 1):
                resource = _bundle_resource(stage, kind)
                namespace = resource.metadata.namespace if resource is not None else None
                table.add_row(stage.name, str(idx), kind, name or "-", namespace or "-")
            for rel_path in stage.skipped:
                table.add_row(stage.name, "-", "[yellow]skipped[/yellow]", rel_path, "-")

        self.console.print(table)

    def print_outcome(self, identity: RequestIdentity, result: ReconcileResult,
                      stepper: Optional[ReadinessStepper] = None):
        if stepper is not None and stepper.stages:
            table = Table(title=f"Stages for {identity}", header_style="bold magenta")
            table.add_column("Stage", style="cyan")
            table.add_column("Controls", justify="right")
            table.add_column("Result", justify="center")
            for idx, stage in enumerate(stepper.stages):
                if idx < stepper.cursor:
                    icon = "✅"
                elif idx == stepper.cursor and result.error is not None:
                    icon = "⏳" if result.requeue else "❌"
                else:
                    icon = "·"
                table.add_row(stage.name, str(len(stage)), icon)
            self.console.print(table)

        if result.error is None and not result.requeue:
            body, style = "[bold green]Converged[/bold green]", "green"
        elif result.error is None:
            body, style = "[bold yellow]Requeue requested[/bold yellow]", "yellow"
        else:
            header = "[bold yellow]Requeue[/bold yellow]" if result.requeue else "[bold red]Failed[/bold red]"
            body = f"{header}\n[white]{type(result.error).__name__}: {result.error}[/white]"
            style = "yellow" if result.requeue else "red"

        self.console.print(Panel(body, title=f"[bold white]{identity}[/bold white]", border_style=style, expand=False))


def _bundle_resource(stage: Stage, kind: str):
    entry = SUPPORTED_KINDS.get(kind)
    return getattr(stage.bundle, entry[0]) if entry else None

"""Rich console interface implementation using the Rich library."""
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.prompt import Confirm
from rich.table import Table

from ..core.logging import get_logger
from ..domain.models import RenderStatus, Step
from ..ui.ascii import CLEANUP_HINT, PHASE_LABELS

logger = get_logger(__name__)


class RichInterface:
    """Rich console output with a progress bar spanning all invocations."""

    def __init__(self, show_checks: bool = True, console: Optional[Console] = None, **kwargs):
        self.logger = logger
        self.console = console or Console()
        self.show_checks = show_checks
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(complete_style="green", finished_style="bright_green"),
            TaskProgressColumn(),
            TextColumn("•"),
            TimeElapsedColumn(),
            TextColumn("•"),
            TimeRemainingColumn(),
            console=self.console,
            transient=False,
        )
        self.task_id = None

    def render(self, status: RenderStatus) -> None:
        """Show the result of one invocation."""
        if status.progress is not None:
            self._update_progress(status.progress.percentage, status.progress.action)

        if status.step is Step.CHECK and self.show_checks:
            self.display_checks(status.data.get("checks", []))
        elif status.step is Step.CONFIGURE:
            self.display_configuration(status.data)
        elif status.step is Step.CLEANUP:
            self.display_cleanup(status.data)
        elif status.step is Step.DONE:
            self.close()
            self.console.print(Panel(
                f"Site restored: [bold]{status.data.get('site_url', '')}[/bold]",
                title="Done",
                border_style="green",
            ))

        if not status.ok:
            self.display_failure(status)

    def display_checks(self, checks: List[Dict[str, Any]]) -> None:
        table = Table(title="Environment Checks", box=box.ROUNDED)
        table.add_column("Check", style="cyan")
        table.add_column("Result")
        table.add_column("Details", style="yellow")
        for check in checks:
            result = "[green]OK" if check.get("test") else "[red]FAIL"
            table.add_row(str(check.get("name")), result, str(check.get("value") or ""))
        self.console.print(table)

    def display_configuration(self, data: Dict[str, Any]) -> None:
        database = data.get("database", {})
        table = Table(title="Configuration", box=box.ROUNDED, show_header=False)
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="yellow")
        table.add_row("Deployment directory", str(data.get("deployment_directory", "")))
        table.add_row("Site URL", str(data.get("site_url", "")))
        table.add_row("Snapshot manifest", str(data.get("manifest_version") or "none"))
        table.add_row("Database host", str(database.get("host", "")))
        table.add_row("Database name", str(database.get("name", "")))
        table.add_row("Database user", str(database.get("user", "")))
        table.add_row("Table prefix", str(database.get("table_prefix", "")))
        table.add_row("Database reachable", "[green]yes" if data.get("database_status") else "[red]no")
        table.add_row("Database empty", "yes" if data.get("db_empty") else "[yellow]no")
        self.console.print(table)

    def display_cleanup(self, data: Dict[str, Any]) -> None:
        def mark(flag):
            return "[green]removed" if flag else "[yellow]kept"
        table = Table(title="Cleanup", box=box.ROUNDED)
        table.add_column("Item", style="cyan")
        table.add_column("Path")
        table.add_column("Result")
        table.add_row("Extraction directory", str(data.get("temp_path", "")), mark(data.get("temp_status")))
        table.add_row("Archive", str(data.get("source_path") or ""), mark(data.get("source_status")))
        table.add_row("Error log", "", mark(data.get("log_status")))
        self.console.print(table)

    def display_failure(self, status: RenderStatus) -> None:
        self.close()
        phase = PHASE_LABELS.get(status.step.phase.value, status.step.phase.value)
        body = [f'Installation failed in "[bold]{phase}[/bold]" phase (step: {status.step.value})']
        if status.error:
            body.append(f"Reason: {status.error}")
        if status.step is not Step.CLEANUP:
            body.append(f"[dim]{CLEANUP_HINT}[/dim]")
        self.console.print(Panel("\n".join(body), title="Failed", border_style="red"))

    def confirm(self, message: str) -> bool:
        return Confirm.ask(message, console=self.console, default=False)

    def close(self) -> None:
        """Stop the live progress display, if running."""
        if self.task_id is not None:
            self.progress.stop()
            self.task_id = None

    def _update_progress(self, percentage: float, action: str) -> None:
        if self.task_id is None:
            self.progress.start()
            self.task_id = self.progress.add_task(action, total=100)
        self.progress.update(self.task_id, completed=percentage, description=action)

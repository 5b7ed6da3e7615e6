"""ASCII interface implementation."""
import sys
from typing import Any, Dict, List

from ..core.logging import get_logger
from ..domain.models import RenderStatus, Step
from ..ui.progress import ProgressStats, ProgressTracker

logger = get_logger(__name__)

CLEANUP_HINT = "Clean up files and try again: snapshot-restore cleanup"

PHASE_LABELS = {
    "verify": "Verify",
    "configure": "Configure",
    "deploy": "Deploy",
}


def failure_text(status: RenderStatus) -> str:
    """Plain failure report naming the phase, the step and the reason."""
    phase = PHASE_LABELS.get(status.step.phase.value, status.step.phase.value)
    lines = [f'Installation failed in "{phase}" phase (step: {status.step.value})']
    if status.error:
        lines.append(f"Reason: {status.error}")
    if status.error_kind is not None:
        lines.append(f"Failure class: {status.error_kind.value}")
    if status.step is not Step.CLEANUP:
        lines.append(CLEANUP_HINT)
    return "\n".join(lines)


class ASCIIInterface:
    """Plain text output for terminals and log files."""

    def __init__(self, quiet=False, show_checks=True, logger=None, stream=None):
        """Initialize the interface."""
        self.quiet = quiet
        self.show_checks = show_checks
        self.logger = logger or get_logger(__name__)
        self.stream = stream or sys.stdout
        self.progress_tracker = ProgressTracker(self.display_progress)

    def render(self, status: RenderStatus) -> None:
        """Show the result of one invocation."""
        if status.progress is not None:
            self.progress_tracker.update(status.progress.percentage, status.progress.action)

        if status.step is Step.CHECK and self.show_checks:
            self.display_checks(status.data.get("checks", []))
        elif status.step is Step.CONFIGURE:
            self.display_configuration(status.data)
        elif status.step is Step.CLEANUP:
            self.display_cleanup(status.data)
        elif status.step is Step.DONE:
            self._write(f"\nSite restored: {status.data.get('site_url', '')}")

        if not status.ok:
            self.logger.error(failure_text(status))

    def display_progress(self, stats: ProgressStats) -> None:
        """Display progress information in ASCII format."""
        if self.quiet:
            return
        bar_length = 50
        filled_length = int(bar_length * stats.percentage_complete / 100)
        bar = '=' * filled_length + '-' * (bar_length - filled_length)

        if stats.estimated_time_remaining > 0:
            time_remaining = self._format_time(stats.estimated_time_remaining)
        else:
            time_remaining = "calculating..."

        self._write(
            f"{stats.action}: [{bar}] {stats.percentage_complete:.1f}% | "
            f"ETA: {time_remaining}"
        )

    def display_checks(self, checks: List[Dict[str, Any]]) -> None:
        symbols = {True: "OK  ", False: "FAIL"}
        self._write("Environment checks:")
        for check in checks:
            line = f"  [{symbols[bool(check.get('test'))]}] {check.get('name')}"
            if check.get("value"):
                line += f" ({check['value']})"
            self._write(line)

    def display_configuration(self, data: Dict[str, Any]) -> None:
        database = data.get("database", {})
        self._write(
            f"Configuration:\n"
            f"  Deployment directory: {data.get('deployment_directory', '')}\n"
            f"  Site URL: {data.get('site_url', '')}\n"
            f"  Snapshot manifest: {data.get('manifest_version') or 'none'}\n"
            f"  Database: {database.get('user', '')}@{database.get('host', '')}/{database.get('name', '')}\n"
            f"  Table prefix: {database.get('table_prefix', '')}\n"
            f"  Database reachable: {'yes' if data.get('database_status') else 'no'}\n"
            f"  Database empty: {'yes' if data.get('db_empty') else 'no'}"
        )
        if data.get("database_status") and not data.get("db_empty"):
            self.logger.warning("Target database is not empty; restored tables will replace existing ones")

    def display_cleanup(self, data: Dict[str, Any]) -> None:
        def mark(flag):
            return "removed" if flag else "kept"
        self._write(
            f"Cleanup:\n"
            f"  Extraction directory {data.get('temp_path', '')}: {mark(data.get('temp_status'))}\n"
            f"  Archive {data.get('source_path') or '(none)'}: {mark(data.get('source_status'))}\n"
            f"  Error log: {mark(data.get('log_status'))}"
        )

    def confirm(self, message: str) -> bool:
        """Ask a yes/no question on the terminal."""
        try:
            answer = input(f"{message} [y/N]: ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")

    def _write(self, text: str) -> None:
        if self.quiet:
            return
        self.stream.write(text + "\n")
        self.stream.flush()

    def _format_time(self, seconds: float) -> str:
        """Format time in seconds to a human-readable string."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            minutes = seconds / 60
            return f"{minutes:.1f}m"
        else:
            hours = seconds / 3600
            return f"{hours:.1f}h"

# EVALSYNC Console Output
# Rich-based console output for queue status and drain results

import json
from datetime import datetime, timezone
from typing import Optional

from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.table import Table

from evalsync.sync.connectivity import ConnectivityState
from evalsync.sync.coordinator import DrainResult
from evalsync.sync.mutation import GenericUpdate, MutationStatus, QueuedMutation

STATUS_STYLES = {
    MutationStatus.PENDING: "yellow",
    MutationStatus.SYNCING: "cyan",
    MutationStatus.SYNCED: "green",
    MutationStatus.FAILED: "red",
}

SKIP_REASONS = {
    "offline": "client is offline",
    "session_invalid": "session expired, sign in again to resume",
}


class Console:
    """
    Console output manager using Rich.

    Provides formatted output for queue operations.
    """

    def __init__(self, *, verbose: bool = False, colored: bool = True, console: Optional[RichConsole] = None):
        """
        Initialize console.

        Args:
            verbose: Enable verbose output.
            colored: Enable colored output.
            console: Optional Rich console to write to.
        """
        self.verbose = verbose
        self._console = console or RichConsole(no_color=not colored)

    @property
    def rich(self) -> RichConsole:
        return self._console

    def print(self, *args, **kwargs) -> None:
        """Print to console."""
        self._console.print(*args, **kwargs)

    def print_error(self, message: str) -> None:
        """Print error message."""
        self._console.print(f"[red]Error:[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print warning message."""
        self._console.print(f"[yellow]Warning:[/yellow] {message}")

    def print_success(self, message: str) -> None:
        """Print success message."""
        self._console.print(f"[green]{message}[/green]")

    def print_info(self, message: str) -> None:
        """Print info message."""
        self._console.print(f"[blue]{message}[/blue]")

    def print_status(self, state: ConnectivityState, counts: dict[MutationStatus, int]) -> None:
        """
        Print connectivity and queue counts.

        Args:
            state: Current connectivity.
            counts: Items per status.
        """
        marker = "[green]● online[/green]" if state.online else "[red]○ offline[/red]"
        since = _format_time(state.last_transition_at) if state.last_transition_at is not None else "unknown"
        self._console.print(f"\n{marker} [dim](since {since})[/dim]")

        total = sum(counts.values())
        if total == 0:
            self._console.print("  [dim]No offline items queued[/dim]")
            return

        parts = []
        for status in (MutationStatus.PENDING, MutationStatus.SYNCING, MutationStatus.FAILED):
            count = counts.get(status, 0)
            if count:
                style = STATUS_STYLES[status]
                parts.append(f"[{style}]{count} {status.value}[/{style}]")
        self._console.print(f"  {total} items: {', '.join(parts)}")

    def print_queue(self, items: list[QueuedMutation]) -> None:
        """Print queued items in enqueue order."""
        if not items:
            self._console.print("[dim]No offline items queued[/dim]")
            return

        table = Table(title="Offline Queue", show_header=True, header_style="bold")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Kind", style="magenta")
        table.add_column("Target")
        table.add_column("Queued", style="dim")
        table.add_column("Status", justify="center")
        if self.verbose:
            table.add_column("Details", style="dim")

        for item in items:
            style = STATUS_STYLES.get(item.status, "white")
            target = item.label if isinstance(item.payload, GenericUpdate) else "evaluation"
            row = [
                item.id,
                item.kind.value,
                target,
                _format_time(item.enqueued_at),
                f"[{style}]{item.status.value}[/{style}]",
            ]
            if self.verbose:
                row.append(item.failure.message if item.failure else "")
            table.add_row(*row)

        self._console.print()
        self._console.print(table)
        self._console.print()

    def print_mutation(self, item: QueuedMutation) -> None:
        """Print full details for one item."""
        style = STATUS_STYLES.get(item.status, "white")
        lines = [
            f"[bold]{item.label}[/bold]",
            f"Status: [{style}]{item.status.value}[/{style}]",
            f"Queued: {_format_time(item.enqueued_at)}",
        ]
        if item.failure:
            lines.append(f"[red]Failure:[/red] {item.failure.kind}: {item.failure.message}")
        body = json.dumps(item.payload.to_dict().get("body"), indent=2, ensure_ascii=False, default=str)
        lines.append("")
        lines.append(body)
        self._console.print(Panel("\n".join(lines), title=item.id, border_style=style))

    def print_drain_result(self, result: DrainResult) -> None:
        """
        Print drain cycle summary.

        Args:
            result: Drain result to display.
        """
        if result.coalesced:
            self.print_info("A sync is already running")
            return

        if result.skipped_reason and result.attempted == 0:
            self.print_warning(f"Sync skipped: {SKIP_REASONS.get(result.skipped_reason, result.skipped_reason)}")
            if result.remaining:
                self._console.print(f"  [dim]{result.remaining} item(s) still pending[/dim]")
            return

        if result.attempted == 0:
            self.print_success("Nothing to sync")
            return

        text = (
            f"Attempted: {result.attempted}\n"
            f"Synced: [green]{result.synced}[/green], deferred: [yellow]{result.retried}[/yellow], "
            f"failed: [red]{result.failed}[/red], lost: [red]{result.lost}[/red]\n"
            f"Still pending: {result.remaining}"
        )
        if result.aborted:
            text += "\n[yellow]Stopped early: connection lost[/yellow]"

        if result.has_issues:
            border = "red"
        elif result.retried or result.aborted:
            border = "yellow"
        else:
            border = "green"
        self._console.print(Panel(text, title="Sync Result", border_style=border))

        if self.verbose:
            for item in result.items:
                detail = f" - {item.error}" if item.error else ""
                self._console.print(f"  [dim]{item.outcome.value:>7}[/dim] {item.mutation_id}{detail}")


def _format_time(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")

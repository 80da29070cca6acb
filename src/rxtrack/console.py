"""Terminal rendering of subscription reports.

Reports are diagnostics, so everything goes to stderr.
"""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from rxtrack.report import SubscriptionReport

# stderr console for diagnostic output
err_console = Console(stderr=True)


def render_report(report: SubscriptionReport, *, console: Console | None = None) -> None:
    """Print a report as a table of live subscriptions."""
    c = console or err_console
    if not report:
        c.print("[dim]  no live subscriptions[/dim]")
        return

    c.print(f"[yellow]  ⚠ {report.total} live subscription(s), nested included[/yellow]")
    table = Table(show_header=True, header_style="bold")
    table.add_column("Chain", justify="right")
    table.add_column("Handle")
    table.add_column("Subscribed at")
    for entry in report.entries:
        table.add_row(f"#{entry.chain_id}", entry.handle, entry.trace[-1] if entry.trace else "-")
    c.print(table)

    for entry in report.entries:
        if len(entry.trace) > 1:
            c.print(f"[bold]#{entry.chain_id}[/bold]")
            for line in entry.trace:
                c.print(f"[dim]    {line}[/dim]", highlight=False)

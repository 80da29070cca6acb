"""Tests for the console output module."""

import io

from rich.console import Console

from rxtrack.console import render_report
from rxtrack.report import ReportEntry, SubscriptionReport


def _console() -> tuple[Console, io.StringIO]:
    buf = io.StringIO()
    return Console(file=buf, stderr=True, no_color=True, width=200), buf


class TestRenderReport:
    """Tests for render_report."""

    def test_empty_report(self) -> None:
        """An empty report prints a short note."""
        console, buf = _console()
        render_report(SubscriptionReport(total=0), console=console)
        assert "no live subscriptions" in buf.getvalue()

    def test_lists_entries(self) -> None:
        """Each entry appears with its chain id and handle."""
        console, buf = _console()
        result = SubscriptionReport(
            total=3,
            entries=[
                ReportEntry(chain_id=1, handle="<Disposable a>"),
                ReportEntry(chain_id=4, handle="<Disposable b>"),
            ],
        )
        render_report(result, console=console)
        output = buf.getvalue()
        assert "3 live subscription(s)" in output
        assert "#1" in output
        assert "#4" in output
        assert "<Disposable b>" in output

    def test_prints_traces(self) -> None:
        """Multi-line traces are printed below the table."""
        console, buf = _console()
        trace = ['File "/app/main.py", line 1, in main', 'File "/app/svc.py", line 9, in start']
        render_report(
            SubscriptionReport(total=1, entries=[ReportEntry(chain_id=2, handle="h", trace=trace)]),
            console=console,
        )
        output = buf.getvalue()
        assert "/app/main.py" in output
        assert "/app/svc.py" in output

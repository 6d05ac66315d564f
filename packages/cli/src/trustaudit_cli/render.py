"""Terminal and file rendering of audit results."""

from __future__ import annotations

import csv

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from trustaudit_core.models import TrustLevel
from trustaudit_core.report import Report

console = Console()

TSV_FIELDS = ["commit", "author", "summary", "pull_requests", "trust_level"]

_LEVEL_STYLE = {
    TrustLevel.TRUSTED: "green",
    TrustLevel.UNKNOWN: "yellow",
    TrustLevel.UNTRUSTED: "red",
}


def format_error_chain(exc: BaseException) -> str:
    """Render an exception and everything it was raised from, outermost first."""
    lines = [str(exc) or type(exc).__name__]
    seen = {id(exc)}
    cause = exc.__cause__ or (None if exc.__suppress_context__ else exc.__context__)
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        lines.append(f"  caused by: {cause or type(cause).__name__}")
        cause = cause.__cause__ or (None if cause.__suppress_context__ else cause.__context__)
    return "\n".join(lines)


def print_report(report: Report, title: str = "Commit trust audit") -> None:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Commit", style="bold", width=10)
    table.add_column("Author", max_width=20)
    table.add_column("Summary", max_width=50)
    table.add_column("PRs", max_width=20)
    table.add_column("Trust", width=10)

    for c in report.commits:
        style = _LEVEL_STYLE[c.trust_level]
        table.add_row(
            c.commit.short_sha,
            escape(c.commit.author or "?"),
            escape(c.commit.summary),
            ", ".join(f"#{pr_id}" for pr_id in sorted(c.pull_requests)) or "—",
            f"[{style}]{c.trust_level}[/{style}]",
        )

    if report.commits:
        console.print(table)

    counts = report.counts()
    console.print(
        f"[green]{counts[TrustLevel.TRUSTED]} trusted[/green] · "
        f"[yellow]{counts[TrustLevel.UNKNOWN]} unknown[/yellow] · "
        f"[red]{counts[TrustLevel.UNTRUSTED]} untrusted[/red]"
    )
    console.print(report.outstanding(), markup=False, highlight=False)


def write_tsv(report: Report, path: str) -> None:
    """Write one row per commit, loadable by spreadsheets."""
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=TSV_FIELDS, delimiter="\t", lineterminator="\n")
        writer.writeheader()
        writer.writerows(report.rows())

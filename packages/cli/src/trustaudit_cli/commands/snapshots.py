"""snapshots command — list persisted extraction stages for the configured repository."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from trustaudit_cli.render import format_error_chain
from trustaudit_core.config import get_repo_path
from trustaudit_core.errors import ConfigError

console = Console()


@click.command("snapshots")
@click.pass_context
def snapshots_cmd(ctx):
    """Show the extraction stages saved by earlier runs.

    Any stage listed here can be passed to `trustaudit analyze resume`.
    """
    from trustaudit_store.noop import NoOpStore

    store = ctx.obj.get("store") if ctx.obj else None
    if store is None or isinstance(store, NoOpStore):
        raise click.UsageError("No store configured. Add 'store: json' or 'store: sqlite' to .trustaudit.yml.")

    try:
        org, name = get_repo_path(ctx.obj["config"])
    except ConfigError as e:
        raise click.ClickException(format_error_chain(e))
    repo = f"{org}/{name}"

    records = store.list_snapshots(repo)
    if not records:
        console.print("[yellow]No snapshots found.[/yellow]")
        return

    table = Table(title=f"Saved stages — {repo}", show_header=True, header_style="bold cyan")
    table.add_column("Stage", style="bold")
    table.add_column("Saved At", width=20)
    table.add_column("Commits", justify="right")
    table.add_column("Pull Requests", justify="right")

    for r in records:
        payload = r.payload
        commits = len(payload.get("commits") or payload.get("prs_by_commit") or [])
        if "prs_by_commit" in payload:
            pr_count = str(len({pr for entry in payload["prs_by_commit"] for pr in entry.get("pull_requests", [])}))
        else:
            pr_count = "—"
        table.add_row(r.stage, r.saved_at[:19].replace("T", " "), str(commits), pr_count)

    console.print(table)

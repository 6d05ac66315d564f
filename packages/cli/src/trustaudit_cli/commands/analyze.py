"""analyze command — audit the review trust of the configured commit range."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone

import click
from rich.console import Console

from trustaudit_cli.render import format_error_chain, print_report, write_tsv
from trustaudit_core.analysis import ExtractionStage, ExtractionStageName
from trustaudit_core.config import get_base_url, get_repo_path, get_tags, get_trusted_reviewers
from trustaudit_core.errors import TrustAuditError
from trustaudit_core.models import TrustLevel
from trustaudit_core.providers.cache import LocalCacheDataSource
from trustaudit_core.providers.github import GithubDataSource
from trustaudit_core.vcs.git import Repository
from trustaudit_store.models import SnapshotRecord

console = Console()
logger = logging.getLogger(__name__)

_LEVEL_CHOICES = [level.name.lower() for level in TrustLevel]


def build_github_source(config: dict) -> GithubDataSource:
    org, repo = get_repo_path(config)
    return GithubDataSource(org, repo, token=config.get("github_token"), base_url=get_base_url(config))


def save_stage(store, repo: str, extraction: ExtractionStage) -> Exception | None:
    """Persist the current stage; return the error instead of raising so callers can report it last.

    The CLI layer owns the mapping from a core snapshot to a SnapshotRecord:
    trustaudit_core has no store knowledge and trustaudit_store has no core
    knowledge.
    """
    snapshot = extraction.snapshot()
    record = SnapshotRecord(
        repo=repo,
        stage=snapshot["stage"],
        saved_at=datetime.now(timezone.utc).isoformat(),
        payload=snapshot["payload"],
    )
    try:
        store.save(record)
    except (OSError, sqlite3.Error) as e:
        logger.error("failed to save extracted data (%s stage): %s", record.stage, e)
        return e
    logger.info("Saved %s stage for %s.", record.stage, repo)
    return None


def _run_audit(ctx, extraction: ExtractionStage, data_source, repo: str, tsv_path: str | None, require: str | None):
    """Compute the report, then always try to persist whatever stage was reached."""
    config = ctx.obj["config"]
    store = ctx.obj["store"]

    report = None
    try:
        report = extraction.compute_report(
            data_source, dedupe_pull_requests=bool(config.get("dedupe_pull_requests", False))
        )
    except TrustAuditError as e:
        logger.error("failed to generate report:\n%s", format_error_chain(e))
        report_error = e
    else:
        report_error = None
        print_report(report, title=f"Commit trust audit — {repo}")
        if tsv_path:
            write_tsv(report, tsv_path)
            console.print(f"[dim]Wrote {len(report.commits)} row(s) to {tsv_path}[/dim]")

    save_error = save_stage(store, repo, extraction)

    if report_error is not None:
        raise click.ClickException("failed to generate report:\n" + format_error_chain(report_error))
    if save_error is not None:
        raise click.ClickException(f"failed to save extracted data: {save_error}")

    if require is not None and report.overall_trust_level < TrustLevel[require.upper()]:
        console.print(f"[red]Overall trust {report.overall_trust_level} is below the required level ({require}).[/red]")
        ctx.exit(2)


@click.group("analyze")
def analyze_cmd():
    """Audit the review trust of the configured commit range."""


@analyze_cmd.command("from-scratch")
@click.option(
    "--local-checkout",
    "local_checkout_path",
    required=True,
    type=click.Path(file_okay=False),
    help="Path to a local clone containing the configured tags.",
)
@click.option("--tsv", "tsv_path", default=None, type=click.Path(dir_okay=False), help="Also write the report as TSV.")
@click.option(
    "--require",
    type=click.Choice(_LEVEL_CHOICES),
    default=None,
    help="Exit with status 2 when the overall trust level is below this level.",
)
@click.pass_context
def from_scratch_cmd(ctx, local_checkout_path: str, tsv_path: str | None, require: str | None):
    """Start a new analysis from a fresh walk of the local checkout.

    Requires network access to GitHub. Private repositories need a token
    (--gh-auth-token, GITHUB_TOKEN, or `gh auth login`).
    """
    config = ctx.obj["config"]
    try:
        from_tag, to_tag = get_tags(config)
        trusted_reviewers = get_trusted_reviewers(config)
        data_source = build_github_source(config)
        commits = Repository.discover(local_checkout_path).rev_list(from_tag, to_tag)
    except TrustAuditError as e:
        raise click.ClickException(format_error_chain(e))

    console.print(f"Auditing [bold]{len(commits)}[/bold] commit(s) in [cyan]{from_tag}..{to_tag}[/cyan]")
    extraction = ExtractionStage.start(commits, trusted_reviewers)
    _run_audit(ctx, extraction, data_source, data_source.full_name, tsv_path, require)


@analyze_cmd.command("resume")
@click.argument("stage", type=click.Choice([name.label for name in ExtractionStageName]))
@click.option("--offline", is_flag=True, help="Use only locally persisted data; never contact GitHub.")
@click.option("--tsv", "tsv_path", default=None, type=click.Path(dir_okay=False), help="Also write the report as TSV.")
@click.option(
    "--require",
    type=click.Choice(_LEVEL_CHOICES),
    default=None,
    help="Exit with status 2 when the overall trust level is below this level.",
)
@click.pass_context
def resume_cmd(ctx, stage: str, offline: bool, tsv_path: str | None, require: str | None):
    """Resume analysis from a persisted STAGE and continue with data from GitHub.

    Data already present in any persisted snapshot is replayed from the store
    instead of being fetched again.
    """
    from trustaudit_store.noop import NoOpStore

    config = ctx.obj["config"]
    store = ctx.obj["store"]
    if isinstance(store, NoOpStore):
        raise click.UsageError("No store configured. Add 'store: json' or 'store: sqlite' to .trustaudit.yml.")

    try:
        data_source = build_github_source(config)
        repo = data_source.full_name
        record = store.load(repo, stage=stage)
        if record is None:
            raise click.ClickException(f"No {stage} snapshot found for {repo}. Run `trustaudit snapshots` to list them.")
        extraction = ExtractionStage.restore(record.to_snapshot())
        latest = store.load(repo)
        cache = LocalCacheDataSource(latest.to_snapshot(), fallback=None if offline else data_source)
    except TrustAuditError as e:
        raise click.ClickException(format_error_chain(e))

    try:
        configured = get_trusted_reviewers(config)
    except TrustAuditError:
        configured = None
    if configured is not None and configured != extraction.stage.trusted_reviewers:
        logger.warning("Trusted reviewers in the config differ from the snapshot; the snapshot's list is used.")

    console.print(f"Resuming [cyan]{repo}[/cyan] from stage [bold]{stage}[/bold] saved at {record.saved_at}")
    _run_audit(ctx, extraction, cache, repo, tsv_path, require)
